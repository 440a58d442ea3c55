"""
atelier_engines.approver_resolver -- Pick the team member for an approval level.

Responsibility:
    Map an ``ApprovalConfig`` to a concrete ``TeamMember`` from the project
    roster, or to a synthetic placeholder for client / external approvers.

Architecture position:
    Engines -- pure evaluation layer, zero I/O.  The roster is read-only.

Invariants enforced:
    - Never raises and never returns None.  An unmatched role or user id
      falls back to the first roster member; an empty roster yields
      ``UNASSIGNED_APPROVER``.
    - Client and external approvers are always synthesized, never looked up.
"""

from __future__ import annotations

from collections.abc import Sequence

from atelier_kernel.domain.approval import ApprovalConfig
from atelier_kernel.domain.entities import TeamMember
from atelier_kernel.domain.values import ApproverType

AVATAR_URL_TEMPLATE = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"

UNASSIGNED_APPROVER = TeamMember(
    id="unassigned",
    name="Unassigned",
    role="Unassigned",
    avatar=AVATAR_URL_TEMPLATE.format(seed="unassigned"),
)

_PLACEHOLDER_LABELS: dict[ApproverType, str] = {
    ApproverType.CLIENT: "Client",
    ApproverType.EXTERNAL: "External Consultant",
}

_ROLE_KEYWORDS: dict[ApproverType, str] = {
    ApproverType.PROJECT_MANAGER: "manager",
    ApproverType.ADMIN: "admin",
}


def placeholder_approver(approver_type: ApproverType) -> TeamMember:
    """Synthetic roster entry for approvers outside the studio."""
    label = _PLACEHOLDER_LABELS[approver_type]
    return TeamMember(
        id=f"{approver_type.value}-placeholder",
        name=label,
        role=label,
        avatar=AVATAR_URL_TEMPLATE.format(seed=approver_type.value),
    )


def find_team_member(
    team_members: Sequence[TeamMember], member_id: str,
) -> TeamMember | None:
    for member in team_members:
        if member.id == member_id:
            return member
    return None


def _first_with_role(
    team_members: Sequence[TeamMember], fragment: str,
) -> TeamMember | None:
    needle = fragment.lower()
    for member in team_members:
        if needle in member.role.lower():
            return member
    return None


def resolve_approver(
    config: ApprovalConfig,
    team_members: Sequence[TeamMember],
) -> TeamMember:
    """Resolve the approver for one approval level.

    - department-head: first member whose role contains ``approver_role``
      (case-insensitive).
    - project-manager / admin: first member whose role contains
      "manager" / "admin" (case-insensitive).
    - specific-user: member whose id is ``approver_user_id``.
    - client / external: synthetic placeholder.

    Any miss falls back to the first roster member.
    """
    if config.approver_type in _PLACEHOLDER_LABELS:
        return placeholder_approver(config.approver_type)

    fallback = team_members[0] if team_members else UNASSIGNED_APPROVER
    match: TeamMember | None = None

    if config.approver_type == ApproverType.DEPARTMENT_HEAD:
        match = _first_with_role(team_members, config.approver_role or "")
    elif config.approver_type in _ROLE_KEYWORDS:
        match = _first_with_role(team_members, _ROLE_KEYWORDS[config.approver_type])
    elif config.approver_type == ApproverType.SPECIFIC_USER:
        if config.approver_user_id:
            match = find_team_member(team_members, config.approver_user_id)

    return match or fallback
