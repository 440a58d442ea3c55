"""
Approval domain types (``atelier_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the approval engine: the per-level approval config,
the rule that matches entities and carries a chain of configs, the request
that walks one entity through that chain, and its comments and history.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Lifecycle state machine -- ``APPROVAL_TRANSITIONS`` lists the only valid
  status moves.  Approved, rejected and expired have no outgoing edges, so
  a resolved chain is frozen.
* Config snapshot -- ``ApprovalRequest.approval_configs`` is a value copy of
  the rule's configs taken at creation; later rule edits never reach
  in-flight requests.
* Append-only history -- ``ApprovalRequest.history`` only ever grows.
* ``current_approval_level`` indexes ``approval_configs`` while the request
  is pending or delegated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from atelier_kernel.domain.entities import TeamMember
from atelier_kernel.domain.values import (
    ApprovalEntityType,
    ApprovalSource,
    ApprovalStatus,
    ApproverType,
    DocumentCategory,
    HistoryAction,
    RuleScope,
    TaskPriority,
    WorkflowStage,
)
from atelier_kernel.exceptions import AtelierKernelError


# =========================================================================
# Approval Status Lifecycle
# =========================================================================


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.PENDING,
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.DELEGATED,
        ApprovalStatus.EXPIRED,
    }),
    ApprovalStatus.DELEGATED: frozenset({
        ApprovalStatus.PENDING,
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.DELEGATED,
        ApprovalStatus.EXPIRED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
    ApprovalStatus.EXPIRED: frozenset(),
}

ACTIVE_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.PENDING,
    ApprovalStatus.DELEGATED,
})

TERMINAL_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.EXPIRED,
})


# =========================================================================
# Rule Types
# =========================================================================


@dataclass(frozen=True)
class ApprovalConfig:
    """One level of an approval chain.

    ``order`` is the 0-indexed position in the chain.  Copied by value into
    every request created from the owning rule.
    """

    id: str
    entity_type: ApprovalEntityType
    name: str
    approver_type: ApproverType
    order: int = 0
    description: str = ""
    approver_role: str | None = None
    approver_user_id: str | None = None
    required: bool = True
    allow_delegation: bool = False
    require_comment: bool = False
    notify_approver: bool = True
    auto_reminder: bool = False
    reminder_days: int | None = None
    expiry_days: int | None = None


@dataclass(frozen=True)
class MatchingCriteria:
    """Which entities a rule applies to.

    An empty tuple (or ``None`` pattern) means "no constraint" for that
    dimension, never "matches nothing".
    """

    stages: tuple[WorkflowStage, ...] = ()
    priorities: tuple[TaskPriority, ...] = ()
    document_categories: tuple[DocumentCategory, ...] = ()
    title_pattern: str | None = None
    tags: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.stages
            or self.priorities
            or self.document_categories
            or self.title_pattern
            or self.tags
        )


@dataclass(frozen=True)
class ApprovalRule:
    """A named matcher that spawns an approval chain for matching entities."""

    id: str
    name: str
    entity_type: ApprovalEntityType
    approval_configs: tuple[ApprovalConfig, ...]
    matching_criteria: MatchingCriteria = field(default_factory=MatchingCriteria)
    scope: RuleScope = RuleScope.GLOBAL
    project_id: str | None = None
    description: str = ""
    enabled: bool = True
    auto_apply: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


# =========================================================================
# Request Records
# =========================================================================


@dataclass(frozen=True)
class ApprovalComment:
    """A remark attached to a request.  Deletable only by its author."""

    id: str
    author: TeamMember
    text: str
    created_at: datetime


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """Immutable audit record.  Never edited or removed once written."""

    id: str
    action: HistoryAction
    actor: TeamMember
    timestamp: datetime
    note: str | None = None


@dataclass(frozen=True)
class ApprovalRequest:
    """Immutable snapshot of one chain applied to one entity."""

    id: str
    project_id: str
    source: ApprovalSource
    entity_type: ApprovalEntityType
    entity_id: str
    entity_name: str
    stage: WorkflowStage
    approval_configs: tuple[ApprovalConfig, ...]
    requested_by: TeamMember
    requested_at: datetime
    assigned_to: TeamMember
    created_at: datetime
    updated_at: datetime
    status: ApprovalStatus = ApprovalStatus.PENDING
    current_approval_level: int = 0
    template_approval_id: str | None = None
    rule_id: str | None = None
    approved_by: TeamMember | None = None
    approved_at: datetime | None = None
    rejected_by: TeamMember | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    comments: tuple[ApprovalComment, ...] = ()
    reminders_sent: int = 0
    expires_at: datetime | None = None
    delegated_to: TeamMember | None = None
    delegated_at: datetime | None = None
    history: tuple[ApprovalHistoryEntry, ...] = ()

    @property
    def current_config(self) -> ApprovalConfig | None:
        """Config for the level currently awaiting a decision."""
        if 0 <= self.current_approval_level < len(self.approval_configs):
            return self.approval_configs[self.current_approval_level]
        return None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_APPROVAL_STATUSES

    @property
    def has_required_level(self) -> bool:
        return any(config.required for config in self.approval_configs)


# =========================================================================
# Operation Result
# =========================================================================


@dataclass(frozen=True)
class ApprovalResult:
    """Outcome of a lifecycle operation.

    Exactly one of ``request`` (on success) or ``error`` (on failure) is
    set.  Failures never mutate the stored collection.
    """

    success: bool
    request: ApprovalRequest | None = None
    error: AtelierKernelError | None = None

    @classmethod
    def ok(cls, request: ApprovalRequest) -> ApprovalResult:
        return cls(success=True, request=request)

    @classmethod
    def fail(cls, error: AtelierKernelError) -> ApprovalResult:
        return cls(success=False, error=error)

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None

    def unwrap(self) -> ApprovalRequest:
        """Return the request, or raise the carried error."""
        if not self.success or self.request is None:
            raise self.error or AtelierKernelError("empty approval result")
        return self.request
