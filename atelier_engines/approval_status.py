"""
atelier_engines.approval_status -- Roll an entity's approval requests into one status.

Responsibility:
    Given every approval request attached to one entity, compute the single
    status badge shown for that entity.

Architecture position:
    Engines -- pure evaluation layer, zero I/O.

Invariants enforced:
    - A rejection only counts when the level the request stopped at is
      required.  A rejected request whose current level has
      ``required=False`` does not make the entity rejected.
    - Order of evaluation: rejected, then approved (all requests with a
      required level are approved), then pending, then approved.
"""

from __future__ import annotations

from collections.abc import Sequence

from atelier_kernel.domain.approval import ApprovalRequest
from atelier_kernel.domain.values import ApprovalStatus


def is_blocking_rejection(request: ApprovalRequest) -> bool:
    """True when ``request`` was rejected at a required level."""
    if request.status != ApprovalStatus.REJECTED:
        return False
    config = request.current_config
    return config is not None and config.required


def aggregate_approval_status(
    requests: Sequence[ApprovalRequest],
) -> ApprovalStatus | None:
    """Compute the entity-level status.

    Returns:
        None when the entity has no requests; otherwise rejected, approved
        or pending per the rules in the module docstring.
    """
    if not requests:
        return None

    if any(is_blocking_rejection(r) for r in requests):
        return ApprovalStatus.REJECTED

    required = [r for r in requests if r.has_required_level]
    if required and all(r.status == ApprovalStatus.APPROVED for r in required):
        return ApprovalStatus.APPROVED

    if any(r.is_active for r in requests):
        return ApprovalStatus.PENDING

    # Everything left is resolved and non-blocking.
    return ApprovalStatus.APPROVED
