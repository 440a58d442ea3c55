"""
atelier_kernel.services.approval_service -- Approval request lifecycle.

Responsibility:
    Creates approval requests for one project and walks them through their
    sequential chain: approve (advance or finish), reject, delegate,
    comment, remind and expire.  Answers the queries the approvals page,
    task cards and stage gate need.  Approver resolution and status
    roll-up are delegated to the pure engines.

Architecture position:
    Kernel > Services.  May import from domain/, db/ and atelier_engines.
    The whole request collection of a project is loaded from and written
    back to the ``KeyValueStore`` under ``approvalRequests-<project_id>``
    on every mutation.

Invariants enforced:
    - Lifecycle state machine: ``APPROVAL_TRANSITIONS`` is checked before
      any status change; approved, rejected and expired requests refuse
      approve, reject, delegate and remind.
    - Sequential chain: exactly one level awaits a decision.  Approving a
      non-final level moves to the next config and re-resolves the
      assignee; approving the final level terminates the chain.
    - Rejection at any level terminates the chain.
    - Append-only history: every recorded action appends entries and no
      operation removes or rewrites one.  ``update_request`` refuses to
      touch ``history``.
    - Config snapshot: requests keep the configs they were created with.
    - Failed operations never write to the store.

Failure modes (returned as ``ApprovalResult.fail``, logged at WARNING):
    - ApprovalNotFoundError for an unknown request id.
    - NoActorError when no actor is given.
    - ApprovalAlreadyResolvedError when a terminal request is decided on.
    - RejectionReasonRequiredError, CommentRequiredError,
      DelegationNotAllowedError, EmptyCommentError, EmptyApprovalChainError,
      ApprovalLevelOutOfRangeError.
    - TeamMemberNotFoundError for an unknown delegate.
    - CommentNotFoundError / CommentAuthorMismatchError on comment delete.
    Storage errors (SnapshotDecodeError) propagate.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Sequence
from dataclasses import fields, replace
from datetime import datetime, timedelta
from typing import Any, TypeVar
from uuid import uuid4

from atelier_engines.approval_status import aggregate_approval_status
from atelier_engines.approver_resolver import find_team_member, resolve_approver
from atelier_kernel.db.store import KeyValueStore
from atelier_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    ApprovalComment,
    ApprovalConfig,
    ApprovalHistoryEntry,
    ApprovalRequest,
    ApprovalResult,
)
from atelier_kernel.domain.clock import Clock, SystemClock
from atelier_kernel.domain.entities import TeamMember
from atelier_kernel.domain.serialization import decode_collection, to_payload
from atelier_kernel.domain.storage_keys import approval_requests_key
from atelier_kernel.domain.values import (
    ApprovalEntityType,
    ApprovalSource,
    ApprovalStatus,
    HistoryAction,
    WorkflowStage,
)
from atelier_kernel.exceptions import (
    ActorError,
    ApprovalAlreadyResolvedError,
    ApprovalError,
    ApprovalLevelOutOfRangeError,
    ApprovalNotFoundError,
    ApprovalValidationError,
    CommentAuthorMismatchError,
    CommentNotFoundError,
    CommentRequiredError,
    DelegationNotAllowedError,
    EmptyApprovalChainError,
    EmptyCommentError,
    NoActorError,
    RejectionReasonRequiredError,
    TeamMemberNotFoundError,
)
from atelier_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.approval_service")

# Actor recorded on history entries written by expiry sweeps.
SYSTEM_ACTOR = TeamMember(id="system", name="System", role="System")

# Fields update_request never touches.
_PROTECTED_FIELDS = frozenset({"id", "project_id", "history", "created_at"})

# Errors a lifecycle operation reports through ApprovalResult.fail.
_RECOVERABLE_ERRORS = (ApprovalError, ActorError, ApprovalValidationError)

_F = TypeVar("_F", bound=Callable[..., ApprovalRequest])


def _lifecycle_operation(operation: str) -> Callable[[_F], Callable[..., ApprovalResult]]:
    """Wrap a method returning ``ApprovalRequest`` into one returning
    ``ApprovalResult``, converting recoverable kernel errors into failures.
    """

    def decorator(func: _F) -> Callable[..., ApprovalResult]:
        @functools.wraps(func)
        def wrapper(self: ApprovalService, *args: Any, **kwargs: Any) -> ApprovalResult:
            try:
                return ApprovalResult.ok(func(self, *args, **kwargs))
            except _RECOVERABLE_ERRORS as exc:
                logger.warning(
                    "approval_operation_failed",
                    extra={
                        "operation": operation,
                        "error_code": exc.code,
                        "detail": str(exc),
                        "project_id": self.project_id,
                    },
                )
                return ApprovalResult.fail(exc)

        return wrapper

    return decorator


def _is_blank(text: str | None) -> bool:
    return text is None or not text.strip()


class ApprovalService:
    """Manages the approval requests of one project."""

    def __init__(
        self,
        store: KeyValueStore,
        project_id: str,
        team_members: Sequence[TeamMember] = (),
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._project_id = project_id
        self._team_members = tuple(team_members)
        self._clock = clock or SystemClock()
        self._key = approval_requests_key(project_id)

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def team_members(self) -> tuple[TeamMember, ...]:
        return self._team_members

    # =====================================================================
    # Persistence
    # =====================================================================

    def _load(self) -> list[ApprovalRequest]:
        return decode_collection(
            ApprovalRequest, self._key, self._store.get(self._key, []),
        )

    def _save(self, requests: list[ApprovalRequest]) -> None:
        self._store.set(self._key, to_payload(requests))

    def _load_request(
        self, request_id: str,
    ) -> tuple[list[ApprovalRequest], int, ApprovalRequest]:
        requests = self._load()
        for index, request in enumerate(requests):
            if request.id == request_id:
                return requests, index, request
        raise ApprovalNotFoundError(request_id)

    def _commit(
        self, requests: list[ApprovalRequest], index: int, updated: ApprovalRequest,
    ) -> ApprovalRequest:
        requests[index] = updated
        self._save(requests)
        return updated

    # =====================================================================
    # Record helpers
    # =====================================================================

    def _history_entry(
        self,
        action: HistoryAction,
        actor: TeamMember,
        now: datetime,
        note: str | None = None,
    ) -> ApprovalHistoryEntry:
        return ApprovalHistoryEntry(
            id=str(uuid4()), action=action, actor=actor, timestamp=now, note=note,
        )

    def _comment(self, actor: TeamMember, text: str, now: datetime) -> ApprovalComment:
        return ApprovalComment(id=str(uuid4()), author=actor, text=text, created_at=now)

    @staticmethod
    def _require_actor(actor: TeamMember | None, operation: str) -> TeamMember:
        if actor is None:
            raise NoActorError(operation)
        return actor

    @staticmethod
    def _check_transition(request: ApprovalRequest, target: ApprovalStatus) -> None:
        if target not in APPROVAL_TRANSITIONS[request.status]:
            raise ApprovalAlreadyResolvedError(request.id, request.status.value)

    # =====================================================================
    # Lifecycle operations
    # =====================================================================

    @_lifecycle_operation("create_request")
    def create_request(
        self,
        *,
        entity_type: ApprovalEntityType,
        entity_id: str,
        entity_name: str,
        stage: WorkflowStage,
        approval_configs: Sequence[ApprovalConfig],
        requested_by: TeamMember | None,
        assigned_to: TeamMember | None = None,
        source: ApprovalSource = ApprovalSource.MANUAL,
        rule_id: str | None = None,
        template_approval_id: str | None = None,
    ) -> ApprovalRequest:
        """Create a pending request at level 0.

        The assignee defaults to the resolved approver of the first config.
        ``expires_at`` is set when the first config has ``expiry_days``.
        """
        actor = self._require_actor(requested_by, "create_request")
        configs = tuple(approval_configs)
        if not configs:
            raise EmptyApprovalChainError(entity_id)

        now = self._clock.now()
        first = configs[0]
        expires_at = (
            now + timedelta(days=first.expiry_days)
            if first.expiry_days
            else None
        )
        request = ApprovalRequest(
            id=str(uuid4()),
            project_id=self._project_id,
            source=source,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            stage=stage,
            approval_configs=configs,
            requested_by=actor,
            requested_at=now,
            assigned_to=assigned_to or resolve_approver(first, self._team_members),
            created_at=now,
            updated_at=now,
            template_approval_id=template_approval_id,
            rule_id=rule_id,
            expires_at=expires_at,
            history=(self._history_entry(HistoryAction.REQUESTED, actor, now),),
        )

        requests = self._load()
        requests.append(request)
        self._save(requests)

        with LogContext.bind(request_id=request.id, project_id=self._project_id):
            logger.info(
                "approval_request_created",
                extra={
                    "entity_type": entity_type.value,
                    "entity_id": entity_id,
                    "source": source.value,
                    "rule_id": rule_id,
                    "levels": len(configs),
                    "assigned_to": request.assigned_to.id,
                },
            )
        return request

    @_lifecycle_operation("approve")
    def approve(
        self,
        request_id: str,
        actor: TeamMember | None,
        comment: str | None = None,
    ) -> ApprovalRequest:
        """Approve the current level.

        Appends an ``approved`` entry.  When more levels remain the request
        stays pending, is reassigned to the next level's approver and gets a
        ``delegated`` entry naming that level; otherwise it is approved.
        """
        actor = self._require_actor(actor, "approve")
        requests, index, request = self._load_request(request_id)
        self._check_transition(request, ApprovalStatus.APPROVED)

        config = request.current_config
        if config is not None and config.require_comment and _is_blank(comment):
            raise CommentRequiredError(request_id, request.current_approval_level)

        now = self._clock.now()
        comments = request.comments
        if _is_blank(comment):
            comment = None
        else:
            comments = comments + (self._comment(actor, comment, now),)
        history = request.history + (
            self._history_entry(HistoryAction.APPROVED, actor, now, note=comment),
        )

        next_level = request.current_approval_level + 1
        if next_level < len(request.approval_configs):
            next_config = request.approval_configs[next_level]
            history = history + (
                self._history_entry(
                    HistoryAction.DELEGATED,
                    actor,
                    now,
                    note=f"Moved to next approval level: {next_config.name}",
                ),
            )
            updated = replace(
                request,
                status=ApprovalStatus.PENDING,
                current_approval_level=next_level,
                assigned_to=resolve_approver(next_config, self._team_members),
                comments=comments,
                history=history,
                updated_at=now,
            )
            event = "approval_level_advanced"
        else:
            updated = replace(
                request,
                status=ApprovalStatus.APPROVED,
                approved_by=actor,
                approved_at=now,
                comments=comments,
                history=history,
                updated_at=now,
            )
            event = "approval_request_approved"

        self._commit(requests, index, updated)
        with LogContext.bind(request_id=request_id, actor_id=actor.id):
            logger.info(
                event,
                extra={
                    "approval_level": updated.current_approval_level,
                    "assigned_to": updated.assigned_to.id,
                },
            )
        return updated

    @_lifecycle_operation("reject")
    def reject(
        self,
        request_id: str,
        actor: TeamMember | None,
        reason: str | None,
        comment: str | None = None,
    ) -> ApprovalRequest:
        """Reject the request at its current level, ending the chain."""
        actor = self._require_actor(actor, "reject")
        requests, index, request = self._load_request(request_id)
        self._check_transition(request, ApprovalStatus.REJECTED)
        if _is_blank(reason):
            raise RejectionReasonRequiredError(request_id)

        now = self._clock.now()
        comments = request.comments
        note = f"Reason: {reason}"
        if not _is_blank(comment):
            comments = comments + (self._comment(actor, comment, now),)
            note = f"{note} | {comment}"

        updated = self._commit(requests, index, replace(
            request,
            status=ApprovalStatus.REJECTED,
            rejected_by=actor,
            rejected_at=now,
            rejection_reason=reason,
            comments=comments,
            history=request.history + (
                self._history_entry(HistoryAction.REJECTED, actor, now, note=note),
            ),
            updated_at=now,
        ))
        with LogContext.bind(request_id=request_id, actor_id=actor.id):
            logger.info(
                "approval_rejected",
                extra={"approval_level": request.current_approval_level},
            )
        return updated

    @_lifecycle_operation("delegate")
    def delegate(
        self,
        request_id: str,
        actor: TeamMember | None,
        to_user_id: str,
    ) -> ApprovalRequest:
        """Hand the current level to another roster member.

        The approval level is unchanged; only the assignee moves.
        """
        actor = self._require_actor(actor, "delegate")
        requests, index, request = self._load_request(request_id)
        self._check_transition(request, ApprovalStatus.DELEGATED)

        config = request.current_config
        if config is not None and not config.allow_delegation:
            raise DelegationNotAllowedError(request_id, request.current_approval_level)

        delegate_to = find_team_member(self._team_members, to_user_id)
        if delegate_to is None:
            raise TeamMemberNotFoundError(to_user_id)

        now = self._clock.now()
        updated = self._commit(requests, index, replace(
            request,
            status=ApprovalStatus.DELEGATED,
            assigned_to=delegate_to,
            delegated_to=delegate_to,
            delegated_at=now,
            history=request.history + (
                self._history_entry(
                    HistoryAction.DELEGATED,
                    actor,
                    now,
                    note=f"Delegated to {delegate_to.name}",
                ),
            ),
            updated_at=now,
        ))
        with LogContext.bind(request_id=request_id, actor_id=actor.id):
            logger.info("approval_delegated", extra={"delegated_to": delegate_to.id})
        return updated

    @_lifecycle_operation("add_comment")
    def add_comment(
        self,
        request_id: str,
        actor: TeamMember | None,
        text: str,
    ) -> ApprovalRequest:
        """Attach a comment.  Allowed in any status."""
        actor = self._require_actor(actor, "add_comment")
        requests, index, request = self._load_request(request_id)
        if _is_blank(text):
            raise EmptyCommentError(request_id)

        now = self._clock.now()
        updated = self._commit(requests, index, replace(
            request,
            comments=request.comments + (self._comment(actor, text, now),),
            history=request.history + (
                self._history_entry(HistoryAction.COMMENTED, actor, now),
            ),
            updated_at=now,
        ))
        logger.info(
            "approval_comment_added",
            extra={"request_id": request_id, "author_id": actor.id},
        )
        return updated

    @_lifecycle_operation("delete_comment")
    def delete_comment(
        self,
        request_id: str,
        actor: TeamMember | None,
        comment_id: str,
    ) -> ApprovalRequest:
        """Remove a comment.  Only its author may; history is untouched."""
        actor = self._require_actor(actor, "delete_comment")
        requests, index, request = self._load_request(request_id)

        target = next((c for c in request.comments if c.id == comment_id), None)
        if target is None:
            raise CommentNotFoundError(request_id, comment_id)
        if target.author.id != actor.id:
            raise CommentAuthorMismatchError(comment_id, target.author.id, actor.id)

        updated = self._commit(requests, index, replace(
            request,
            comments=tuple(c for c in request.comments if c.id != comment_id),
            updated_at=self._clock.now(),
        ))
        logger.info(
            "approval_comment_deleted",
            extra={"request_id": request_id, "comment_id": comment_id},
        )
        return updated

    @_lifecycle_operation("send_reminder")
    def send_reminder(
        self,
        request_id: str,
        actor: TeamMember | None,
    ) -> ApprovalRequest:
        """Record a reminder to the current assignee."""
        actor = self._require_actor(actor, "send_reminder")
        requests, index, request = self._load_request(request_id)
        self._check_transition(request, request.status)

        now = self._clock.now()
        count = request.reminders_sent + 1
        updated = self._commit(requests, index, replace(
            request,
            reminders_sent=count,
            history=request.history + (
                self._history_entry(
                    HistoryAction.REMINDED,
                    actor,
                    now,
                    note=f"Reminder {count} sent to {request.assigned_to.name}",
                ),
            ),
            updated_at=now,
        ))
        logger.info(
            "approval_reminder_sent",
            extra={"request_id": request_id, "reminders_sent": count},
        )
        return updated

    def expire_stale_requests(
        self,
        as_of: datetime | None = None,
        actor: TeamMember | None = None,
    ) -> list[str]:
        """Expire active requests whose ``expires_at`` is at or before ``as_of``.

        Returns:
            Ids of the requests that were expired.  Nothing is written when
            no request qualifies.
        """
        now = as_of or self._clock.now()
        actor = actor or SYSTEM_ACTOR
        requests = self._load()
        expired_ids: list[str] = []

        for index, request in enumerate(requests):
            if not request.is_active or request.expires_at is None:
                continue
            if request.expires_at > now:
                continue
            requests[index] = replace(
                request,
                status=ApprovalStatus.EXPIRED,
                history=request.history + (
                    self._history_entry(HistoryAction.EXPIRED, actor, now),
                ),
                updated_at=now,
            )
            expired_ids.append(request.id)

        if expired_ids:
            self._save(requests)
            logger.info(
                "approval_requests_expired",
                extra={"project_id": self._project_id, "request_ids": expired_ids},
            )
        return expired_ids

    @_lifecycle_operation("update_request")
    def update_request(self, request_id: str, **changes: Any) -> ApprovalRequest:
        """Overwrite plain fields of a request and bump ``updated_at``.

        Raises:
            ValueError: When ``changes`` names an unknown field or one of
                id, project_id, history or created_at.

        Fails with ``ApprovalLevelOutOfRangeError`` when the result is still
        active and its level does not index ``approval_configs``.
        """
        known = {f.name for f in fields(ApprovalRequest)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown approval request fields: {sorted(unknown)}")
        protected = set(changes) & _PROTECTED_FIELDS
        if protected:
            raise ValueError(f"Approval request fields are read-only: {sorted(protected)}")

        requests, index, request = self._load_request(request_id)
        if "status" in changes:
            changes["status"] = ApprovalStatus(changes["status"])
            self._check_transition(request, changes["status"])
        changes["updated_at"] = self._clock.now()
        updated = replace(request, **changes)
        levels = len(updated.approval_configs)
        if updated.is_active and not 0 <= updated.current_approval_level < levels:
            raise ApprovalLevelOutOfRangeError(
                request_id, updated.current_approval_level, levels,
            )
        return self._commit(requests, index, updated)

    # =====================================================================
    # Queries
    # =====================================================================

    def list_requests(self) -> list[ApprovalRequest]:
        return self._load()

    def get_request(self, request_id: str) -> ApprovalRequest | None:
        return next((r for r in self._load() if r.id == request_id), None)

    def get_pending_approvals(self) -> list[ApprovalRequest]:
        """Requests still awaiting a decision (pending or delegated)."""
        return [r for r in self._load() if r.is_active]

    def get_approvals_by_stage(self, stage: WorkflowStage) -> list[ApprovalRequest]:
        return [r for r in self._load() if r.stage == stage]

    def get_approvals_by_entity(
        self, entity_type: ApprovalEntityType, entity_id: str,
    ) -> list[ApprovalRequest]:
        return [
            r for r in self._load()
            if r.entity_type == entity_type and r.entity_id == entity_id
        ]

    def get_my_approvals(self, user_id: str) -> list[ApprovalRequest]:
        """Active requests currently assigned to ``user_id``."""
        return [
            r for r in self._load()
            if r.is_active and r.assigned_to.id == user_id
        ]

    def can_approve(self, request_id: str, user_id: str) -> bool:
        request = self.get_request(request_id)
        if request is None or not request.is_active:
            return False
        return request.assigned_to.id == user_id

    def has_entity_approval(
        self, entity_type: ApprovalEntityType, entity_id: str,
    ) -> bool:
        return bool(self.get_approvals_by_entity(entity_type, entity_id))

    def get_approval_status(
        self, entity_type: ApprovalEntityType, entity_id: str,
    ) -> ApprovalStatus | None:
        """Entity-level status badge, or None when nothing was requested."""
        return aggregate_approval_status(
            self.get_approvals_by_entity(entity_type, entity_id)
        )
