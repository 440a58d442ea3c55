"""
Pure domain layer.

This module contains the value objects of the approval core with NO
dependencies on:
- ORM (SQLAlchemy)
- Storage
- I/O

All domain objects are frozen dataclasses; changes produce new instances.
"""

from atelier_kernel.domain.approval import (
    ACTIVE_APPROVAL_STATUSES,
    APPROVAL_TRANSITIONS,
    TERMINAL_APPROVAL_STATUSES,
    ApprovalComment,
    ApprovalConfig,
    ApprovalHistoryEntry,
    ApprovalRequest,
    ApprovalResult,
    ApprovalRule,
    MatchingCriteria,
)
from atelier_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from atelier_kernel.domain.entities import (
    ApprovableEntity,
    RequiredFile,
    StageDocument,
    StageEntity,
    Task,
    TeamMember,
)
from atelier_kernel.domain.values import (
    ApprovalEntityType,
    ApprovalSource,
    ApprovalStatus,
    ApproverType,
    DocumentCategory,
    HistoryAction,
    RuleScope,
    TaskPriority,
    WorkflowRuleType,
    WorkflowStage,
)
from atelier_kernel.domain.workflow import (
    ApprovalGateRule,
    AutoAssignmentRule,
    StageGateVerdict,
    StageProgress,
    StageTransitionConditions,
    StageTransitionRule,
    ValidationRule,
    WorkflowRule,
)

__all__ = [
    "ACTIVE_APPROVAL_STATUSES",
    "APPROVAL_TRANSITIONS",
    "TERMINAL_APPROVAL_STATUSES",
    "ApprovableEntity",
    "ApprovalComment",
    "ApprovalConfig",
    "ApprovalEntityType",
    "ApprovalGateRule",
    "ApprovalHistoryEntry",
    "ApprovalRequest",
    "ApprovalResult",
    "ApprovalRule",
    "ApprovalSource",
    "ApprovalStatus",
    "ApproverType",
    "AutoAssignmentRule",
    "Clock",
    "DeterministicClock",
    "DocumentCategory",
    "HistoryAction",
    "MatchingCriteria",
    "RequiredFile",
    "RuleScope",
    "StageDocument",
    "StageEntity",
    "StageGateVerdict",
    "StageProgress",
    "StageTransitionConditions",
    "StageTransitionRule",
    "SystemClock",
    "Task",
    "TaskPriority",
    "TeamMember",
    "ValidationRule",
    "WorkflowRule",
    "WorkflowRuleType",
    "WorkflowStage",
]
