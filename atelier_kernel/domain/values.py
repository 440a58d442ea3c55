"""
Shared value enumerations (``atelier_kernel.domain.values``).

Every enum is a ``str`` enum whose value is the exact string stored in
snapshots, so a decoded payload and a freshly built record compare equal.
"""

from __future__ import annotations

from enum import Enum


class WorkflowStage(str, Enum):
    """Project phases, in workflow order."""

    SALES = "Sales"
    DESIGN = "Design"
    TECHNICAL_DESIGN = "Technical Design"
    PROCUREMENT = "Procurement"
    PRODUCTION = "Production"
    EXECUTION = "Execution"
    POST_INSTALLATION = "Post Installation"


WORKFLOW_STAGES: tuple[WorkflowStage, ...] = tuple(WorkflowStage)


def next_stage(stage: WorkflowStage) -> WorkflowStage | None:
    """Return the stage after ``stage``, or None for the last one."""
    index = WORKFLOW_STAGES.index(stage)
    if index == len(WORKFLOW_STAGES) - 1:
        return None
    return WORKFLOW_STAGES[index + 1]


def previous_stage(stage: WorkflowStage) -> WorkflowStage | None:
    """Return the stage before ``stage``, or None for the first one."""
    index = WORKFLOW_STAGES.index(stage)
    if index == 0:
        return None
    return WORKFLOW_STAGES[index - 1]


class ApprovalEntityType(str, Enum):
    """Kinds of entity an approval chain can be attached to."""

    TASK = "task"
    DOCUMENT = "document"
    STAGE = "stage"


class ApproverType(str, Enum):
    """How an approval level picks its approver."""

    DEPARTMENT_HEAD = "department-head"
    PROJECT_MANAGER = "project-manager"
    ADMIN = "admin"
    SPECIFIC_USER = "specific-user"
    CLIENT = "client"
    EXTERNAL = "external"


class ApprovalStatus(str, Enum):
    """Approval request lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    DELEGATED = "delegated"


class ApprovalSource(str, Enum):
    """Where an approval request came from."""

    TEMPLATE = "template"
    GLOBAL_RULE = "global-rule"
    PROJECT_RULE = "project-rule"
    MANUAL = "manual"


class RuleScope(str, Enum):
    """Whether a rule applies to every project or to one."""

    GLOBAL = "global"
    PROJECT = "project"


class HistoryAction(str, Enum):
    """Audit actions recorded on an approval request."""

    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELEGATED = "delegated"
    REMINDED = "reminded"
    EXPIRED = "expired"
    COMMENTED = "commented"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class DocumentCategory(str, Enum):
    CONTRACT = "contract"
    REPORT = "report"
    SPECIFICATION = "specification"
    CHECKLIST = "checklist"


class WorkflowRuleType(str, Enum):
    """Kinds of workflow rule evaluated by the stage gate."""

    STAGE_TRANSITION = "stage-transition"
    AUTO_ASSIGNMENT = "auto-assignment"
    APPROVAL = "approval"
    VALIDATION = "validation"
