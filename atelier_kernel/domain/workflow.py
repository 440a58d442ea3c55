"""
Workflow rule types (``atelier_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the rules that decide whether a project stage may be
marked complete, and for the verdict the stage gate returns.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Every rule names the stages it applies to in ``applicable_stages``; a
  rule with no stages never applies.
* ``StageGateVerdict.allowed`` is true iff ``reasons`` is empty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Union

from atelier_kernel.domain.values import RuleScope, WorkflowRuleType, WorkflowStage


@dataclass(frozen=True)
class StageTransitionConditions:
    """What must hold before a stage can be left."""

    require_all_tasks_complete: bool = False
    require_all_files_uploaded: bool = False
    require_all_docs_approved: bool = False
    minimum_checklist_completion: int = 0
    require_department_head_approval: bool = False
    block_stage_skipping: bool = False


@dataclass(frozen=True)
class StageTransitionActions:
    auto_activate_next_stage: bool = False
    notify_next_department: bool = False


@dataclass(frozen=True)
class StageTransitionRule:
    rule_type: ClassVar[WorkflowRuleType] = WorkflowRuleType.STAGE_TRANSITION

    id: str
    name: str
    applicable_stages: tuple[WorkflowStage, ...]
    conditions: StageTransitionConditions = field(
        default_factory=StageTransitionConditions
    )
    actions: StageTransitionActions = field(default_factory=StageTransitionActions)
    description: str = ""
    enabled: bool = True
    scope: RuleScope = RuleScope.GLOBAL
    project_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ApprovalGateRule:
    """Stage-level rule naming the role whose sign-off a stage needs."""

    rule_type: ClassVar[WorkflowRuleType] = WorkflowRuleType.APPROVAL

    id: str
    name: str
    applicable_stages: tuple[WorkflowStage, ...]
    approver_role: str
    required: bool = True
    description: str = ""
    enabled: bool = True
    scope: RuleScope = RuleScope.GLOBAL
    project_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class AutoAssignmentRule:
    rule_type: ClassVar[WorkflowRuleType] = WorkflowRuleType.AUTO_ASSIGNMENT

    id: str
    name: str
    applicable_stages: tuple[WorkflowStage, ...]
    assignment_strategy: str = "department-head"
    target_role: str | None = None
    description: str = ""
    enabled: bool = True
    scope: RuleScope = RuleScope.GLOBAL
    project_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ValidationRule:
    rule_type: ClassVar[WorkflowRuleType] = WorkflowRuleType.VALIDATION

    id: str
    name: str
    applicable_stages: tuple[WorkflowStage, ...]
    required_tasks_count: int = 0
    required_files_count: int = 0
    required_documents_count: int = 0
    description: str = ""
    enabled: bool = True
    scope: RuleScope = RuleScope.GLOBAL
    project_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


WorkflowRule = Union[
    StageTransitionRule, ApprovalGateRule, AutoAssignmentRule, ValidationRule,
]

WORKFLOW_RULE_CLASSES: dict[WorkflowRuleType, type] = {
    WorkflowRuleType.STAGE_TRANSITION: StageTransitionRule,
    WorkflowRuleType.APPROVAL: ApprovalGateRule,
    WorkflowRuleType.AUTO_ASSIGNMENT: AutoAssignmentRule,
    WorkflowRuleType.VALIDATION: ValidationRule,
}


@dataclass(frozen=True)
class StageGateVerdict:
    """Result of asking whether a stage may be completed."""

    allowed: bool
    reasons: tuple[str, ...] = ()

    @classmethod
    def from_reasons(cls, reasons: list[str] | tuple[str, ...]) -> StageGateVerdict:
        return cls(allowed=not reasons, reasons=tuple(reasons))


@dataclass(frozen=True)
class StageProgress:
    tasks_complete: int
    tasks_total: int
    percent_complete: int
