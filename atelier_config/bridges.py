"""
Config -> Kernel Bridges.

Functions that convert rule set definitions into kernel domain objects.
These live in atelier_config (the producer) because the kernel must NEVER
import atelier_config.

Usage:
    from atelier_config.bridges import build_approval_rule, build_workflow_rule

    rule_set = load_rule_set()
    rules = [build_approval_rule(d) for d in rule_set.approval_rules]

Invalid enum values (stage, approver type, priority, ...) raise
``ValueError`` from the enum constructor; unknown condition or action
flags raise ``TypeError``.
"""

from __future__ import annotations

from datetime import datetime

from atelier_config.schema import (
    ApprovalConfigDef,
    ApprovalRuleDef,
    MatchingCriteriaDef,
    WorkflowRuleDef,
)
from atelier_kernel.domain.approval import ApprovalConfig, ApprovalRule, MatchingCriteria
from atelier_kernel.domain.values import (
    ApprovalEntityType,
    ApproverType,
    DocumentCategory,
    RuleScope,
    TaskPriority,
    WorkflowRuleType,
    WorkflowStage,
)
from atelier_kernel.domain.workflow import (
    ApprovalGateRule,
    AutoAssignmentRule,
    StageTransitionActions,
    StageTransitionConditions,
    StageTransitionRule,
    ValidationRule,
    WorkflowRule,
)


def build_approval_config(
    config_def: ApprovalConfigDef,
    *,
    rule_id: str,
    entity_type: ApprovalEntityType,
    order: int,
) -> ApprovalConfig:
    return ApprovalConfig(
        id=f"{rule_id}-level-{order}",
        entity_type=entity_type,
        name=config_def.name,
        approver_type=ApproverType(config_def.approver_type),
        order=order,
        description=config_def.description,
        approver_role=config_def.approver_role,
        approver_user_id=config_def.approver_user_id,
        required=config_def.required,
        allow_delegation=config_def.allow_delegation,
        require_comment=config_def.require_comment,
        notify_approver=config_def.notify_approver,
        auto_reminder=config_def.auto_reminder,
        reminder_days=config_def.reminder_days,
        expiry_days=config_def.expiry_days,
    )


def build_matching_criteria(criteria_def: MatchingCriteriaDef) -> MatchingCriteria:
    return MatchingCriteria(
        stages=tuple(WorkflowStage(s) for s in criteria_def.stages),
        priorities=tuple(TaskPriority(p) for p in criteria_def.priorities),
        document_categories=tuple(
            DocumentCategory(c) for c in criteria_def.document_categories
        ),
        title_pattern=criteria_def.title_pattern,
        tags=criteria_def.tags,
    )


def build_approval_rule(
    rule_def: ApprovalRuleDef, created_at: datetime | None = None,
) -> ApprovalRule:
    """Build an ``ApprovalRule`` keeping the rule set's id."""
    entity_type = ApprovalEntityType(rule_def.entity_type)
    return ApprovalRule(
        id=rule_def.rule_id,
        name=rule_def.name,
        entity_type=entity_type,
        approval_configs=tuple(
            build_approval_config(
                c, rule_id=rule_def.rule_id, entity_type=entity_type, order=i,
            )
            for i, c in enumerate(rule_def.approval_configs)
        ),
        matching_criteria=build_matching_criteria(rule_def.matching_criteria),
        scope=RuleScope(rule_def.scope),
        project_id=rule_def.project_id,
        description=rule_def.description,
        enabled=rule_def.enabled,
        auto_apply=rule_def.auto_apply,
        created_at=created_at,
        updated_at=created_at,
    )


def build_workflow_rule(
    rule_def: WorkflowRuleDef, created_at: datetime | None = None,
) -> WorkflowRule:
    """Build the workflow rule class named by ``rule_def.rule_type``."""
    rule_type = WorkflowRuleType(rule_def.rule_type)
    common = dict(
        id=rule_def.rule_id,
        name=rule_def.name,
        applicable_stages=tuple(WorkflowStage(s) for s in rule_def.applicable_stages),
        description=rule_def.description,
        enabled=rule_def.enabled,
        scope=RuleScope(rule_def.scope),
        project_id=rule_def.project_id,
        created_at=created_at,
        updated_at=created_at,
    )

    if rule_type == WorkflowRuleType.STAGE_TRANSITION:
        return StageTransitionRule(
            conditions=StageTransitionConditions(**dict(rule_def.conditions)),
            actions=StageTransitionActions(**dict(rule_def.actions)),
            **common,
        )
    if rule_type == WorkflowRuleType.APPROVAL:
        if not rule_def.approver_role:
            raise ValueError(f"Approval workflow rule {rule_def.rule_id!r} needs approver_role")
        return ApprovalGateRule(
            approver_role=rule_def.approver_role,
            required=rule_def.required,
            **common,
        )
    if rule_type == WorkflowRuleType.AUTO_ASSIGNMENT:
        return AutoAssignmentRule(
            assignment_strategy=rule_def.assignment_strategy,
            target_role=rule_def.target_role,
            **common,
        )
    return ValidationRule(
        required_tasks_count=rule_def.required_tasks_count,
        required_files_count=rule_def.required_files_count,
        required_documents_count=rule_def.required_documents_count,
        **common,
    )
