"""
Tests for WorkflowRuleStore.
"""

import pytest

from atelier_kernel.domain.storage_keys import PROJECT_WORKFLOW_RULES, WORKFLOW_RULES
from atelier_kernel.domain.values import WORKFLOW_STAGES, RuleScope, WorkflowStage
from atelier_kernel.domain.workflow import (
    ApprovalGateRule,
    StageTransitionConditions,
    StageTransitionRule,
)
from atelier_kernel.exceptions import InvalidRuleError, WorkflowRuleNotFoundError
from atelier_kernel.services.workflow_rule_store import WorkflowRuleStore


def gate_rule(scope=RuleScope.GLOBAL, project_id=None, stages=(WorkflowStage.EXECUTION,)):
    return ApprovalGateRule(
        id="draft",
        name="Site sign-off",
        applicable_stages=stages,
        approver_role="Site Supervisor",
        scope=scope,
        project_id=project_id,
    )


class TestDefaultRule:
    def test_seeded_when_absent(self, workflow_rules, memory_store):
        rules = workflow_rules.rules()
        assert [r.id for r in rules] == ["rule-default-1"]
        default = rules[0]
        assert isinstance(default, StageTransitionRule)
        assert default.name == "Require All Tasks Complete"
        assert default.applicable_stages == WORKFLOW_STAGES
        assert default.conditions.require_all_tasks_complete
        assert default.conditions.block_stage_skipping
        assert default.actions.auto_activate_next_stage
        assert default.actions.notify_next_department
        assert memory_store.get(WORKFLOW_RULES)[0]["rule_type"] == "stage-transition"

    def test_not_reseeded_after_delete(self, workflow_rules, memory_store):
        workflow_rules.delete_rule("rule-default-1")
        again = WorkflowRuleStore(memory_store, project_id="other")
        assert again.rules() == []


class TestCrud:
    def test_create_global(self, workflow_rules, clock):
        rule = workflow_rules.create_rule(gate_rule())
        assert rule.id != "draft"
        assert rule.created_at == clock.now()
        assert workflow_rules.get_rule(rule.id) == rule

    def test_project_rule_filed_under_bound_project(self, workflow_rules, memory_store):
        rule = workflow_rules.create_rule(gate_rule(scope=RuleScope.PROJECT))
        assert rule.project_id == workflow_rules.project_id
        stored = memory_store.get(PROJECT_WORKFLOW_RULES)
        assert [r["id"] for r in stored[workflow_rules.project_id]] == [rule.id]

    def test_project_rule_without_project_refused(self, memory_store):
        unbound = WorkflowRuleStore(memory_store)
        with pytest.raises(InvalidRuleError):
            unbound.create_rule(gate_rule(scope=RuleScope.PROJECT))

    def test_other_projects_rules_invisible(self, workflow_rules, memory_store):
        other = WorkflowRuleStore(memory_store, project_id="someone-else")
        other.create_rule(gate_rule(scope=RuleScope.PROJECT))
        assert [r.id for r in workflow_rules.rules()] == ["rule-default-1"]

    def test_all_rules_spans_every_project(self, workflow_rules, memory_store):
        other = WorkflowRuleStore(memory_store, project_id="someone-else")
        rule = other.create_rule(gate_rule(scope=RuleScope.PROJECT))
        assert [r.id for r in workflow_rules.all_rules()] == ["rule-default-1", rule.id]
        assert [r.id for r in WorkflowRuleStore(memory_store).all_rules()] == [
            "rule-default-1", rule.id,
        ]

    def test_update_and_toggle(self, workflow_rules):
        updated = workflow_rules.update_rule(
            "rule-default-1",
            conditions=StageTransitionConditions(require_all_files_uploaded=True),
        )
        assert updated.conditions.require_all_files_uploaded
        assert workflow_rules.toggle_rule("rule-default-1").enabled is False
        assert workflow_rules.get_rule("rule-default-1").enabled is False

    def test_update_refuses_scope_change(self, workflow_rules):
        with pytest.raises(ValueError):
            workflow_rules.update_rule("rule-default-1", scope=RuleScope.PROJECT)

    def test_unknown_rule(self, workflow_rules):
        with pytest.raises(WorkflowRuleNotFoundError):
            workflow_rules.toggle_rule("nope")


class TestActiveRulesForStage:
    def test_filters_enabled_and_stage(self, workflow_rules):
        execution_rule = workflow_rules.create_rule(gate_rule())
        design = workflow_rules.get_active_rules_for_stage(WorkflowStage.DESIGN)
        execution = workflow_rules.get_active_rules_for_stage(WorkflowStage.EXECUTION)

        assert [r.id for r in design] == ["rule-default-1"]
        assert [r.id for r in execution] == ["rule-default-1", execution_rule.id]

        workflow_rules.toggle_rule("rule-default-1")
        assert workflow_rules.get_active_rules_for_stage(WorkflowStage.DESIGN) == []
