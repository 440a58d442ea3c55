"""
Tests for ApprovalRuleStore.

Tests cover:
- create/update/delete/toggle round trips through the key-value store
- partitioning into the global list and the per-project map
- active-rule filtering by scope and project
- validation failures (project scope without id, empty or bad criteria,
  no approval levels) and unknown ids
"""

import pytest

from atelier_kernel.domain.approval import ApprovalConfig, MatchingCriteria
from atelier_kernel.domain.storage_keys import APPROVAL_RULES, PROJECT_APPROVAL_RULES
from atelier_kernel.domain.values import (
    ApprovalEntityType,
    ApproverType,
    RuleScope,
    TaskPriority,
    WorkflowStage,
)
from atelier_kernel.exceptions import InvalidRuleError, RuleNotFoundError

DESIGN_ONLY = MatchingCriteria(stages=(WorkflowStage.DESIGN,))
CONFIG = ApprovalConfig(
    id="cfg-0",
    entity_type=ApprovalEntityType.TASK,
    name="PM Review",
    approver_type=ApproverType.PROJECT_MANAGER,
)


def create_rule(rule_store, name="Design tasks", **kwargs):
    defaults = dict(
        name=name,
        entity_type=ApprovalEntityType.TASK,
        approval_configs=[CONFIG],
        matching_criteria=DESIGN_ONLY,
    )
    defaults.update(kwargs)
    return rule_store.create_rule(**defaults)


class TestCreate:
    def test_global_rule_stored_in_list(self, rule_store, memory_store, clock):
        rule = create_rule(rule_store)

        assert rule.id.startswith("rule-")
        assert rule.created_at == clock.now()
        assert rule.approval_configs == (CONFIG,)
        assert [r["id"] for r in memory_store.get(APPROVAL_RULES)] == [rule.id]
        assert memory_store.get(PROJECT_APPROVAL_RULES) == {}

    def test_project_rule_stored_in_map(self, rule_store, memory_store):
        rule = create_rule(rule_store, scope=RuleScope.PROJECT, project_id="p-1")

        stored = memory_store.get(PROJECT_APPROVAL_RULES)
        assert [r["id"] for r in stored["p-1"]] == [rule.id]
        assert memory_store.get(APPROVAL_RULES) == []

    def test_round_trip(self, rule_store):
        rule = create_rule(rule_store)
        assert rule_store.get_rule(rule.id) == rule

    def test_project_scope_needs_project_id(self, rule_store):
        with pytest.raises(InvalidRuleError):
            create_rule(rule_store, scope=RuleScope.PROJECT)

    def test_empty_criteria_rejected(self, rule_store):
        with pytest.raises(InvalidRuleError, match="At least one matching criterion"):
            create_rule(rule_store, matching_criteria=MatchingCriteria())

    def test_bad_regex_rejected(self, rule_store):
        with pytest.raises(InvalidRuleError, match="Invalid regex"):
            create_rule(rule_store, matching_criteria=MatchingCriteria(title_pattern="[a-"))

    def test_no_levels_rejected(self, rule_store):
        with pytest.raises(InvalidRuleError):
            create_rule(rule_store, approval_configs=[])

    def test_add_rule_refuses_duplicate_id(self, rule_store):
        rule = create_rule(rule_store)
        with pytest.raises(InvalidRuleError):
            rule_store.add_rule(rule)


class TestUpdateDeleteToggle:
    def test_update_changes_fields(self, rule_store, clock):
        rule = create_rule(rule_store)
        clock.advance(30)
        updated = rule_store.update_rule(
            rule.id,
            name="High priority design",
            matching_criteria=MatchingCriteria(priorities=(TaskPriority.HIGH,)),
        )
        assert updated.name == "High priority design"
        assert updated.updated_at == clock.now()
        assert updated.created_at == rule.created_at
        assert rule_store.get_rule(rule.id) == updated

    def test_update_moves_between_partitions(self, rule_store):
        rule = create_rule(rule_store)
        rule_store.update_rule(rule.id, scope=RuleScope.PROJECT, project_id="p-9")
        assert rule_store.get_global_rules() == []
        assert [r.id for r in rule_store.get_project_rules("p-9")] == [rule.id]

    def test_update_revalidates(self, rule_store):
        rule = create_rule(rule_store)
        with pytest.raises(InvalidRuleError):
            rule_store.update_rule(rule.id, matching_criteria=MatchingCriteria())
        assert rule_store.get_rule(rule.id) == rule

    def test_update_refuses_id(self, rule_store):
        rule = create_rule(rule_store)
        with pytest.raises(ValueError):
            rule_store.update_rule(rule.id, id="other")

    def test_toggle(self, rule_store):
        rule = create_rule(rule_store)
        assert rule_store.toggle_rule(rule.id).enabled is False
        assert rule_store.toggle_rule(rule.id).enabled is True

    def test_delete(self, rule_store):
        rule = create_rule(rule_store)
        rule_store.delete_rule(rule.id)
        assert rule_store.all_rules() == []

    @pytest.mark.parametrize("operation", ["get_rule", "delete_rule", "toggle_rule"])
    def test_unknown_id(self, rule_store, operation):
        with pytest.raises(RuleNotFoundError):
            getattr(rule_store, operation)("rule-missing")


class TestQueries:
    @pytest.fixture
    def rules(self, rule_store):
        return {
            "global": create_rule(rule_store, "Global"),
            "disabled": create_rule(rule_store, "Disabled", enabled=False),
            "p1": create_rule(rule_store, "P1", scope=RuleScope.PROJECT, project_id="p-1"),
            "p2": create_rule(rule_store, "P2", scope=RuleScope.PROJECT, project_id="p-2"),
            "doc": create_rule(
                rule_store, "Docs", entity_type=ApprovalEntityType.DOCUMENT,
            ),
        }

    def test_active_rules_excludes_disabled(self, rule_store, rules):
        ids = {r.id for r in rule_store.get_active_rules()}
        assert rules["disabled"].id not in ids
        assert len(ids) == 4

    def test_active_rules_for_project(self, rule_store, rules):
        names = [r.name for r in rule_store.get_active_rules(project_id="p-1")]
        assert names == ["Global", "Docs", "P1"]

    def test_active_rules_by_scope(self, rule_store, rules):
        names = [r.name for r in rule_store.get_active_rules(scope=RuleScope.PROJECT)]
        assert names == ["P1", "P2"]

    def test_global_and_project_listing(self, rule_store, rules):
        assert [r.name for r in rule_store.get_global_rules()] == ["Global", "Disabled", "Docs"]
        assert [r.name for r in rule_store.get_project_rules("p-2")] == ["P2"]

    def test_by_entity_type(self, rule_store, rules):
        docs = rule_store.get_rules_by_entity_type(ApprovalEntityType.DOCUMENT)
        assert docs == [rules["doc"]]
