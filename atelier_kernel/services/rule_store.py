"""
atelier_kernel.services.rule_store -- Approval rule persistence.

Responsibility:
    CRUD for approval rules.  Global rules live under ``approvalRules`` as
    a list; project rules live under ``projectApprovalRules`` as a map of
    project id to list.  Reads merge both.

Architecture position:
    Kernel > Services.  Validation of matching criteria is delegated to
    ``atelier_engines.rule_matcher.validate_criteria``.

Invariants enforced:
    - A project-scoped rule always names its project.
    - Every stored rule has at least one approval config and usable
      matching criteria.
    - Rule ids are unique across both partitions.

Failure modes:
    - RuleNotFoundError for an unknown rule id.
    - InvalidRuleError for a rule that breaks one of the invariants above.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import fields, replace
from typing import Any
from uuid import uuid4

from atelier_engines.rule_matcher import validate_criteria
from atelier_kernel.db.store import KeyValueStore
from atelier_kernel.domain.approval import ApprovalConfig, ApprovalRule, MatchingCriteria
from atelier_kernel.domain.clock import Clock, SystemClock
from atelier_kernel.domain.serialization import decode_collection, to_payload
from atelier_kernel.domain.storage_keys import APPROVAL_RULES, PROJECT_APPROVAL_RULES
from atelier_kernel.domain.values import ApprovalEntityType, RuleScope
from atelier_kernel.exceptions import InvalidRuleError, RuleNotFoundError
from atelier_kernel.logging_config import get_logger

logger = get_logger("services.rule_store")


def check_rule(rule: ApprovalRule) -> None:
    """Raise InvalidRuleError when ``rule`` cannot be stored."""
    if rule.scope == RuleScope.PROJECT and not rule.project_id:
        raise InvalidRuleError(rule.name, "project-scoped rule needs a project id")
    if not rule.approval_configs:
        raise InvalidRuleError(rule.name, "at least one approval level is required")
    problem = validate_criteria(rule.matching_criteria)
    if problem is not None:
        raise InvalidRuleError(rule.name, problem)


class ApprovalRuleStore:
    """Approval rules across all projects, backed by a ``KeyValueStore``."""

    def __init__(self, store: KeyValueStore, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or SystemClock()

    # -----------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------

    def _load(self) -> list[ApprovalRule]:
        rules = decode_collection(
            ApprovalRule, APPROVAL_RULES, self._store.get(APPROVAL_RULES, []),
        )
        project_map: dict[str, list[Any]] = self._store.get(PROJECT_APPROVAL_RULES, {})
        for items in project_map.values():
            rules.extend(decode_collection(ApprovalRule, PROJECT_APPROVAL_RULES, items))
        return rules

    def _save(self, rules: list[ApprovalRule]) -> None:
        global_rules = [r for r in rules if r.scope == RuleScope.GLOBAL]
        project_map: dict[str, list[ApprovalRule]] = {}
        for rule in rules:
            if rule.scope == RuleScope.PROJECT and rule.project_id:
                project_map.setdefault(rule.project_id, []).append(rule)
        self._store.set(APPROVAL_RULES, to_payload(global_rules))
        self._store.set(PROJECT_APPROVAL_RULES, to_payload(project_map))

    def _index_of(self, rules: list[ApprovalRule], rule_id: str) -> int:
        for index, rule in enumerate(rules):
            if rule.id == rule_id:
                return index
        raise RuleNotFoundError(rule_id)

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def create_rule(
        self,
        *,
        name: str,
        entity_type: ApprovalEntityType,
        approval_configs: Sequence[ApprovalConfig],
        matching_criteria: MatchingCriteria | None = None,
        scope: RuleScope = RuleScope.GLOBAL,
        project_id: str | None = None,
        description: str = "",
        enabled: bool = True,
        auto_apply: bool = True,
    ) -> ApprovalRule:
        """Validate and store a new rule with a generated id."""
        now = self._clock.now()
        rule = ApprovalRule(
            id=f"rule-{uuid4()}",
            name=name,
            entity_type=entity_type,
            approval_configs=tuple(approval_configs),
            matching_criteria=matching_criteria or MatchingCriteria(),
            scope=scope,
            project_id=project_id,
            description=description,
            enabled=enabled,
            auto_apply=auto_apply,
            created_at=now,
            updated_at=now,
        )
        return self.add_rule(rule)

    def add_rule(self, rule: ApprovalRule) -> ApprovalRule:
        """Store a fully formed rule, keeping its id.

        Raises:
            InvalidRuleError: When the rule is invalid or its id is taken.
        """
        check_rule(rule)
        rules = self._load()
        if any(r.id == rule.id for r in rules):
            raise InvalidRuleError(rule.name, f"rule id {rule.id} already exists")
        rules.append(rule)
        self._save(rules)
        logger.info(
            "approval_rule_created",
            extra={
                "rule_id": rule.id,
                "scope": rule.scope.value,
                "entity_type": rule.entity_type.value,
            },
        )
        return rule

    def update_rule(self, rule_id: str, **changes: Any) -> ApprovalRule:
        """Apply field changes, re-validate and bump ``updated_at``."""
        known = {f.name for f in fields(ApprovalRule)} - {"id", "created_at"}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Cannot update approval rule fields: {sorted(unknown)}")
        if "approval_configs" in changes:
            changes["approval_configs"] = tuple(changes["approval_configs"])

        rules = self._load()
        index = self._index_of(rules, rule_id)
        changes["updated_at"] = self._clock.now()
        updated = replace(rules[index], **changes)
        check_rule(updated)
        rules[index] = updated
        self._save(rules)
        logger.info(
            "approval_rule_updated",
            extra={"rule_id": rule_id, "fields": sorted(changes)},
        )
        return updated

    def delete_rule(self, rule_id: str) -> None:
        rules = self._load()
        del rules[self._index_of(rules, rule_id)]
        self._save(rules)
        logger.info("approval_rule_deleted", extra={"rule_id": rule_id})

    def toggle_rule(self, rule_id: str) -> ApprovalRule:
        """Flip ``enabled``."""
        rules = self._load()
        index = self._index_of(rules, rule_id)
        rule = rules[index]
        rules[index] = replace(
            rule, enabled=not rule.enabled, updated_at=self._clock.now(),
        )
        self._save(rules)
        logger.info(
            "approval_rule_toggled",
            extra={"rule_id": rule_id, "enabled": rules[index].enabled},
        )
        return rules[index]

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def get_rule(self, rule_id: str) -> ApprovalRule:
        rules = self._load()
        return rules[self._index_of(rules, rule_id)]

    def all_rules(self) -> list[ApprovalRule]:
        return self._load()

    def get_global_rules(self) -> list[ApprovalRule]:
        return [r for r in self._load() if r.scope == RuleScope.GLOBAL]

    def get_project_rules(self, project_id: str) -> list[ApprovalRule]:
        return [
            r for r in self._load()
            if r.scope == RuleScope.PROJECT and r.project_id == project_id
        ]

    def get_active_rules(
        self,
        scope: RuleScope | None = None,
        project_id: str | None = None,
    ) -> list[ApprovalRule]:
        """Enabled rules, optionally narrowed by scope and project.

        With ``project_id`` the result keeps global rules plus that
        project's rules.
        """
        rules = [r for r in self._load() if r.enabled]
        if scope is not None:
            rules = [r for r in rules if r.scope == scope]
        if project_id is not None:
            rules = [
                r for r in rules
                if r.scope == RuleScope.GLOBAL or r.project_id == project_id
            ]
        return rules

    def get_rules_by_entity_type(
        self, entity_type: ApprovalEntityType,
    ) -> list[ApprovalRule]:
        return [r for r in self._load() if r.entity_type == entity_type]
