"""
atelier_kernel.services.workflow_rule_store -- Workflow rule persistence.

Responsibility:
    CRUD for the rules the stage gate evaluates.  Global rules live under
    ``workflowRules``; project rules under ``projectWorkflowRules`` as a
    map of project id to list.  A store bound to a project reads the
    global rules plus that project's rules.

Architecture position:
    Kernel > Services.  Evaluation happens in
    ``atelier_engines.workflow_gate``; this module only stores rules.

Invariants enforced:
    - When ``workflowRules`` has never been written, the global list is
      seeded with ``DEFAULT_WORKFLOW_RULES``.
    - A project-scoped rule is stored under its own ``project_id``.

Failure modes:
    - WorkflowRuleNotFoundError for an unknown rule id.
    - InvalidRuleError for a project-scoped rule with no project to file
      it under, or a duplicate id.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from atelier_engines.workflow_gate import rules_for_stage
from atelier_kernel.db.store import KeyValueStore
from atelier_kernel.domain.clock import Clock, SystemClock
from atelier_kernel.domain.serialization import decode_collection, to_payload
from atelier_kernel.domain.storage_keys import PROJECT_WORKFLOW_RULES, WORKFLOW_RULES
from atelier_kernel.domain.values import WORKFLOW_STAGES, RuleScope, WorkflowStage
from atelier_kernel.domain.workflow import (
    StageTransitionActions,
    StageTransitionConditions,
    StageTransitionRule,
    WorkflowRule,
)
from atelier_kernel.exceptions import InvalidRuleError, WorkflowRuleNotFoundError
from atelier_kernel.logging_config import get_logger

logger = get_logger("services.workflow_rule_store")

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)

DEFAULT_WORKFLOW_RULES: tuple[WorkflowRule, ...] = (
    StageTransitionRule(
        id="rule-default-1",
        name="Require All Tasks Complete",
        description="All tasks must be completed before moving to next stage",
        applicable_stages=WORKFLOW_STAGES,
        conditions=StageTransitionConditions(
            require_all_tasks_complete=True,
            block_stage_skipping=True,
        ),
        actions=StageTransitionActions(
            auto_activate_next_stage=True,
            notify_next_department=True,
        ),
        created_at=_EPOCH,
        updated_at=_EPOCH,
    ),
)


class WorkflowRuleStore:
    """Workflow rules visible to one project (or only global ones)."""

    def __init__(
        self,
        store: KeyValueStore,
        project_id: str | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._project_id = project_id
        self._clock = clock or SystemClock()
        if self._store.get(WORKFLOW_RULES) is None:
            self._store.set(WORKFLOW_RULES, to_payload(list(DEFAULT_WORKFLOW_RULES)))
            logger.info("default_workflow_rules_seeded")

    @property
    def project_id(self) -> str | None:
        return self._project_id

    # -----------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------

    def _load_global(self) -> list[WorkflowRule]:
        return decode_collection(
            WorkflowRule, WORKFLOW_RULES, self._store.get(WORKFLOW_RULES, []),
        )

    def _load_project_map(self) -> dict[str, list[WorkflowRule]]:
        raw: dict[str, list[Any]] = self._store.get(PROJECT_WORKFLOW_RULES, {})
        return {
            project_id: decode_collection(WorkflowRule, PROJECT_WORKFLOW_RULES, items)
            for project_id, items in raw.items()
        }

    def _save(
        self,
        global_rules: list[WorkflowRule],
        project_map: dict[str, list[WorkflowRule]],
    ) -> None:
        self._store.set(WORKFLOW_RULES, to_payload(global_rules))
        self._store.set(PROJECT_WORKFLOW_RULES, to_payload(project_map))

    def _locate(
        self, rule_id: str,
    ) -> tuple[list[WorkflowRule], dict[str, list[WorkflowRule]], list[WorkflowRule], int]:
        """Find ``rule_id`` in either partition.

        Returns the loaded global list and project map, the list holding the
        rule, and its index there.
        """
        global_rules = self._load_global()
        project_map = self._load_project_map()
        for bucket in (global_rules, *project_map.values()):
            for index, rule in enumerate(bucket):
                if rule.id == rule_id:
                    return global_rules, project_map, bucket, index
        raise WorkflowRuleNotFoundError(rule_id)

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def create_rule(self, rule: WorkflowRule) -> WorkflowRule:
        """Store ``rule`` under a fresh id with current timestamps.

        A project-scoped rule without ``project_id`` is filed under the
        store's project.
        """
        now = self._clock.now()
        changes: dict[str, Any] = {
            "id": f"workflow-rule-{uuid4()}",
            "created_at": now,
            "updated_at": now,
        }
        if rule.scope == RuleScope.PROJECT and not rule.project_id:
            changes["project_id"] = self._project_id
        return self.add_rule(replace(rule, **changes))

    def add_rule(self, rule: WorkflowRule) -> WorkflowRule:
        """Store a fully formed rule, keeping its id."""
        if rule.scope == RuleScope.PROJECT and not rule.project_id:
            raise InvalidRuleError(rule.name, "project-scoped rule needs a project id")

        global_rules = self._load_global()
        project_map = self._load_project_map()
        existing = global_rules + [r for bucket in project_map.values() for r in bucket]
        if any(r.id == rule.id for r in existing):
            raise InvalidRuleError(rule.name, f"rule id {rule.id} already exists")

        if rule.scope == RuleScope.GLOBAL:
            global_rules.append(rule)
        else:
            project_map.setdefault(rule.project_id, []).append(rule)
        self._save(global_rules, project_map)
        logger.info(
            "workflow_rule_created",
            extra={
                "rule_id": rule.id,
                "rule_type": rule.rule_type.value,
                "scope": rule.scope.value,
            },
        )
        return rule

    def update_rule(self, rule_id: str, **changes: Any) -> WorkflowRule:
        """Apply field changes in place.  Scope and project stay fixed."""
        fixed = {"id", "scope", "project_id", "created_at"} & set(changes)
        if fixed:
            raise ValueError(f"Cannot update workflow rule fields: {sorted(fixed)}")
        if "applicable_stages" in changes:
            changes["applicable_stages"] = tuple(
                WorkflowStage(s) for s in changes["applicable_stages"]
            )

        global_rules, project_map, bucket, index = self._locate(rule_id)
        changes["updated_at"] = self._clock.now()
        bucket[index] = replace(bucket[index], **changes)
        self._save(global_rules, project_map)
        logger.info(
            "workflow_rule_updated",
            extra={"rule_id": rule_id, "fields": sorted(changes)},
        )
        return bucket[index]

    def delete_rule(self, rule_id: str) -> None:
        global_rules, project_map, bucket, index = self._locate(rule_id)
        del bucket[index]
        self._save(global_rules, project_map)
        logger.info("workflow_rule_deleted", extra={"rule_id": rule_id})

    def toggle_rule(self, rule_id: str) -> WorkflowRule:
        _, _, bucket, index = self._locate(rule_id)
        return self.update_rule(rule_id, enabled=not bucket[index].enabled)

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def get_rule(self, rule_id: str) -> WorkflowRule:
        _, _, bucket, index = self._locate(rule_id)
        return bucket[index]

    def rules(self) -> list[WorkflowRule]:
        """Global rules followed by the bound project's rules."""
        rules = self._load_global()
        if self._project_id is not None:
            rules.extend(self._load_project_map().get(self._project_id, []))
        return rules

    def all_rules(self) -> list[WorkflowRule]:
        """Global rules followed by every project's rules."""
        rules = self._load_global()
        for project_rules in self._load_project_map().values():
            rules.extend(project_rules)
        return rules

    def get_active_rules_for_stage(self, stage: WorkflowStage) -> list[WorkflowRule]:
        return rules_for_stage(self.rules(), stage)
