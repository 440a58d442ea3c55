"""
atelier_services.rule_application -- Turn matching rules into approval requests.

Responsibility:
    When a task, document or stage is created (or when rules are synced to
    an existing project), find the active approval rules that match it and
    open one approval request per auto-applied rule.  Thin coordinator --
    matching is delegated to ``atelier_engines.rule_matcher``, approver
    resolution and persistence to ``ApprovalService``.

Architecture position:
    Services layer.  May import from atelier_engines/ (pure engines) and
    atelier_kernel/ (domain, db, services).

Invariants enforced:
    - Each matching rule with ``auto_apply`` spawns its own request; there
      is no tie-break between rules.
    - A request's source is ``global-rule`` or ``project-rule`` after the
      rule's scope, and its name is the entity title or else its stage.
    - Sync only touches entities that have no approval request yet.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from atelier_engines.rule_matcher import match_rules
from atelier_kernel.db.store import KeyValueStore
from atelier_kernel.domain.approval import ApprovalResult, ApprovalRule
from atelier_kernel.domain.clock import Clock
from atelier_kernel.domain.entities import (
    ApprovableEntity,
    TeamMember,
    entity_display_name,
)
from atelier_kernel.domain.values import ApprovalSource, RuleScope
from atelier_kernel.exceptions import NoActorError
from atelier_kernel.logging_config import LogContext, get_logger
from atelier_kernel.services.approval_service import ApprovalService
from atelier_kernel.services.rule_store import ApprovalRuleStore

logger = get_logger("services.rule_application")


def _source_for(rule: ApprovalRule) -> ApprovalSource:
    if rule.scope == RuleScope.GLOBAL:
        return ApprovalSource.GLOBAL_RULE
    return ApprovalSource.PROJECT_RULE


class RuleApplicator:
    """Applies approval rules to project entities."""

    def __init__(
        self,
        rule_store: ApprovalRuleStore,
        store: KeyValueStore,
        team_members: Sequence[TeamMember] = (),
        clock: Clock | None = None,
    ) -> None:
        self._rule_store = rule_store
        self._store = store
        self._team_members = tuple(team_members)
        self._clock = clock

    def approvals_for(self, project_id: str) -> ApprovalService:
        """Approval service bound to ``project_id`` sharing this store."""
        return ApprovalService(
            self._store, project_id, self._team_members, clock=self._clock,
        )

    def get_matching_rules(
        self, entity: ApprovableEntity, project_id: str | None = None,
    ) -> tuple[ApprovalRule, ...]:
        """Active global rules plus ``project_id``'s rules that match ``entity``.

        Without ``project_id`` only global rules are considered.
        """
        if project_id is None:
            active = self._rule_store.get_active_rules(scope=RuleScope.GLOBAL)
        else:
            active = self._rule_store.get_active_rules(project_id=project_id)
        return match_rules(entity, active)

    def apply_rules_to_entity(
        self,
        entity: ApprovableEntity,
        project_id: str,
        actor: TeamMember | None,
    ) -> list[ApprovalResult]:
        """Create one request per matching auto-applied rule.

        Returns:
            One result per request attempted; a single failure carrying
            ``NoActorError`` when ``actor`` is None.
        """
        if actor is None:
            logger.warning(
                "rule_application_skipped",
                extra={"entity_id": entity.id, "reason": "no_actor"},
            )
            return [ApprovalResult.fail(NoActorError("apply_rules_to_entity"))]

        approvals = self.approvals_for(project_id)
        results: list[ApprovalResult] = []
        with LogContext.bind(project_id=project_id, actor_id=actor.id):
            for rule in self.get_matching_rules(entity, project_id):
                if not rule.auto_apply:
                    continue
                results.append(approvals.create_request(
                    entity_type=rule.entity_type,
                    entity_id=entity.id,
                    entity_name=entity_display_name(entity),
                    stage=entity.stage,
                    approval_configs=rule.approval_configs,
                    requested_by=actor,
                    source=_source_for(rule),
                    rule_id=rule.id,
                ))

            logger.info(
                "rules_applied_to_entity",
                extra={
                    "entity_type": entity.entity_type.value,
                    "entity_id": entity.id,
                    "requests_created": sum(1 for r in results if r.success),
                },
            )
        return results

    def sync_rules_to_project(
        self,
        project_id: str,
        entities: Iterable[ApprovableEntity],
        actor: TeamMember | None,
    ) -> int:
        """Apply rules to every entity that has no approval request yet.

        Returns:
            Number of requests created.
        """
        if actor is None:
            logger.warning(
                "rule_sync_skipped",
                extra={"project_id": project_id, "reason": "no_actor"},
            )
            return 0

        approvals = self.approvals_for(project_id)
        created = 0
        for entity in entities:
            if approvals.has_entity_approval(entity.entity_type, entity.id):
                continue
            results = self.apply_rules_to_entity(entity, project_id, actor)
            created += sum(1 for r in results if r.success)

        logger.info(
            "rules_synced_to_project",
            extra={"project_id": project_id, "requests_created": created},
        )
        return created
