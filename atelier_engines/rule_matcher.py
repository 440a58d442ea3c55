"""
atelier_engines.rule_matcher -- Pure approval rule matching.

Responsibility:
    Decide which approval rules apply to a task, stage document or stage,
    and support the rule settings screen with match previews, criteria
    validation and human-readable criteria summaries.

Architecture position:
    Engines -- pure evaluation layer, zero I/O.
    May only import atelier_kernel/domain/ types and logging.

Invariants enforced:
    - Purity: ``match_rules`` never mutates the entity or the rule list and
      returns the same rules, in input order, for the same inputs.
    - Explicit entity kind: the entity's ``entity_type`` tag selects the
      candidate rules; fields are never sniffed.
    - Empty criteria are "no constraint": a rule whose criteria are all
      empty matches every entity of its type.
    - No tie-break: every matching rule is returned and each spawns its own
      approval chain.

Failure modes:
    - An invalid title regex is logged and that criterion is skipped; the
      remaining criteria still decide the match.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from atelier_engines.tracer import traced_engine
from atelier_kernel.domain.approval import ApprovalRule, MatchingCriteria
from atelier_kernel.domain.entities import ApprovableEntity
from atelier_kernel.domain.values import ApprovalEntityType
from atelier_kernel.logging_config import get_logger

logger = get_logger("engines.rule_matcher")


def matches_rule(entity: ApprovableEntity, rule: ApprovalRule) -> bool:
    """Check every populated criterion of ``rule`` against ``entity``.

    Criteria:
    1. Stage membership.
    2. Priority membership (only tasks carry a priority; other entities
       fail a populated priority criterion).
    3. Document category membership (only documents carry a category).
    4. Title pattern, case-insensitive ``re.search``, when both the pattern
       and the entity title are present.
    5. Tags, any overlap, when the entity has tags.
    """
    criteria = rule.matching_criteria

    if criteria.stages and entity.stage not in criteria.stages:
        return False

    if criteria.priorities:
        priority = (
            entity.priority
            if entity.entity_type == ApprovalEntityType.TASK
            else None
        )
        if priority is None or priority not in criteria.priorities:
            return False

    if criteria.document_categories:
        category = (
            entity.category
            if entity.entity_type == ApprovalEntityType.DOCUMENT
            else None
        )
        if category is None or category not in criteria.document_categories:
            return False

    if criteria.title_pattern and entity.title:
        try:
            if not re.search(criteria.title_pattern, entity.title, re.IGNORECASE):
                return False
        except re.error:
            logger.warning(
                "invalid_title_pattern",
                extra={"rule_id": rule.id, "pattern": criteria.title_pattern},
            )

    if criteria.tags and entity.tags:
        if not set(criteria.tags) & set(entity.tags):
            return False

    return True


@traced_engine("rule_matcher", "1.0", fingerprint_fields=("entity_type",))
def match_rules(
    entity: ApprovableEntity,
    active_rules: Sequence[ApprovalRule],
    entity_type: ApprovalEntityType | None = None,
) -> tuple[ApprovalRule, ...]:
    """Return the enabled rules of the entity's type whose criteria match.

    Args:
        entity: The task, document or stage snapshot.
        active_rules: Candidate rules (usually global + current project).
        entity_type: Overrides ``entity.entity_type`` when given.

    Returns:
        Matching rules in input order.
    """
    kind = entity_type or entity.entity_type
    return tuple(
        rule
        for rule in active_rules
        if rule.enabled
        and rule.entity_type == kind
        and matches_rule(entity, rule)
    )


def count_rule_matches(rule: ApprovalRule, entities: Iterable[ApprovableEntity]) -> int:
    """Preview how many existing entities a rule would match.

    Only the criteria are checked, as in the settings preview: the rule's
    entity type and enabled flag are ignored.
    """
    return sum(1 for entity in entities if matches_rule(entity, rule))


def validate_criteria(criteria: MatchingCriteria) -> str | None:
    """Return an error message for unusable criteria, or None when valid."""
    if criteria.is_empty:
        return "At least one matching criterion must be specified"

    if criteria.title_pattern:
        try:
            re.compile(criteria.title_pattern)
        except re.error:
            return "Invalid regex pattern. Please use valid regex syntax."

    return None


def describe_criteria(criteria: MatchingCriteria) -> str:
    """Summarize criteria for display, e.g. ``"Design stage + high priority"``."""
    parts: list[str] = []

    if criteria.stages:
        suffix = " stages" if len(criteria.stages) > 1 else " stage"
        parts.append(", ".join(s.value for s in criteria.stages) + suffix)

    if criteria.priorities:
        parts.append(", ".join(p.value for p in criteria.priorities) + " priority")

    if criteria.document_categories:
        parts.append(
            ", ".join(c.value for c in criteria.document_categories) + " documents"
        )

    if criteria.title_pattern:
        parts.append(f'title matches "{criteria.title_pattern}"')

    if criteria.tags:
        parts.append(f"tagged: {', '.join(criteria.tags)}")

    return " + ".join(parts) if parts else "All items"
