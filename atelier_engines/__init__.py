"""
Module: atelier_engines
Responsibility:
    Package entrypoint that re-exports the pure evaluation engines.  This is
    the canonical import surface for higher layers (atelier_kernel.services,
    atelier_services).

Architecture position:
    Engines -- pure evaluation layer, zero I/O.
    May only import atelier_kernel.domain and logging.
    MUST NOT import atelier_kernel.services or atelier_services.

Invariants enforced:
    - Purity: engines never read the clock, never touch storage and never
      mutate their inputs.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from atelier_engines.rule_matcher import match_rules
    from atelier_engines.approver_resolver import resolve_approver
    from atelier_engines.workflow_gate import evaluate_stage_completion
    from atelier_engines.approval_status import aggregate_approval_status
"""

from atelier_engines.approval_status import (
    aggregate_approval_status,
    is_blocking_rejection,
)
from atelier_engines.approver_resolver import (
    UNASSIGNED_APPROVER,
    find_team_member,
    placeholder_approver,
    resolve_approver,
)
from atelier_engines.rule_matcher import (
    count_rule_matches,
    describe_criteria,
    match_rules,
    matches_rule,
    validate_criteria,
)
from atelier_engines.workflow_gate import (
    evaluate_stage_completion,
    rules_for_stage,
    stage_progress,
)

__all__ = [
    "UNASSIGNED_APPROVER",
    "aggregate_approval_status",
    "count_rule_matches",
    "describe_criteria",
    "evaluate_stage_completion",
    "find_team_member",
    "is_blocking_rejection",
    "match_rules",
    "matches_rule",
    "placeholder_approver",
    "resolve_approver",
    "rules_for_stage",
    "stage_progress",
    "validate_criteria",
]
