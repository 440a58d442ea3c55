"""
atelier_config -- public entrypoint for studio rule configuration.

Responsibility:
    Loads the YAML rule set that ships with the package (or one supplied by
    the caller) and installs its rules into the kernel rule stores.

Architecture position:
    Configuration -- YAML-driven rule definitions.  This package sits above
    ``atelier_kernel`` and below ``atelier_services``.  The kernel MUST
    NEVER import from ``atelier_config``; bridges in this package translate
    definitions into kernel domain objects.

Invariants enforced:
    - Deterministic identity: the same YAML always yields the same
      ``RuleSetDef.checksum``.
    - Seeding is idempotent: rules whose id is already stored are skipped,
      so edits made through the stores are never overwritten.

Failure modes:
    - ``FileNotFoundError`` -- the rule set file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``KeyError`` / ``ValueError`` -- missing keys or invalid values.
    - ``InvalidRuleError`` -- a rule the stores refuse (e.g. bad regex).

Audit relevance:
    Every successful ``load_rule_set()`` call emits an
    ``ATELIER_CONFIG_TRACE`` log entry with the rule set name, version,
    checksum and rule counts.
"""

from __future__ import annotations

from pathlib import Path

from atelier_config.bridges import build_approval_rule, build_workflow_rule
from atelier_config.loader import compute_checksum, load_rule_set_file
from atelier_config.schema import RuleSetDef
from atelier_kernel.logging_config import get_logger
from atelier_kernel.services.rule_store import ApprovalRuleStore
from atelier_kernel.services.workflow_rule_store import WorkflowRuleStore

_logger = get_logger("config")

_DEFAULT_RULE_SET = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "RuleSetDef",
    "compute_checksum",
    "load_rule_set",
    "seed_stores",
]


def load_rule_set(path: Path | str | None = None) -> RuleSetDef:
    """Load and parse a rule set.

    Args:
        path: YAML file to read.  Defaults to the packaged
            ``atelier_config/sets/default.yaml``.
    """
    rule_set = load_rule_set_file(Path(path) if path else _DEFAULT_RULE_SET)
    _logger.info(
        "ATELIER_CONFIG_TRACE",
        extra={
            "trace_type": "ATELIER_CONFIG_TRACE",
            "rule_set": rule_set.name,
            "version": rule_set.version,
            "checksum": rule_set.checksum,
            "approval_rule_count": len(rule_set.approval_rules),
            "workflow_rule_count": len(rule_set.workflow_rules),
        },
    )
    return rule_set


def seed_stores(
    rule_set: RuleSetDef,
    approval_rules: ApprovalRuleStore | None = None,
    workflow_rules: WorkflowRuleStore | None = None,
) -> tuple[int, int]:
    """Install the rule set's rules into the given stores.

    Rules whose id is already present are skipped.

    Returns:
        (approval rules added, workflow rules added)
    """
    added_approval = 0
    if approval_rules is not None:
        existing = {r.id for r in approval_rules.all_rules()}
        for rule_def in rule_set.approval_rules:
            if rule_def.rule_id not in existing:
                approval_rules.add_rule(build_approval_rule(rule_def))
                added_approval += 1

    added_workflow = 0
    if workflow_rules is not None:
        existing = {r.id for r in workflow_rules.all_rules()}
        for workflow_def in rule_set.workflow_rules:
            if workflow_def.rule_id not in existing:
                workflow_rules.add_rule(build_workflow_rule(workflow_def))
                added_workflow += 1

    _logger.info(
        "rule_set_seeded",
        extra={
            "rule_set": rule_set.name,
            "approval_rules_added": added_approval,
            "workflow_rules_added": added_workflow,
        },
    )
    return added_approval, added_workflow
