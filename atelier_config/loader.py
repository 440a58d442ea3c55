"""
Rule Set Loader (``atelier_config.loader``).

Responsibility
--------------
Loads YAML rule set files and parses them into typed
``atelier_config.schema`` dataclass instances.  Callers normally go through
``atelier_config.load_rule_set()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on the kernel,
engines or services.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError``; required fields
  never get silent defaults.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  YAML data for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Structurally wrong values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from atelier_config.schema import (
    ApprovalConfigDef,
    ApprovalRuleDef,
    MatchingCriteriaDef,
    RuleSetDef,
    WorkflowRuleDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _str_tuple(data: dict[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key) or ()
    if isinstance(value, str):
        raise ValueError(f"{key} must be a list, got a string: {value!r}")
    return tuple(str(v) for v in value)


def parse_approval_config(data: dict[str, Any]) -> ApprovalConfigDef:
    return ApprovalConfigDef(
        name=data["name"],
        approver_type=data["approver_type"],
        description=data.get("description", ""),
        approver_role=data.get("approver_role"),
        approver_user_id=data.get("approver_user_id"),
        required=data.get("required", True),
        allow_delegation=data.get("allow_delegation", False),
        require_comment=data.get("require_comment", False),
        notify_approver=data.get("notify_approver", True),
        auto_reminder=data.get("auto_reminder", False),
        reminder_days=data.get("reminder_days"),
        expiry_days=data.get("expiry_days"),
    )


def parse_matching_criteria(data: dict[str, Any] | None) -> MatchingCriteriaDef:
    data = data or {}
    return MatchingCriteriaDef(
        stages=_str_tuple(data, "stages"),
        priorities=_str_tuple(data, "priorities"),
        document_categories=_str_tuple(data, "document_categories"),
        title_pattern=data.get("title_pattern"),
        tags=_str_tuple(data, "tags"),
    )


def parse_approval_rule(data: dict[str, Any]) -> ApprovalRuleDef:
    configs = tuple(parse_approval_config(c) for c in data["approval_configs"])
    if not configs:
        raise ValueError(f"Approval rule {data['id']!r} has no approval_configs")
    return ApprovalRuleDef(
        rule_id=data["id"],
        name=data["name"],
        entity_type=data["entity_type"],
        approval_configs=configs,
        matching_criteria=parse_matching_criteria(data.get("matching_criteria")),
        scope=data.get("scope", "global"),
        project_id=data.get("project_id"),
        description=data.get("description", ""),
        enabled=data.get("enabled", True),
        auto_apply=data.get("auto_apply", True),
    )


def parse_workflow_rule(data: dict[str, Any]) -> WorkflowRuleDef:
    return WorkflowRuleDef(
        rule_id=data["id"],
        name=data["name"],
        rule_type=data["rule_type"],
        applicable_stages=_str_tuple(data, "applicable_stages"),
        description=data.get("description", ""),
        enabled=data.get("enabled", True),
        scope=data.get("scope", "global"),
        project_id=data.get("project_id"),
        conditions=tuple(sorted((data.get("conditions") or {}).items())),
        actions=tuple(sorted((data.get("actions") or {}).items())),
        approver_role=data.get("approver_role"),
        required=data.get("required", True),
        assignment_strategy=data.get("assignment_strategy", "department-head"),
        target_role=data.get("target_role"),
        required_tasks_count=data.get("required_tasks_count", 0),
        required_files_count=data.get("required_files_count", 0),
        required_documents_count=data.get("required_documents_count", 0),
    )


def parse_rule_set(data: dict[str, Any]) -> RuleSetDef:
    """Parse a whole rule set document and stamp it with its checksum."""
    approval_rules = tuple(
        parse_approval_rule(r) for r in data.get("approval_rules") or ()
    )
    workflow_rules = tuple(
        parse_workflow_rule(r) for r in data.get("workflow_rules") or ()
    )

    ids = [r.rule_id for r in approval_rules] + [r.rule_id for r in workflow_rules]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValueError(f"Duplicate rule ids in rule set: {duplicates}")

    return RuleSetDef(
        name=data["name"],
        version=data.get("version", 1),
        description=data.get("description", ""),
        approval_rules=approval_rules,
        workflow_rules=workflow_rules,
        checksum=compute_checksum(data),
    )


def load_rule_set_file(path: Path) -> RuleSetDef:
    return parse_rule_set(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Returns a hex-encoded SHA-256 hash string.
        - Identical ``data`` always produces identical checksums
          (deterministic), independent of key order.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
