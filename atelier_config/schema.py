"""
Rule set schema.

Defines the human-authored, reviewable source artifact for studio rules.
YAML files are parsed into these types by the loader and turned into
kernel domain objects by the bridges.

Values stay as plain strings here; enum conversion happens in the bridges
so a rule set can be inspected and checksummed without the kernel.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Approval rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApprovalConfigDef:
    """One level of a YAML-authored approval chain."""

    name: str
    approver_type: str
    description: str = ""
    approver_role: str | None = None
    approver_user_id: str | None = None
    required: bool = True
    allow_delegation: bool = False
    require_comment: bool = False
    notify_approver: bool = True
    auto_reminder: bool = False
    reminder_days: int | None = None
    expiry_days: int | None = None


@dataclass(frozen=True)
class MatchingCriteriaDef:
    stages: tuple[str, ...] = ()
    priorities: tuple[str, ...] = ()
    document_categories: tuple[str, ...] = ()
    title_pattern: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ApprovalRuleDef:
    """YAML-authored approval rule."""

    rule_id: str
    name: str
    entity_type: str
    approval_configs: tuple[ApprovalConfigDef, ...]
    matching_criteria: MatchingCriteriaDef = field(default_factory=MatchingCriteriaDef)
    scope: str = "global"
    project_id: str | None = None
    description: str = ""
    enabled: bool = True
    auto_apply: bool = True


# ---------------------------------------------------------------------------
# Workflow rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowRuleDef:
    """YAML-authored workflow rule.

    Only the fields of the matching ``rule_type`` are read by the bridge;
    ``conditions`` and ``actions`` are (flag, value) pairs for
    stage-transition rules.
    """

    rule_id: str
    name: str
    rule_type: str
    applicable_stages: tuple[str, ...]
    description: str = ""
    enabled: bool = True
    scope: str = "global"
    project_id: str | None = None
    conditions: tuple[tuple[str, bool | int], ...] = ()
    actions: tuple[tuple[str, bool], ...] = ()
    approver_role: str | None = None
    required: bool = True
    assignment_strategy: str = "department-head"
    target_role: str | None = None
    required_tasks_count: int = 0
    required_files_count: int = 0
    required_documents_count: int = 0


# ---------------------------------------------------------------------------
# Rule set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleSetDef:
    """A complete, versioned collection of studio rules."""

    name: str
    version: int = 1
    description: str = ""
    approval_rules: tuple[ApprovalRuleDef, ...] = ()
    workflow_rules: tuple[WorkflowRuleDef, ...] = ()
    checksum: str = ""
