"""Services for the atelier kernel (write side)."""

from atelier_kernel.services.approval_service import SYSTEM_ACTOR, ApprovalService
from atelier_kernel.services.rule_store import ApprovalRuleStore, check_rule
from atelier_kernel.services.workflow_rule_store import (
    DEFAULT_WORKFLOW_RULES,
    WorkflowRuleStore,
)

__all__ = [
    "DEFAULT_WORKFLOW_RULES",
    "SYSTEM_ACTOR",
    "ApprovalRuleStore",
    "ApprovalService",
    "WorkflowRuleStore",
    "check_rule",
]
