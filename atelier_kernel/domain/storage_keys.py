"""Key names used with the persistence port."""

APPROVAL_RULES = "approvalRules"
PROJECT_APPROVAL_RULES = "projectApprovalRules"
WORKFLOW_RULES = "workflowRules"
PROJECT_WORKFLOW_RULES = "projectWorkflowRules"


def approval_requests_key(project_id: str) -> str:
    """Per-project key holding that project's approval requests."""
    return f"approvalRequests-{project_id}"
