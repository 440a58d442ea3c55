"""
atelier_engines.workflow_gate -- Decide whether a project stage may be completed.

Responsibility:
    Aggregate task, file, document and approval state for one stage into a
    pass/fail verdict with human-readable reasons.

Architecture position:
    Engines -- pure evaluation layer, zero I/O.  Callers supply snapshots
    of the project's tasks, files, documents and approval requests.

Invariants enforced:
    Each check below is evaluated independently and appends one reason
    when violated; ``allowed`` is true iff no reason was appended.
    1. Transition rule with require_all_tasks_complete: tasks of the stage
       not "completed".
    2. Transition rule with require_all_files_uploaded: files required from
       the stage not "received".
    3. Transition rule with require_all_docs_approved: stage documents not
       "approved".
    4. Always: stage documents flagged required_for_progression and not
       "approved".
    5. Always: pending or delegated approval requests of the stage.
    6. Every enabled approval-type workflow rule for the stage blocks,
       whether or not an approval was ever requested for it.

    Only enabled rules whose ``applicable_stages`` include the stage are
    considered.  Checks 1-3 are emitted once per transition rule asking
    for them.
"""

from __future__ import annotations

from collections.abc import Sequence

from atelier_engines.tracer import traced_engine
from atelier_kernel.domain.approval import ApprovalRequest
from atelier_kernel.domain.entities import (
    DOCUMENT_STATUS_APPROVED,
    FILE_STATUS_RECEIVED,
    TASK_STATUS_COMPLETED,
    RequiredFile,
    StageDocument,
    Task,
)
from atelier_kernel.domain.values import WorkflowStage
from atelier_kernel.domain.workflow import (
    ApprovalGateRule,
    StageGateVerdict,
    StageProgress,
    StageTransitionRule,
    WorkflowRule,
)


def rules_for_stage(
    rules: Sequence[WorkflowRule], stage: WorkflowStage,
) -> list[WorkflowRule]:
    """Enabled rules that apply to ``stage``, in input order."""
    return [r for r in rules if r.enabled and stage in r.applicable_stages]


def _transition_reasons(
    rule: StageTransitionRule,
    stage: WorkflowStage,
    tasks: Sequence[Task],
    files: Sequence[RequiredFile],
    documents: Sequence[StageDocument],
) -> list[str]:
    reasons: list[str] = []
    conditions = rule.conditions

    if conditions.require_all_tasks_complete:
        incomplete = [
            t for t in tasks
            if t.stage == stage and t.status != TASK_STATUS_COMPLETED
        ]
        if incomplete:
            reasons.append(f"{len(incomplete)} task(s) not completed")

    if conditions.require_all_files_uploaded:
        missing = [
            f for f in files
            if f.required_from == stage and f.status != FILE_STATUS_RECEIVED
        ]
        if missing:
            reasons.append(f"{len(missing)} required file(s) not uploaded")

    if conditions.require_all_docs_approved:
        unapproved = [
            d for d in documents
            if d.stage == stage and d.status != DOCUMENT_STATUS_APPROVED
        ]
        if unapproved:
            reasons.append(f"{len(unapproved)} document(s) not approved")

    return reasons


@traced_engine("workflow_gate", "1.0", fingerprint_fields=("stage",))
def evaluate_stage_completion(
    stage: WorkflowStage,
    rules: Sequence[WorkflowRule],
    tasks: Sequence[Task] = (),
    files: Sequence[RequiredFile] = (),
    documents: Sequence[StageDocument] = (),
    approval_requests: Sequence[ApprovalRequest] = (),
) -> StageGateVerdict:
    """Evaluate every blocking condition for ``stage``.

    Returns:
        StageGateVerdict with ``allowed`` and the list of reasons.
    """
    active = rules_for_stage(rules, stage)
    reasons: list[str] = []

    for rule in active:
        if isinstance(rule, StageTransitionRule):
            reasons.extend(_transition_reasons(rule, stage, tasks, files, documents))

    unapproved_required = [
        d for d in documents
        if d.stage == stage
        and d.required_for_progression
        and d.status != DOCUMENT_STATUS_APPROVED
    ]
    if unapproved_required:
        reasons.append(
            f"{len(unapproved_required)} required document(s) not approved"
        )

    pending = [r for r in approval_requests if r.stage == stage and r.is_active]
    if pending:
        reasons.append(f"{len(pending)} approval(s) pending for this stage")

    for rule in active:
        if isinstance(rule, ApprovalGateRule):
            reasons.append(f"Requires approval from {rule.approver_role}")

    return StageGateVerdict.from_reasons(reasons)


def stage_progress(stage: WorkflowStage, tasks: Sequence[Task]) -> StageProgress:
    """Completed-vs-total task count for ``stage``, with a rounded percent."""
    stage_tasks = [t for t in tasks if t.stage == stage]
    complete = sum(1 for t in stage_tasks if t.status == TASK_STATUS_COMPLETED)
    total = len(stage_tasks)
    percent = round(complete / total * 100) if total else 0
    return StageProgress(
        tasks_complete=complete, tasks_total=total, percent_complete=percent,
    )
