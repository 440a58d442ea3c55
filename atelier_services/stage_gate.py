"""
atelier_services.stage_gate -- Stage completion checks for one project.

Responsibility:
    Gathers the project's tasks, required files, stage documents, workflow
    rules and approval requests, and asks the pure workflow gate whether a
    stage may be completed.  Thin coordinator -- evaluation lives in
    ``atelier_engines.workflow_gate``.

Architecture position:
    Services layer.  Task, file and document snapshots come from injected
    providers because their owners live outside this package.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from atelier_engines.workflow_gate import evaluate_stage_completion, stage_progress
from atelier_kernel.domain.entities import RequiredFile, StageDocument, Task
from atelier_kernel.domain.values import WorkflowStage
from atelier_kernel.domain.workflow import StageGateVerdict, StageProgress
from atelier_kernel.logging_config import LogContext, get_logger
from atelier_kernel.services.approval_service import ApprovalService
from atelier_kernel.services.workflow_rule_store import WorkflowRuleStore

logger = get_logger("services.stage_gate")

TaskProvider = Callable[[], Sequence[Task]]
FileProvider = Callable[[], Sequence[RequiredFile]]
DocumentProvider = Callable[[], Sequence[StageDocument]]


def _nothing() -> tuple[()]:
    return ()


class StageGate:
    """Answers "can this stage be completed?" for one project."""

    def __init__(
        self,
        workflow_rules: WorkflowRuleStore,
        approvals: ApprovalService,
        tasks: TaskProvider = _nothing,
        files: FileProvider = _nothing,
        documents: DocumentProvider = _nothing,
    ) -> None:
        self._workflow_rules = workflow_rules
        self._approvals = approvals
        self._tasks = tasks
        self._files = files
        self._documents = documents

    def can_complete_stage(self, stage: WorkflowStage) -> StageGateVerdict:
        verdict = evaluate_stage_completion(
            stage,
            self._workflow_rules.rules(),
            tasks=self._tasks(),
            files=self._files(),
            documents=self._documents(),
            approval_requests=self._approvals.get_approvals_by_stage(stage),
        )
        with LogContext.bind(project_id=self._approvals.project_id):
            logger.info(
                "stage_gate_evaluated",
                extra={
                    "stage": stage.value,
                    "allowed": verdict.allowed,
                    "reasons": list(verdict.reasons),
                },
            )
        return verdict

    def get_missing_requirements(self, stage: WorkflowStage) -> list[str]:
        return list(self.can_complete_stage(stage).reasons)

    def get_stage_progress(self, stage: WorkflowStage) -> StageProgress:
        return stage_progress(stage, self._tasks())
