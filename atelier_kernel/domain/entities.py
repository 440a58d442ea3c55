"""
Project entity snapshots (``atelier_kernel.domain.entities``).

Responsibility
--------------
Read-only views of the records the approval core consumes but does not
own: roster members, tasks, stage documents, stages and required files.
Their owners (task board, document tab, file tracker) live outside the
kernel and hand in snapshots.

Each approvable entity carries an explicit ``entity_type`` tag so the rule
matcher never has to guess what kind of record it was given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from atelier_kernel.domain.values import (
    ApprovalEntityType,
    DocumentCategory,
    TaskPriority,
    WorkflowStage,
)

TASK_STATUS_COMPLETED = "completed"
FILE_STATUS_RECEIVED = "received"
DOCUMENT_STATUS_APPROVED = "approved"


@dataclass(frozen=True)
class TeamMember:
    """A person on the project roster (or a synthetic placeholder)."""

    id: str
    name: str
    role: str
    avatar: str = ""
    user_id: str | None = None


@dataclass(frozen=True)
class Task:
    entity_type: ClassVar[ApprovalEntityType] = ApprovalEntityType.TASK

    id: str
    title: str
    stage: WorkflowStage
    status: str = "todo"
    priority: TaskPriority = TaskPriority.MEDIUM
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class StageDocument:
    entity_type: ClassVar[ApprovalEntityType] = ApprovalEntityType.DOCUMENT

    id: str
    title: str
    stage: WorkflowStage
    category: DocumentCategory
    status: str = "pending"
    required_for_progression: bool = False
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class StageEntity:
    """A workflow stage as the subject of an approval chain."""

    entity_type: ClassVar[ApprovalEntityType] = ApprovalEntityType.STAGE

    id: str
    stage: WorkflowStage
    title: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class RequiredFile:
    """A file a stage expects the client or a supplier to deliver."""

    id: str
    file_name: str
    required_from: WorkflowStage
    status: str = "pending"


ApprovableEntity = Union[Task, StageDocument, StageEntity]


def entity_display_name(entity: ApprovableEntity) -> str:
    """Title when present, otherwise the stage name."""
    if entity.title:
        return entity.title
    return entity.stage.value
