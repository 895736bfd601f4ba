"""Task model, status and priority enums."""

from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from uuid import UUID, uuid4

from sqlalchemy import Index, Text
from sqlmodel import Field

from tasktree.core.time import utcnow
from tasktree.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 65535


class TaskStatus(str, Enum):
    """Completion state of a task."""

    PENDING = "pending"
    DONE = "done"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


class TaskPriority(IntEnum):
    """Task urgency; lower values are more urgent."""

    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4
    LOWEST = 5

    @property
    def label(self) -> str:
        return self.name.capitalize()


_STATUS_LABELS = {
    TaskStatus.PENDING: "To Do",
    TaskStatus.DONE: "Completed",
}


class Task(QueryModel, table=True):
    """Owner-scoped task node; the hierarchy is stored as parent pointers only."""

    __tablename__ = "tasks"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        Index("ix_tasks_owner_status", "owner_id", "status"),
        Index("ix_tasks_owner_priority", "owner_id", "priority"),
        Index("ix_tasks_owner_created_at", "owner_id", "created_at"),
        Index("ix_tasks_owner_completed_at", "owner_id", "completed_at"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_id: UUID = Field(foreign_key="users.id", index=True)
    parent_id: UUID | None = Field(default=None, foreign_key="tasks.id", index=True)

    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, sa_type=Text)
    status: str = Field(default=TaskStatus.PENDING.value)
    priority: int = Field(default=TaskPriority.MEDIUM.value)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    deleted_at: datetime | None = Field(default=None, index=True)

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE.value
