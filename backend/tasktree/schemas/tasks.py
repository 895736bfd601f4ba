"""Schemas for task create/update/read, filtering, and statistics payloads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Self
from uuid import UUID

from pydantic import field_validator, model_validator
from sqlmodel import Field, SQLModel

from tasktree.models.tasks import (
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    TaskPriority,
    TaskStatus,
)

if TYPE_CHECKING:
    from tasktree.services.task_stats import TaskStats, TaskStatsSummary

RUNTIME_ANNOTATION_TYPES = (datetime, UUID, TaskStatus, TaskPriority)

SEARCH_MIN_LENGTH = 2
SEARCH_LENGTH_MESSAGE = "Search term must be at least 2 characters long"

_ERR_TITLE_REQUIRED = "title is required"
_ERR_TOGGLES = "root_tasks_only and subtasks_only cannot both be set"
_ERR_ROOT_WITH_PARENT = "root_tasks_only cannot be combined with parent_id"
_ERR_CREATED_RANGE = "created_before must not be earlier than created_after"
_ERR_COMPLETED_RANGE = "completed_before must not be earlier than completed_after"


def _clean_title(value: str) -> str:
    title = value.strip()
    if not title:
        raise ValueError(_ERR_TITLE_REQUIRED)
    return title


class TaskCreate(SQLModel):
    """Payload for creating a task, optionally beneath an existing parent."""

    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    parent_id: UUID | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _clean_title(value)


class TaskUpdate(SQLModel):
    """Partial update; status changes go through the status endpoints instead."""

    title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    priority: TaskPriority | None = None
    parent_id: UUID | None = None

    @model_validator(mode="after")
    def validate_title(self) -> Self:
        """Reject blank or explicit-null titles in patch payloads."""
        if "title" in self.model_fields_set:
            if self.title is None:
                raise ValueError(_ERR_TITLE_REQUIRED)
            self.title = _clean_title(self.title)
        if "priority" in self.model_fields_set and self.priority is None:
            raise ValueError("priority cannot be null")
        return self


class TaskStatusUpdate(SQLModel):
    """Target state for a status transition."""

    status: TaskStatus


class TaskRead(SQLModel):
    """Task payload returned from read endpoints."""

    id: UUID
    owner_id: UUID
    parent_id: UUID | None = None
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    status_label: str = ""
    priority_label: str = ""
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @model_validator(mode="after")
    def fill_labels(self) -> Self:
        self.status_label = self.status.label
        self.priority_label = self.priority.label
        return self


class TaskDetailRead(TaskRead):
    """Single-task payload with its position in the hierarchy."""

    depth: int = 0
    ancestor_ids: list[UUID] = Field(default_factory=list)
    children_count: int = 0


@dataclass(frozen=True)
class TaskFilters:
    """Optional constraints combined with AND; date bounds are inclusive.

    A blank `search` is no filter at all.
    """

    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    search: str | None = None
    parent_id: UUID | None = None
    root_tasks_only: bool = False
    subtasks_only: bool = False
    created_after: datetime | None = None
    created_before: datetime | None = None
    completed_after: datetime | None = None
    completed_before: datetime | None = None

    @property
    def search_term(self) -> str | None:
        """Stripped search text, or None when no search was given."""
        if self.search is None:
            return None
        return self.search.strip() or None

    def errors(self) -> list[str]:
        """Return messages for every inconsistent combination of filters."""
        problems: list[str] = []
        if self.root_tasks_only and self.subtasks_only:
            problems.append(_ERR_TOGGLES)
        if self.root_tasks_only and self.parent_id is not None:
            problems.append(_ERR_ROOT_WITH_PARENT)
        if (
            self.created_after is not None
            and self.created_before is not None
            and self.created_before < self.created_after
        ):
            problems.append(_ERR_CREATED_RANGE)
        if (
            self.completed_after is not None
            and self.completed_before is not None
            and self.completed_before < self.completed_after
        ):
            problems.append(_ERR_COMPLETED_RANGE)
        term = self.search_term
        if term is not None and len(term) < SEARCH_MIN_LENGTH:
            problems.append(SEARCH_LENGTH_MESSAGE)
        return problems


class TaskFilterParams(SQLModel):
    """Query-string filters for task listing."""

    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    search: str | None = None
    parent_id: UUID | None = None
    root_tasks_only: bool = False
    subtasks_only: bool = False
    created_after: datetime | None = None
    created_before: datetime | None = None
    completed_after: datetime | None = None
    completed_before: datetime | None = None

    @model_validator(mode="after")
    def validate_combination(self) -> Self:
        """Reject contradictory toggles, inverted date ranges, and short searches."""
        if self.search is not None:
            self.search = self.search.strip() or None
        problems = self.to_filters().errors()
        if problems:
            raise ValueError("; ".join(problems))
        return self

    def to_filters(self) -> TaskFilters:
        return TaskFilters(**self.model_dump())


class TaskDescendantsRead(SQLModel):
    """Ids of every live descendant of a task."""

    task_id: UUID
    descendant_ids: list[UUID]
    count: int


class TaskDeleteRead(SQLModel):
    """Result of a cascading delete."""

    ok: bool = True
    deleted_ids: list[UUID]
    deleted_count: int


class PriorityCountRead(SQLModel):
    value: int
    label: str
    count: int


class ProductivityRead(SQLModel):
    score: float
    level: str
    description: str


class TaskStatsRead(SQLModel):
    """Aggregate statistics plus the derived productivity summary."""

    total: int
    pending: int
    completed: int
    root_tasks: int
    subtasks: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    avg_priority: float
    completion_rate: float
    max_depth: int
    most_common_priority: PriorityCountRead
    productivity: ProductivityRead

    @classmethod
    def from_stats(cls, stats: TaskStats, summary: TaskStatsSummary) -> TaskStatsRead:
        return cls(
            total=stats.total,
            pending=stats.pending,
            completed=stats.completed,
            root_tasks=stats.root_tasks,
            subtasks=stats.subtasks,
            by_status=dict(stats.by_status),
            by_priority={
                TaskPriority(value).label: count for value, count in stats.by_priority.items()
            },
            avg_priority=stats.avg_priority,
            completion_rate=stats.completion_rate,
            max_depth=stats.max_depth,
            most_common_priority=PriorityCountRead(
                value=summary.most_common_priority.value,
                label=summary.most_common_priority.label,
                count=summary.most_common_priority.count,
            ),
            productivity=ProductivityRead(
                score=summary.productivity.score,
                level=summary.productivity.level,
                description=summary.productivity.description,
            ),
        )
