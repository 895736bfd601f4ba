"""Aggregate task statistics and the productivity summary built from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import col, select

from tasktree.models.tasks import Task, TaskPriority, TaskStatus
from tasktree.services.task_descendants import max_depth_from_pairs

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

# Lower bounds checked top-down; the first band the score reaches wins.
PRODUCTIVITY_BANDS: tuple[tuple[float, str, str], ...] = (
    (80, "Excellent", "Outstanding task completion rate! Keep up the great work."),
    (60, "Good", "Good progress on your tasks. Consider focusing on remaining items."),
    (40, "Average", "Moderate progress. Try to complete more tasks to improve productivity."),
    (
        20,
        "Below Average",
        "Low completion rate. Consider breaking down large tasks or prioritizing better.",
    ),
    (0, "Poor", "Very low productivity. Review your task management strategy."),
)
NO_DATA_LEVEL = "No Data"
NO_DATA_DESCRIPTION = "No tasks available to calculate productivity score."


@dataclass(frozen=True)
class TaskStats:
    """Counts over the owner's live tasks."""

    total: int = 0
    pending: int = 0
    completed: int = 0
    root_tasks: int = 0
    subtasks: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_priority: dict[int, int] = field(default_factory=dict)
    avg_priority: float = 0.0
    completion_rate: float = 0.0
    max_depth: int = 0


@dataclass(frozen=True)
class PriorityCount:
    value: int
    label: str
    count: int


@dataclass(frozen=True)
class ProductivityScore:
    score: float
    level: str
    description: str


@dataclass(frozen=True)
class TaskStatsSummary:
    most_common_priority: PriorityCount
    productivity: ProductivityScore


def completion_rate(completed: int, total: int) -> float:
    """Percentage of completed tasks, rounded to two decimals."""
    if total <= 0:
        return 0.0
    return round(completed / total * 100, 2)


async def get_task_stats(session: AsyncSession, owner_id: UUID) -> TaskStats:
    """Compute statistics for every live task owned by *owner_id*."""
    live = (
        col(Task.owner_id) == owner_id,
        col(Task.deleted_at).is_(None),
    )

    status_rows = await session.exec(
        select(Task.status, func.count()).where(*live).group_by(col(Task.status)),
    )
    by_status = {member.value: 0 for member in TaskStatus}
    for status_value, count in status_rows:
        by_status[status_value] = by_status.get(status_value, 0) + int(count)

    priority_rows = await session.exec(
        select(Task.priority, func.count()).where(*live).group_by(col(Task.priority)),
    )
    by_priority = {int(member): 0 for member in TaskPriority}
    for priority_value, count in priority_rows:
        by_priority[int(priority_value)] = by_priority.get(int(priority_value), 0) + int(count)

    pairs = list(await session.exec(select(Task.id, Task.parent_id).where(*live)))

    total = len(pairs)
    completed = by_status.get(TaskStatus.DONE.value, 0)
    root_tasks = sum(1 for _, parent_id in pairs if parent_id is None)
    weighted = sum(value * count for value, count in by_priority.items())
    return TaskStats(
        total=total,
        pending=by_status.get(TaskStatus.PENDING.value, 0),
        completed=completed,
        root_tasks=root_tasks,
        subtasks=total - root_tasks,
        by_status=by_status,
        by_priority=by_priority,
        avg_priority=round(weighted / total, 2) if total else 0.0,
        completion_rate=completion_rate(completed, total),
        max_depth=max_depth_from_pairs(pairs),
    )


def most_common_priority(by_priority: dict[int, int]) -> PriorityCount:
    """Pick the largest priority bucket; ties go to the most urgent priority."""
    best_value = int(TaskPriority.MEDIUM)
    best_count = 0
    for value in sorted(by_priority):
        if by_priority[value] > best_count:
            best_value, best_count = value, by_priority[value]
    return PriorityCount(
        value=best_value,
        label=TaskPriority(best_value).label,
        count=best_count,
    )


def productivity_score(stats: TaskStats) -> ProductivityScore:
    """Blend completion rate with a small volume bonus capped at 10 points."""
    if stats.total == 0:
        return ProductivityScore(score=0.0, level=NO_DATA_LEVEL, description=NO_DATA_DESCRIPTION)
    volume_bonus = min(stats.total / 10, 10)
    raw_score = min(stats.completion_rate + volume_bonus, 100)
    # Band on the unrounded score; rounding is for display only.
    _, level, description = PRODUCTIVITY_BANDS[-1]
    for threshold, band_level, band_description in PRODUCTIVITY_BANDS:
        if raw_score >= threshold:
            level, description = band_level, band_description
            break
    return ProductivityScore(score=round(raw_score, 1), level=level, description=description)


def build_stats_summary(stats: TaskStats) -> TaskStatsSummary:
    return TaskStatsSummary(
        most_common_priority=most_common_priority(stats.by_priority),
        productivity=productivity_score(stats),
    )
