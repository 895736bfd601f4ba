"""Task CRUD, hierarchy, status, search, and statistics endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from tasktree.api.deps import OWNER_DEP, SESSION_DEP
from tasktree.models.tasks import TaskStatus
from tasktree.schemas.pagination import TaskPage, TaskPageParams
from tasktree.schemas.tasks import (
    TaskCreate,
    TaskDeleteRead,
    TaskDescendantsRead,
    TaskDetailRead,
    TaskFilterParams,
    TaskRead,
    TaskStatsRead,
    TaskStatusUpdate,
    TaskUpdate,
)
from tasktree.services.task_completion import complete_task, transition_status
from tasktree.services.task_deletion import delete_task
from tasktree.services.task_descendants import collect_descendant_ids, fetch_task
from tasktree.services.task_queries import (
    TaskSort,
    list_child_tasks,
    list_tasks,
    search_tasks,
)
from tasktree.services.task_stats import build_stats_summary, get_task_stats
from tasktree.services.tasks import create_task, get_task_context, update_task

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlmodel.ext.asyncio.session import AsyncSession

router = APIRouter(prefix="/tasks", tags=["tasks"])

SORT_QUERY = Query(
    default=None,
    description="Comma-separated `field:direction` pairs, e.g. `priority:asc,created_at:desc`.",
)


def task_filter_params(filters: Annotated[TaskFilterParams, Query()]) -> TaskFilterParams:
    """Collect the listing filters from the query string as one validated model."""
    return filters


FILTERS_DEP = Depends(task_filter_params)
PAGE_PARAMS_DEP = Depends(TaskPageParams)


def _read(task: object) -> TaskRead:
    return TaskRead.model_validate(task, from_attributes=True)


def _read_many(items: Sequence[Any]) -> list[TaskRead]:
    return [_read(item) for item in items]


@router.get("", response_model=TaskPage[TaskRead])
async def list_owner_tasks(
    filters: TaskFilterParams = FILTERS_DEP,
    sort: str | None = SORT_QUERY,
    params: TaskPageParams = PAGE_PARAMS_DEP,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskPage[TaskRead]:
    """List the caller's tasks with filters, sorting, and pagination."""
    return await list_tasks(
        session,
        owner_id,
        filters.to_filters(),
        TaskSort.parse(sort),
        page=params.page,
        size=params.size,
        transformer=_read_many,
    )


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_owner_task(
    payload: TaskCreate,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskRead:
    """Create a task, optionally beneath an existing parent."""
    task = await create_task(session, owner_id, payload)
    return _read(task)


@router.get("/stats", response_model=TaskStatsRead)
async def get_owner_task_stats(
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskStatsRead:
    """Return aggregate statistics and the productivity summary."""
    stats = await get_task_stats(session, owner_id)
    return TaskStatsRead.from_stats(stats, build_stats_summary(stats))


@router.get("/search", response_model=TaskPage[TaskRead])
async def search_owner_tasks(
    q: str = Query(..., description="Substring matched against title and description."),
    params: TaskPageParams = PAGE_PARAMS_DEP,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskPage[TaskRead]:
    """Search the caller's tasks, newest first."""
    return await search_tasks(
        session,
        owner_id,
        q,
        page=params.page,
        size=params.size,
        transformer=_read_many,
    )


@router.get("/{task_id}", response_model=TaskDetailRead)
async def get_owner_task(
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskDetailRead:
    """Return a task with its depth, ancestor chain, and child count."""
    task, ancestors, children_count = await get_task_context(session, owner_id, task_id)
    detail = TaskDetailRead.model_validate(task, from_attributes=True)
    detail.depth = len(ancestors)
    detail.ancestor_ids = [ancestor.id for ancestor in ancestors]
    detail.children_count = children_count
    return detail


@router.patch("/{task_id}", response_model=TaskRead)
async def update_owner_task(
    task_id: UUID,
    payload: TaskUpdate,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskRead:
    """Apply a partial update, including moving the task to a new parent."""
    task = await update_task(session, owner_id, task_id, payload)
    return _read(task)


@router.delete("/{task_id}", response_model=TaskDeleteRead)
async def delete_owner_task(
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskDeleteRead:
    """Delete a pending task together with its whole subtree."""
    deleted_ids = await delete_task(session, owner_id, task_id)
    return TaskDeleteRead(
        deleted_ids=sorted(deleted_ids, key=str),
        deleted_count=len(deleted_ids),
    )


@router.patch("/{task_id}/complete", response_model=TaskRead)
async def complete_owner_task(
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskRead:
    """Mark a task done once every subtask is done."""
    task = await complete_task(session, owner_id, task_id)
    return _read(task)


@router.patch("/{task_id}/status", response_model=TaskRead)
async def update_owner_task_status(
    task_id: UUID,
    payload: TaskStatusUpdate,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskRead:
    """Move a task to `pending` or `done`."""
    task = await transition_status(session, owner_id, task_id, TaskStatus(payload.status))
    return _read(task)


@router.get("/{task_id}/children", response_model=list[TaskRead])
async def list_owner_task_children(
    task_id: UUID,
    sort: str | None = SORT_QUERY,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> list[TaskRead]:
    """List the direct children of a task."""
    children = await list_child_tasks(session, owner_id, task_id, TaskSort.parse(sort))
    return [_read(child) for child in children]


@router.get("/{task_id}/descendants", response_model=TaskDescendantsRead)
async def list_owner_task_descendants(
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    owner_id: UUID = OWNER_DEP,
) -> TaskDescendantsRead:
    """Return the ids of every task beneath the given one."""
    await fetch_task(session, owner_id, task_id)
    descendant_ids = await collect_descendant_ids(session, owner_id, task_id)
    return TaskDescendantsRead(
        task_id=task_id,
        descendant_ids=sorted(descendant_ids, key=str),
        count=len(descendant_ids),
    )
