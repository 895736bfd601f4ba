"""Task CRUD orchestration on top of the hierarchy and completion rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import col, select

from tasktree.core.logging import get_logger
from tasktree.core.time import utcnow
from tasktree.models.tasks import Task, TaskStatus
from tasktree.services.task_descendants import fetch_task
from tasktree.services.task_errors import TaskValidationError
from tasktree.services.task_hierarchy import (
    get_ancestors,
    validate_new_parent,
    validate_reparent,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from tasktree.schemas.tasks import TaskCreate, TaskUpdate

logger = get_logger(__name__)

NO_UPDATES_MESSAGE = "No updates provided"


async def get_task(session: AsyncSession, owner_id: UUID, task_id: UUID) -> Task:
    """Return a live task owned by *owner_id*."""
    return await fetch_task(session, owner_id, task_id)


async def get_task_context(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
) -> tuple[Task, list[Task], int]:
    """Return a task together with its root-first ancestors and child count."""
    task = await fetch_task(session, owner_id, task_id)
    ancestors = await get_ancestors(session, owner_id, task)
    children_count = (
        await session.exec(
            select(func.count())
            .select_from(Task)
            .where(col(Task.owner_id) == owner_id)
            .where(col(Task.parent_id) == task_id)
            .where(col(Task.deleted_at).is_(None)),
        )
    ).one()
    return task, ancestors, int(children_count)


async def create_task(session: AsyncSession, owner_id: UUID, payload: TaskCreate) -> Task:
    """Insert a new task after validating its parent."""
    if payload.parent_id is not None:
        await validate_new_parent(session, owner_id, payload.parent_id)

    now = utcnow()
    status = TaskStatus(payload.status)
    task = Task(
        owner_id=owner_id,
        parent_id=payload.parent_id,
        title=payload.title,
        description=payload.description,
        status=status.value,
        priority=int(payload.priority),
        created_at=now,
        updated_at=now,
        completed_at=now if status == TaskStatus.DONE else None,
    )
    session.add(task)
    await session.commit()
    await session.refresh(task)
    logger.info(
        "task.create.success task_id=%s parent_id=%s",
        task.id,
        task.parent_id,
    )
    return task


async def update_task(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
    payload: TaskUpdate,
) -> Task:
    """Apply a partial update; a provided `parent_id` is validated as a move."""
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise TaskValidationError([NO_UPDATES_MESSAGE])

    task = await fetch_task(session, owner_id, task_id, lock=True)
    if "parent_id" in updates:
        await validate_reparent(session, owner_id, task_id, updates["parent_id"])
        task.parent_id = updates["parent_id"]
    if "title" in updates:
        task.title = updates["title"]
    if "description" in updates:
        task.description = updates["description"]
    if "priority" in updates:
        task.priority = int(updates["priority"])
    task.updated_at = utcnow()

    session.add(task)
    await session.commit()
    await session.refresh(task)
    logger.info(
        "task.update.success task_id=%s fields=%s",
        task_id,
        ",".join(sorted(updates)),
    )
    return task
