"""Cascading soft deletion of task subtrees."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from tasktree.core.logging import get_logger
from tasktree.core.time import utcnow
from tasktree.models.tasks import Task
from tasktree.services.task_descendants import collect_descendant_ids, fetch_task
from tasktree.services.task_errors import TaskDeletionBlockedError

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)

COMPLETED_TASK_REASON = "Completed tasks cannot be deleted"


async def _soft_delete_locked(session: AsyncSession, owner_id: UUID, task: Task) -> set[UUID]:
    """Soft-delete an already locked *task* together with its live descendants."""
    task_id = task.id
    deleted_ids = await collect_descendant_ids(session, owner_id, task_id, lock=True)
    deleted_ids.add(task_id)

    now = utcnow()
    statement = (
        update(Task)
        .where(col(Task.owner_id) == owner_id)
        .where(col(Task.id).in_(sorted(deleted_ids, key=str)))
        .where(col(Task.deleted_at).is_(None))
        .values(deleted_at=now, updated_at=now)
    )
    try:
        await session.exec(statement)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("task.delete.failed task_id=%s", task_id)
        raise
    logger.info(
        "task.delete.success task_id=%s deleted=%s",
        task_id,
        len(deleted_ids),
    )
    return deleted_ids


async def delete_subtree(session: AsyncSession, owner_id: UUID, task_id: UUID) -> set[UUID]:
    """Soft-delete *task_id* and every live descendant in one transaction.

    Returns the ids that were deleted. Nothing is written when any step fails.
    """
    task = await fetch_task(session, owner_id, task_id, lock=True)
    return await _soft_delete_locked(session, owner_id, task)


async def delete_task(session: AsyncSession, owner_id: UUID, task_id: UUID) -> set[UUID]:
    """Delete a task and its subtree unless the task is already done.

    The row lock is taken before the status is read, so a completion committed
    concurrently either lands first and blocks the delete or waits for it.
    """
    task = await fetch_task(session, owner_id, task_id, lock=True)
    if task.is_done:
        raise TaskDeletionBlockedError(COMPLETED_TASK_REASON)
    return await _soft_delete_locked(session, owner_id, task)
