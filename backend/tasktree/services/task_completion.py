"""Completion state machine for tasks.

A task may move Pending -> Done only once every live descendant is Done.
Done -> Pending is always allowed and never cascades to ancestors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tasktree.core.logging import get_logger
from tasktree.core.time import utcnow
from tasktree.models.tasks import Task, TaskStatus
from tasktree.services.task_descendants import collect_descendant_ids, fetch_task, load_tasks
from tasktree.services.task_errors import TaskCompletionBlockedError

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)

PENDING_SUBTASKS_REASON = "All subtasks must be completed first"


async def pending_descendant_ids(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
    *,
    lock: bool = False,
) -> list[UUID]:
    """Return ids of live descendants still in the pending state."""
    descendant_ids = await collect_descendant_ids(session, owner_id, task_id, lock=lock)
    if not descendant_ids:
        return []
    descendants = await load_tasks(session, owner_id, descendant_ids)
    return [task.id for task in descendants if task.status == TaskStatus.PENDING.value]


async def complete_task(session: AsyncSession, owner_id: UUID, task_id: UUID) -> Task:
    """Mark a task done when its whole subtree is done."""
    task = await fetch_task(session, owner_id, task_id, lock=True)
    if task.is_done:
        return task

    pending_ids = await pending_descendant_ids(session, owner_id, task_id, lock=True)
    if pending_ids:
        logger.info(
            "task.complete.blocked task_id=%s pending=%s",
            task_id,
            len(pending_ids),
        )
        raise TaskCompletionBlockedError(
            PENDING_SUBTASKS_REASON,
            pending_task_ids=pending_ids,
        )

    now = utcnow()
    task.status = TaskStatus.DONE.value
    task.completed_at = now
    task.updated_at = now
    session.add(task)
    await session.commit()
    await session.refresh(task)
    logger.info("task.complete.success task_id=%s", task_id)
    return task


async def reopen_task(session: AsyncSession, owner_id: UUID, task_id: UUID) -> Task:
    """Move a done task back to pending and clear its completion time."""
    task = await fetch_task(session, owner_id, task_id, lock=True)
    if not task.is_done:
        return task

    task.status = TaskStatus.PENDING.value
    task.completed_at = None
    task.updated_at = utcnow()
    session.add(task)
    await session.commit()
    await session.refresh(task)
    logger.info("task.reopen.success task_id=%s", task_id)
    return task


async def transition_status(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
    target: TaskStatus,
) -> Task:
    """Move a task to *target*, enforcing the completion gate."""
    if target == TaskStatus.DONE:
        return await complete_task(session, owner_id, task_id)
    return await reopen_task(session, owner_id, task_id)
