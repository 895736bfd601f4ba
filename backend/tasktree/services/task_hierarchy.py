"""Parent-pointer validation and ancestor-chain queries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tasktree.core.logging import get_logger
from tasktree.services.task_descendants import fetch_task, find_task
from tasktree.services.task_errors import TaskHierarchyError

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from tasktree.models.tasks import Task

logger = get_logger(__name__)

SELF_PARENT_REASON = "Task cannot be its own parent"
CYCLE_REASON = "Moving task would create a circular reference"


def _parent_not_found_reason(parent_id: UUID) -> str:
    return f"Parent task {parent_id} not found"


async def validate_new_parent(
    session: AsyncSession,
    owner_id: UUID,
    proposed_parent_id: UUID,
) -> Task:
    """Ensure the parent of a task being created exists for this owner.

    The parent row is locked so a concurrent completion or deletion of its
    subtree is serialized against the insert.
    """
    parent = await find_task(session, owner_id, proposed_parent_id, lock=True)
    if parent is None:
        logger.info(
            "task.hierarchy.parent_missing owner_id=%s parent_id=%s",
            owner_id,
            proposed_parent_id,
        )
        raise TaskHierarchyError(_parent_not_found_reason(proposed_parent_id))
    return parent


async def validate_reparent(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
    proposed_parent_id: UUID | None,
) -> Task | None:
    """Check that *task_id* may be moved under *proposed_parent_id*.

    Returns the locked parent, or ``None`` when detaching to root. Raises
    `TaskHierarchyError` for self-parenting, a missing parent, or a move that
    would put the task beneath one of its own descendants.
    """
    if proposed_parent_id is None:
        return None
    if proposed_parent_id == task_id:
        raise TaskHierarchyError(SELF_PARENT_REASON)
    parent = await validate_new_parent(session, owner_id, proposed_parent_id)

    # Walk upward from the candidate; reaching task_id means a cycle.
    visited: set[UUID] = {parent.id}
    current_id = parent.parent_id
    while current_id is not None:
        if current_id == task_id:
            logger.info(
                "task.hierarchy.cycle_rejected task_id=%s parent_id=%s",
                task_id,
                proposed_parent_id,
            )
            raise TaskHierarchyError(CYCLE_REASON)
        if current_id in visited:
            logger.warning(
                "task.hierarchy.inconsistent_chain task_id=%s at=%s",
                task_id,
                current_id,
            )
            break
        visited.add(current_id)
        ancestor = await find_task(session, owner_id, current_id)
        if ancestor is None:
            break
        current_id = ancestor.parent_id
    return parent


async def get_ancestors(
    session: AsyncSession,
    owner_id: UUID,
    task: Task,
) -> list[Task]:
    """Return the live ancestors of *task*, root first."""
    chain: list[Task] = []
    visited: set[UUID] = {task.id}
    current_id = task.parent_id
    while current_id is not None and current_id not in visited:
        visited.add(current_id)
        ancestor = await find_task(session, owner_id, current_id)
        if ancestor is None:
            break
        chain.append(ancestor)
        current_id = ancestor.parent_id
    chain.reverse()
    return chain


async def get_depth(session: AsyncSession, owner_id: UUID, task_id: UUID) -> int:
    """Return the number of ancestors above *task_id*; roots have depth 0."""
    task = await fetch_task(session, owner_id, task_id)
    return len(await get_ancestors(session, owner_id, task))
