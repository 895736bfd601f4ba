"""Descendant resolution over parent-pointer task rows.

Traversal is a breadth-first frontier expansion: each level issues a single
`WHERE parent_id IN (frontier)` query. Completion gating, cascading deletion,
and depth statistics all build on it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import col, select

from tasktree.models.tasks import Task
from tasktree.services.task_errors import TaskNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from tasktree.db.query_manager import QuerySet


def live_tasks(owner_id: UUID) -> QuerySet[Task]:
    """Base queryset of non-deleted tasks belonging to *owner_id*."""
    return Task.objects.filter(
        col(Task.owner_id) == owner_id,
        col(Task.deleted_at).is_(None),
    )


async def collect_descendant_ids(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
    *,
    lock: bool = False,
) -> set[UUID]:
    """Return ids of every live transitive descendant of *task_id*.

    The task itself is not included; a leaf yields an empty set. With
    ``lock=True`` every frontier query takes row locks so the caller can check
    and write the subtree in the same transaction.
    """
    descendants: set[UUID] = set()
    frontier: list[UUID] = [task_id]
    visited: set[UUID] = {task_id}
    while frontier:
        statement = (
            select(Task.id)
            .where(col(Task.owner_id) == owner_id)
            .where(col(Task.deleted_at).is_(None))
            .where(col(Task.parent_id).in_(frontier))
            .order_by(col(Task.id))
        )
        if lock:
            statement = statement.with_for_update()
        child_ids = list(await session.exec(statement))
        frontier = [child_id for child_id in child_ids if child_id not in visited]
        visited.update(frontier)
        descendants.update(frontier)
    return descendants


async def list_children(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
) -> Sequence[Task]:
    """Return the live direct children of *task_id*, oldest first."""
    return await (
        live_tasks(owner_id)
        .filter(col(Task.parent_id) == task_id)
        .order_by(col(Task.created_at).asc(), col(Task.id).asc())
        .all(session)
    )


async def load_tasks(
    session: AsyncSession,
    owner_id: UUID,
    task_ids: Iterable[UUID],
) -> Sequence[Task]:
    """Load live tasks for the given ids, ordered by id."""
    ids = sorted(set(task_ids), key=str)
    if not ids:
        return []
    return await (
        live_tasks(owner_id)
        .filter(col(Task.id).in_(ids))
        .order_by(col(Task.id).asc())
        .all(session)
    )


def max_depth_from_pairs(pairs: Iterable[tuple[UUID, UUID | None]]) -> int:
    """Compute the deepest level in a forest given `(id, parent_id)` pairs.

    Roots sit at depth 0. Rows whose parent is absent from *pairs* are treated
    as roots. An empty forest has depth 0.
    """
    children: dict[UUID | None, list[UUID]] = {}
    known: set[UUID] = set()
    rows = list(pairs)
    for node_id, _parent_id in rows:
        known.add(node_id)
    for node_id, parent_id in rows:
        key = parent_id if parent_id in known else None
        children.setdefault(key, []).append(node_id)
    return _frontier_depth(children)


def _frontier_depth(children: Mapping[UUID | None, list[UUID]]) -> int:
    frontier = list(children.get(None, []))
    if not frontier:
        return 0
    visited: set[UUID] = set(frontier)
    depth = 0
    while True:
        next_frontier = [
            child
            for node in frontier
            for child in children.get(node, [])
            if child not in visited
        ]
        if not next_frontier:
            return depth
        visited.update(next_frontier)
        frontier = next_frontier
        depth += 1


async def find_task(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
    *,
    lock: bool = False,
) -> Task | None:
    """Load a live task owned by *owner_id*, or None."""
    query = live_tasks(owner_id).filter(col(Task.id) == task_id)
    if lock:
        query = query.for_update()
    return await query.first(session)


async def fetch_task(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
    *,
    lock: bool = False,
) -> Task:
    """Load a live task owned by *owner_id* or raise `TaskNotFoundError`.

    Missing, soft-deleted and foreign tasks are indistinguishable.
    """
    task = await find_task(session, owner_id, task_id, lock=lock)
    if task is None:
        raise TaskNotFoundError(task_id)
    return task
