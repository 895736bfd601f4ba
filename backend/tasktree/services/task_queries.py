"""Filtering, sorting, searching, and pagination of owner-scoped tasks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_
from sqlmodel import col

from tasktree.core.config import settings
from tasktree.core.logging import get_logger
from tasktree.db.pagination import paginate
from tasktree.models.tasks import Task, TaskStatus
from tasktree.schemas.pagination import TaskPage, TaskPageParams
from tasktree.schemas.tasks import SEARCH_LENGTH_MESSAGE, SEARCH_MIN_LENGTH, TaskFilters
from tasktree.services.task_descendants import fetch_task, live_tasks
from tasktree.services.task_errors import TaskValidationError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from tasktree.db.query_manager import QuerySet

    ItemTransformer = Callable[[Sequence[Any]], Sequence[Any]]

logger = get_logger(__name__)

SORT_DIRECTIONS = frozenset({"asc", "desc"})
SORTABLE_FIELDS: dict[str, Any] = {
    "id": Task.id,
    "title": Task.title,
    "status": Task.status,
    "priority": Task.priority,
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
    "completed_at": Task.completed_at,
}
DEFAULT_SORT: tuple[tuple[str, str], ...] = (("created_at", "desc"),)
_SORT_ENTRY_SPLIT = re.compile(r"[:\s]+")


@dataclass(frozen=True)
class TaskSort:
    """Ordered `(field, direction)` pairs drawn from `SORTABLE_FIELDS`."""

    fields: tuple[tuple[str, str], ...] = DEFAULT_SORT

    @classmethod
    def parse(cls, raw: str | None) -> TaskSort:
        """Parse ``"priority:asc,created_at desc,title"`` style sort strings.

        Unknown fields and directions are dropped; a bare field sorts
        ascending; an empty result falls back to ``created_at desc``.
        """
        if not raw:
            return cls()
        parsed: list[tuple[str, str]] = []
        seen: set[str] = set()
        for entry in raw.split(","):
            parts = [part for part in _SORT_ENTRY_SPLIT.split(entry.strip()) if part]
            if not parts or len(parts) > 2:
                continue
            name = parts[0].lower()
            direction = parts[1].lower() if len(parts) == 2 else "asc"
            if name not in SORTABLE_FIELDS or direction not in SORT_DIRECTIONS:
                continue
            if name in seen:
                continue
            seen.add(name)
            parsed.append((name, direction))
        if not parsed:
            return cls()
        return cls(fields=tuple(parsed))

    def clauses(self) -> list[Any]:
        """Build ORDER BY clauses with `id` as the final tie-breaker."""
        ordering: list[Any] = []
        for name, direction in self.fields:
            column = col(SORTABLE_FIELDS[name])
            ordering.append(column.desc() if direction == "desc" else column.asc())
        if "id" not in {name for name, _ in self.fields}:
            ordering.append(col(Task.id).asc())
        return ordering


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _search_clause(term: str) -> Any:
    pattern = f"%{_escape_like(term.strip())}%"
    return or_(
        col(Task.title).ilike(pattern, escape="\\"),
        col(Task.description).ilike(pattern, escape="\\"),
    )


def apply_filters(query: QuerySet[Task], filters: TaskFilters) -> QuerySet[Task]:
    """Narrow *query* by every filter that is set."""
    if filters.status is not None:
        query = query.filter(col(Task.status) == TaskStatus(filters.status).value)
    if filters.priority is not None:
        query = query.filter(col(Task.priority) == int(filters.priority))
    if filters.search_term is not None:
        query = query.filter(_search_clause(filters.search_term))
    if filters.parent_id is not None:
        query = query.filter(col(Task.parent_id) == filters.parent_id)
    if filters.root_tasks_only:
        query = query.filter(col(Task.parent_id).is_(None))
    if filters.subtasks_only:
        query = query.filter(col(Task.parent_id).is_not(None))
    if filters.created_after is not None:
        query = query.filter(col(Task.created_at) >= filters.created_after)
    if filters.created_before is not None:
        query = query.filter(col(Task.created_at) <= filters.created_before)
    if filters.completed_after is not None:
        query = query.filter(col(Task.completed_at) >= filters.completed_after)
    if filters.completed_before is not None:
        query = query.filter(col(Task.completed_at) <= filters.completed_before)
    return query


def page_params(page: int = 1, size: int | None = None) -> TaskPageParams:
    """Validate a page request against the configured page-size bounds."""
    size = settings.default_page_size if size is None else size
    problems: list[str] = []
    if page < 1:
        problems.append("page must be at least 1")
    if size < 1 or size > settings.max_page_size:
        problems.append(f"size must be between 1 and {settings.max_page_size}")
    if problems:
        raise TaskValidationError(problems)
    return TaskPageParams(page=page, size=size)


async def list_tasks(
    session: AsyncSession,
    owner_id: UUID,
    filters: TaskFilters | None = None,
    sort: TaskSort | None = None,
    *,
    page: int = 1,
    size: int | None = None,
    transformer: ItemTransformer | None = None,
) -> TaskPage[Any]:
    """Return a filtered, sorted page of the owner's live tasks."""
    filters = filters or TaskFilters()
    problems = filters.errors()
    if problems:
        raise TaskValidationError(problems)
    params = page_params(page, size)
    sort = sort or TaskSort()
    query = apply_filters(live_tasks(owner_id), filters).order_by(*sort.clauses())
    return await paginate(
        session,
        query.statement,
        page_type=TaskPage,
        params=params,
        transformer=transformer,
    )


async def search_tasks(
    session: AsyncSession,
    owner_id: UUID,
    term: str,
    *,
    page: int = 1,
    size: int | None = None,
    transformer: ItemTransformer | None = None,
) -> TaskPage[Any]:
    """Case-insensitive substring search over title and description, newest first."""
    cleaned = term.strip()
    if len(cleaned) < SEARCH_MIN_LENGTH:
        raise TaskValidationError([SEARCH_LENGTH_MESSAGE])
    params = page_params(page, size)
    query = (
        live_tasks(owner_id)
        .filter(_search_clause(cleaned))
        .order_by(*TaskSort().clauses())
    )
    result = await paginate(
        session,
        query.statement,
        page_type=TaskPage,
        params=params,
        transformer=transformer,
    )
    logger.debug("task.search.complete owner_id=%s total=%s", owner_id, result.total)
    return result


async def list_child_tasks(
    session: AsyncSession,
    owner_id: UUID,
    task_id: UUID,
    sort: TaskSort | None = None,
) -> Sequence[Task]:
    """Return the direct children of a live task in the requested order."""
    await fetch_task(session, owner_id, task_id)
    sort = sort or TaskSort()
    return await (
        live_tasks(owner_id)
        .filter(col(Task.parent_id) == task_id)
        .order_by(*sort.clauses())
        .all(session)
    )
