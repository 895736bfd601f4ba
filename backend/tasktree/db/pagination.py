"""Async pagination of SQLModel statements into fastapi-pagination pages."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi_pagination import set_page
from fastapi_pagination.ext.sqlmodel import paginate as _paginate

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from fastapi_pagination.bases import AbstractPage, AbstractParams
    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

async def paginate(
    session: AsyncSession,
    statement: SelectOfScalar[Any],
    *,
    page_type: type[AbstractPage[Any]],
    params: AbstractParams | None = None,
    transformer: Callable[[Sequence[Any]], Sequence[Any]] | None = None,
) -> Any:
    """Count *statement*, fetch one page of it and build a `page_type` page.

    Explicit `params` make this usable outside a request; otherwise the params
    resolved for the current request are used.
    """
    with set_page(page_type):
        return await _paginate(session, statement, params=params, transformer=transformer)
