"""Small query-builder layer exposed on models as `Model.objects`."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlmodel import SQLModel, select

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.sql.elements import ColumnElement
    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

ModelT = TypeVar("ModelT", bound=SQLModel)


@dataclass(frozen=True)
class QuerySet(Generic[ModelT]):
    """Immutable wrapper around a `select(Model)` statement."""

    model: type[ModelT]
    statement: SelectOfScalar[ModelT]

    def filter(self, *criteria: ColumnElement[bool] | bool) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.where(*criteria))

    def filter_by(self, **values: Any) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.filter_by(**values))

    def order_by(self, *clauses: Any) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.order_by(*clauses))

    def limit(self, count: int) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.limit(count))

    def offset(self, count: int) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.offset(count))

    def for_update(self) -> QuerySet[ModelT]:
        """Lock matched rows and refresh copies already held by the session."""
        statement = self.statement.with_for_update().execution_options(populate_existing=True)
        return replace(self, statement=statement)

    async def first(self, session: AsyncSession) -> ModelT | None:
        return (await session.exec(self.statement)).first()

    async def all(self, session: AsyncSession) -> Sequence[ModelT]:
        return list(await session.exec(self.statement))


class ModelManager(Generic[ModelT]):
    """Entry point for building model queries."""

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    def all(self) -> QuerySet[ModelT]:
        return QuerySet(self.model, select(self.model))

    def filter(self, *criteria: ColumnElement[bool] | bool) -> QuerySet[ModelT]:
        return self.all().filter(*criteria)

    def filter_by(self, **values: Any) -> QuerySet[ModelT]:
        return self.all().filter_by(**values)


class ManagerDescriptor:
    """Class-level descriptor returning a manager bound to the accessing model."""

    def __get__(self, _instance: object, owner: type[ModelT]) -> ModelManager[ModelT]:
        return ModelManager(owner)
