"""Page and params types for paginated task listings."""

from __future__ import annotations

import math
from typing import Generic, Self, TypeVar

from fastapi import Query
from fastapi_pagination import Page, Params
from pydantic import ConfigDict, Field, model_validator

from tasktree.core.config import settings

T = TypeVar("T")


class TaskPageParams(Params):
    """Page-number params bounded by the configured page sizes."""

    page: int = Query(1, ge=1, description="Page number")
    size: int = Query(
        settings.default_page_size,
        ge=1,
        le=settings.max_page_size,
        description="Page size",
    )


class TaskPage(Page[T], Generic[T]):
    """Page of results with the last page number and the 1-based item span.

    `from` and `to` are null when the page is empty.
    """

    __params_type__ = TaskPageParams

    model_config = ConfigDict(populate_by_name=True)

    last_page: int = 1
    has_more: bool = False
    from_item: int | None = Field(default=None, alias="from")
    to_item: int | None = Field(default=None, alias="to")

    @model_validator(mode="after")
    def fill_positions(self) -> Self:
        page = self.page or 1
        size = self.size or max(len(self.items), 1)
        total = self.total or 0
        self.last_page = max(1, math.ceil(total / size))
        self.has_more = page < self.last_page
        if self.items:
            self.from_item = (page - 1) * size + 1
            self.to_item = self.from_item + len(self.items) - 1
        else:
            self.from_item = None
            self.to_item = None
        return self
