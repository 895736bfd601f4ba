"""Base model classes shared by table models."""

from __future__ import annotations

from typing import ClassVar

from sqlmodel import SQLModel

from tasktree.db.query_manager import ManagerDescriptor


class QueryModel(SQLModel):
    """SQLModel base exposing the `Model.objects` query manager."""

    objects: ClassVar[ManagerDescriptor] = ManagerDescriptor()
