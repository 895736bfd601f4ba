# ruff: noqa: INP001
"""Pytest configuration shared across backend tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import UUID

import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Deterministic settings during import-time initialization, regardless of shell env.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_AUTO_MIGRATE"] = "false"

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from tasktree import models as _models  # noqa: E402, F401
from tasktree.core.time import utcnow  # noqa: E402
from tasktree.models.tasks import Task, TaskPriority, TaskStatus  # noqa: E402
from tasktree.models.users import User  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


async def make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = await make_engine()
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def owner(session: AsyncSession) -> User:
    return await add_user(session, "owner@example.com")


async def add_user(session: AsyncSession, email: str, token_hash: str | None = None) -> User:
    user = User(email=email, name=email.split("@", 1)[0], api_token_hash=token_hash)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def add_task(
    session: AsyncSession,
    owner_id: UUID,
    title: str,
    *,
    parent: Task | None = None,
    status: TaskStatus = TaskStatus.PENDING,
    priority: TaskPriority = TaskPriority.MEDIUM,
    description: str | None = None,
) -> Task:
    """Insert a task directly, bypassing the engine's validation."""
    task = Task(
        owner_id=owner_id,
        parent_id=parent.id if parent is not None else None,
        title=title,
        description=description,
        status=status.value,
        priority=int(priority),
        completed_at=utcnow() if status == TaskStatus.DONE else None,
    )
    session.add(task)
    await session.commit()
    await session.refresh(task)
    return task
