"""Database engine, session factory, and startup schema helpers."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any

from alembic.config import Config
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from tasktree import models as _models
from tasktree.core.config import settings
from tasktree.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

# Import model modules so SQLModel metadata is fully registered at startup.
_MODEL_REGISTRY = _models

BACKEND_DIR = Path(__file__).resolve().parents[2]
MIGRATIONS_DIR = BACKEND_DIR / "migrations"

logger = get_logger(__name__)


def normalize_database_url(database_url: str) -> str:
    """Map plain driver schemes onto the async drivers the engine needs."""
    if "://" not in database_url:
        return database_url
    scheme, rest = database_url.split("://", 1)
    if scheme in {"postgresql", "postgres"}:
        return f"postgresql+psycopg://{rest}"
    if scheme == "sqlite":
        return f"sqlite+aiosqlite://{rest}"
    return database_url


def is_sqlite_url(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    # SQLite leaves parent and owner references unenforced unless asked.
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for *database_url* with per-backend options."""
    url = normalize_database_url(database_url)
    if not is_sqlite_url(url):
        return create_async_engine(url, pool_pre_ping=True)
    engine = create_async_engine(url)
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


async_engine: AsyncEngine = build_engine(settings.database_url)
async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def _alembic_config() -> Config:
    alembic_cfg = Config(str(BACKEND_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    alembic_cfg.attributes["configure_logger"] = False
    return alembic_cfg


def has_migration_revisions(migrations_dir: Path = MIGRATIONS_DIR) -> bool:
    return any((migrations_dir / "versions").glob("*.py"))


def run_migrations() -> None:
    """Upgrade the task schema to the latest Alembic revision."""
    from alembic import command

    logger.info("db.migrations.started")
    command.upgrade(_alembic_config(), "head")
    logger.info("db.migrations.complete")


async def init_db() -> None:
    """Bring the schema up on startup.

    Migrations run when auto-migrate is on and revisions exist; otherwise the
    tables are created straight from the SQLModel metadata.
    """
    if settings.db_auto_migrate and has_migration_revisions():
        await asyncio.to_thread(run_migrations)
        return
    if settings.db_auto_migrate:
        logger.warning("db.migrations.missing fallback=create_all")
    async with async_engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("db.schema.created tables=%s", len(SQLModel.metadata.tables))


async def _rollback_open_transaction(session: AsyncSession) -> None:
    try:
        in_txn = bool(session.in_transaction())
    except SQLAlchemyError:
        logger.exception("db.session.inspect_failed")
        return
    if not in_txn:
        return
    try:
        await session.rollback()
    except SQLAlchemyError:
        logger.exception("db.session.rollback_failed")


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session; uncommitted work is rolled back on exit.

    Row locks taken by a blocked completion or deletion are released here.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await _rollback_open_transaction(session)
