"""Async engine, sessions for API requests and scheduled jobs, and schema bootstrap."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from alembic.config import Config
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from bypass_guard import models as _models
from bypass_guard.core.config import BACKEND_ROOT, settings
from bypass_guard.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator

# Registers every table on SQLModel.metadata before create_all runs.
_MODEL_REGISTRY = _models

# Plain URL schemes mapped to the async driver the engine must use.
_ASYNC_SCHEMES = {
    "postgres": "postgresql+psycopg",
    "postgresql": "postgresql+psycopg",
    "sqlite": "sqlite+aiosqlite",
}
MIGRATIONS_VERSIONS_DIR = BACKEND_ROOT / "migrations" / "versions"

logger = get_logger(__name__)


def _normalize_database_url(database_url: str) -> str:
    scheme, sep, rest = database_url.partition("://")
    if not sep:
        return database_url
    return f"{_ASYNC_SCHEMES.get(scheme, scheme)}://{rest}"


async_engine: AsyncEngine = create_async_engine(
    _normalize_database_url(settings.database_url),
    pool_pre_ping=True,
)
async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def run_migrations() -> None:
    """Upgrade the schema to the latest bypass revision."""
    from alembic import command

    alembic_cfg = Config(str(BACKEND_ROOT / "alembic.ini"))
    alembic_cfg.attributes["configure_logger"] = False
    logger.info("db.migrations.started")
    command.upgrade(alembic_cfg, "head")
    logger.info("db.migrations.complete")


async def init_db() -> None:
    """Create the bypass schema, through Alembic when auto-migrate is on."""
    if settings.db_auto_migrate and any(MIGRATIONS_VERSIONS_DIR.glob("*.py")):
        await asyncio.to_thread(run_migrations)
        return
    if settings.db_auto_migrate:
        logger.warning("db.migrations.missing", extra={"path": str(MIGRATIONS_VERSIONS_DIR)})

    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


@asynccontextmanager
async def job_session() -> AsyncIterator[AsyncSession]:
    """Session whose uncommitted work is rolled back on exit."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per HTTP request."""
    async with job_session() as session:
        yield session
