"""
Async database access for the learning session backend (SQLAlchemy Core + asyncpg).

Route handlers open a transaction per request; LearningSession writes go
through DatabaseSessionStore, one transaction per write.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

_engine: AsyncEngine | None = None


def _database_url(driver: str) -> str:
    """DATABASE_URL rewritten for the given postgresql driver."""
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable must be set.")
    for prefix in ("postgresql+asyncpg://", "postgresql://"):
        if database_url.startswith(prefix):
            return f"postgresql+{driver}://" + database_url[len(prefix):]
    return database_url


def _get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            _database_url("asyncpg"),
            echo=os.environ.get("SQL_ECHO", "").lower() == "true",
            pool_size=5,
            max_overflow=10,
            pool_recycle=1800,
        )
    return _engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """Read-only work: a pooled connection without an explicit transaction."""
    async with _get_engine().connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """Commits on success, rolls back on exception."""
    async with _get_engine().begin() as conn:
        yield conn


async def close_engine() -> None:
    """Dispose of the pool. Called from the app lifespan on shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    return bool(os.environ.get("DATABASE_URL"))


def get_sync_database_url() -> str:
    """psycopg2 URL for alembic, which migrates synchronously."""
    return _database_url("psycopg2")
