"""Async SQLAlchemy engine and the request-scoped session.

With DATABASE_URL set, every request gets one AsyncSession shared by all
repositories in its ``Repos`` bundle, so a watch ping or a content edit
commits (or rolls back) as a single transaction.  The per-learner writer
scopes in the progress repos are SAVEPOINTs inside that transaction.

Without DATABASE_URL, ``engine`` and ``async_session_factory`` are None
and the API serves from the in-memory repositories.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

# Advisory-lock waits count against this; a stuck writer fails the
# request instead of hanging it
LOCK_TIMEOUT_MS = 5000


class Base(DeclarativeBase):
    """Declarative base for the progress and content tables."""


if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        connect_args={
            "server_settings": {
                "application_name": "progress-service",
                "lock_timeout": str(LOCK_TIMEOUT_MS),
            }
        },
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session for the request; commit on success, roll back on error."""
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured; no session available")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_database() -> bool:
    if engine is None:
        return False
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("No DATABASE_URL configured, serving from in-memory repositories")
        yield
        return

    logger.info("Database engine ready url=%s", engine.url)
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
