# booking_engine/db/sql.py
from __future__ import annotations

import logging
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from booking_engine.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(dsn: str, *, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine. Pool sizing only applies to server databases;
    SQLite (aiosqlite) manages its own pool.
    """
    if dsn.startswith("sqlite"):
        return create_async_engine(dsn, echo=echo)

    return create_async_engine(
        dsn,
        echo=echo,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_timeout=settings.DB_POOL_TIMEOUT,
    )


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )


engine = build_engine(settings.SQL_DSN, echo=settings.DB_ECHO)

AsyncSessionLocal = build_sessionmaker(engine)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Provide a DB session for each request, from the app's sessionmaker.
    Commit on success, rollback on any error and re-raise.
    """
    sessionmaker = getattr(request.app.state, "sessionmaker", AsyncSessionLocal)
    async with sessionmaker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_db(sessionmaker: async_sessionmaker[AsyncSession] = AsyncSessionLocal) -> bool:
    async with sessionmaker() as session:
        await session.execute(text("SELECT 1"))
        return True


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Create all tables (idempotent).
    """
    from booking_engine.db.base import Base

    # Import all models so they get registered on Base.metadata
    from booking_engine.modules.availability import models as _availability  # noqa: F401
    from booking_engine.modules.bookings import models as _bookings  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")
