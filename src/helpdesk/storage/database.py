"""Async engine, session factory and the ``get_session`` dependency."""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from helpdesk.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """Engine for ``settings.database_url``.

    Every query carries a server-side ``statement_timeout`` of
    ``settings.store_timeout_seconds``, so no store call blocks indefinitely.
    """
    statement_timeout_ms = int(settings.store_timeout_seconds * 1000)
    return create_async_engine(
        settings.database_url,
        pool_pre_ping=True,
        echo=False,
        connect_args={"options": f"-c statement_timeout={statement_timeout_ms}"},
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Yield a session per request; roll back if the handler raised."""
    session_factory = request.app.state.services.session_factory
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
