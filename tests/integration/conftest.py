"""Shared fixtures for integration tests requiring live PostgreSQL."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from helpdesk.config import get_settings
from helpdesk.storage.orm import Tenant

# ── Engine ─────────────────────────────────────────────────────────


@pytest.fixture()
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine(
        get_settings().database_url,
        pool_size=5,
        max_overflow=0,
    )
    yield engine
    await engine.dispose()


# ── Session with rollback ──────────────────────────────────────────


@pytest.fixture()
async def db_session(
    async_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession]:
    """Provide a session wrapped in a transaction, rolled back after test.

    Suitable for repository tests that use ``flush()`` but NOT ``commit()``.
    """
    async with async_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        yield session

        await session.close()
        await trans.rollback()


def _tenant_row(**overrides: object) -> Tenant:
    suffix = uuid.uuid4().hex[:8]
    fields: dict[str, object] = {
        "name": f"test-tenant-{suffix}",
        "slug": f"test-{suffix}",
        "provider_base_url": "https://helpdesk.example.test/api",
        "provider_username": "bot",
        "provider_password": "secret",
        "provider_company_id": 1,
        "provider_group_id": 1,
        "provider_location_id": 1,
    }
    fields.update(overrides)
    return Tenant(**fields)


@pytest.fixture()
async def seed_tenant(db_session: AsyncSession) -> Tenant:
    tenant = _tenant_row()
    db_session.add(tenant)
    await db_session.flush()
    return tenant


@pytest.fixture()
async def other_tenant(db_session: AsyncSession) -> Tenant:
    tenant = _tenant_row()
    db_session.add(tenant)
    await db_session.flush()
    return tenant
