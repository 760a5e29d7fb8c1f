"""Fixtures for HTTP-level tests: an isolated app per test, no real DB."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
from factories import FakeHasher, make_settings, make_tenant
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from helpdesk.api.app import create_app
from helpdesk.api.services import AppServices
from helpdesk.storage.database import get_session
from helpdesk.tenancy.cache import id_key
from helpdesk.tenancy.context import TenantSnapshot

TENANT_ID = uuid.UUID("0192f2c1-4b7e-7a3c-9d10-5e8f2a6b1c00")


def provider_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=[{"id": 1, "subject": "Reset VPN"}])


@pytest.fixture()
def settings_overrides() -> dict[str, Any]:
    """Per-module hook to tweak Settings for the app under test."""
    return {}


@pytest.fixture()
def email_sender() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def app(
    settings_overrides: dict[str, Any],
    mock_session: AsyncMock,
    email_sender: AsyncMock,
) -> FastAPI:
    application = create_app(
        make_settings(**settings_overrides),
        email_sender=email_sender,
        hasher=FakeHasher(),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(provider_handler)),
    )

    async def _session() -> AsyncGenerator[AsyncMock]:
        yield mock_session

    application.dependency_overrides[get_session] = _session
    return application


@pytest.fixture()
def services(app: FastAPI) -> AppServices:
    return app.state.services


@pytest.fixture()
def tenant(services: AppServices) -> TenantSnapshot:
    """An active tenant, already in the resolver cache."""
    snapshot = TenantSnapshot.from_orm(make_tenant(id=TENANT_ID))
    services.tenant_resolver.cache.put(id_key(TENANT_ID), snapshot)
    return snapshot


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture()
def bearer(services: AppServices) -> Callable[..., dict[str, str]]:
    """Build request headers with a token for the given tenant and role."""

    def _headers(
        *,
        tenant_id: uuid.UUID = TENANT_ID,
        role: str = "user",
        user_id: uuid.UUID | None = None,
    ) -> dict[str, str]:
        token = services.tokens.issue(
            user_id=user_id or uuid.uuid4(),
            tenant_id=tenant_id,
            email="ana@acme.test",
            role=role,
        )
        return {"X-Tenant-ID": str(TENANT_ID), "Authorization": f"Bearer {token}"}

    return _headers
