"""Tests for FastAPI bootstrap: health, CORS, error envelope."""

from collections.abc import Generator
from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from factories import make_settings
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from helpdesk.api.app import create_app
from helpdesk.api.services import AppServices
from helpdesk.tenancy.context import TenantSnapshot


@contextmanager
def mock_db(
    services: AppServices, *, error: Exception | None = None
) -> Generator[AsyncMock]:
    """Mock the app's session factory used by the health check.

    Args:
        error: If set, entering the session raises this exception.
    """
    db_session = AsyncMock()
    factory = MagicMock()
    if error:
        factory.return_value.__aenter__ = AsyncMock(side_effect=error)
    else:
        factory.return_value.__aenter__ = AsyncMock(return_value=db_session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    with patch.object(services, "session_factory", factory):
        yield db_session


class TestHealth:
    async def test_health_ok(self, client: AsyncClient, services: AppServices) -> None:
        with mock_db(services):
            response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["checks"] == {"db": "ok"}
        assert "timestamp" in body

    async def test_health_db_down(
        self, client: AsyncClient, services: AppServices
    ) -> None:
        error = OperationalError("SELECT 1", {}, Exception("refused"))
        with mock_db(services, error=error):
            response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"
        assert response.json()["checks"]["db"].startswith("error:")


class TestDatabaseWiring:
    def test_engine_built_from_injected_settings(self) -> None:
        app = create_app(
            make_settings(
                postgres_host="db.internal",
                postgres_db="helpdesk_other",
                store_timeout_seconds=2.5,
            )
        )
        engine = app.state.services.engine

        assert engine.url.host == "db.internal"
        assert engine.url.database == "helpdesk_other"

    def test_each_app_owns_its_engine(self) -> None:
        first = create_app(make_settings())
        second = create_app(make_settings())

        assert first.state.services.engine is not second.state.services.engine
        assert (
            first.state.services.session_factory.kw["bind"]
            is first.state.services.engine
        )

    def test_statement_timeout_follows_settings(self) -> None:
        with patch("helpdesk.storage.database.create_async_engine") as create:
            create_app(make_settings(store_timeout_seconds=2.5))

        connect_args = create.call_args.kwargs["connect_args"]
        assert connect_args == {"options": "-c statement_timeout=2500"}


class TestErrorEnvelope:
    async def test_unknown_route(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/nope")
        assert response.status_code == 404

    async def test_validation_error_is_invalid_input(
        self, client: AsyncClient, tenant: TenantSnapshot
    ) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "not-an-email"},
            headers={"X-Tenant-ID": "0192f2c1-4b7e-7a3c-9d10-5e8f2a6b1c00"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_input"


class TestCors:
    ORIGIN = "https://app.acme.test"

    @pytest.fixture()
    def settings_overrides(self) -> dict[str, object]:
        return {"cors_allowed_origins": [self.ORIGIN]}

    async def test_preflight_allows_tenant_header(self, client: AsyncClient) -> None:
        response = await client.options(
            "/api/v1/auth/login",
            headers={
                "Origin": self.ORIGIN,
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "X-Tenant-ID",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == self.ORIGIN
