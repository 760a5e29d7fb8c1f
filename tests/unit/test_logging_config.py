"""Tests for structured logging configuration and request middleware."""

import json
import logging
import re
import uuid
from io import StringIO
from unittest.mock import patch

import pytest
import structlog
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from helpdesk.api.middleware import RequestLoggingMiddleware
from helpdesk.logging_config import (
    bind_tenant,
    clear_request_context,
    configure_logging,
)


@pytest.fixture(autouse=True)
def _reset_structlog() -> None:
    """Reset structlog state after each test."""
    yield
    clear_request_context()
    structlog.reset_defaults()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


def _capture_log_output(
    environment: str, log_level: str = "DEBUG", **event_kw: object
) -> str:
    """Configure logging, emit a message, return captured output."""
    configure_logging(environment=environment, log_level=log_level)

    stream = StringIO()
    root = logging.getLogger()
    if not root.handlers or not isinstance(root.handlers[0], logging.StreamHandler):
        raise RuntimeError("Expected configure_logging to set up a StreamHandler")

    original_stream = root.handlers[0].stream
    root.handlers[0].stream = stream

    logger = structlog.get_logger()
    logger.info("test_event", key="value", **event_kw)

    root.handlers[0].stream = original_stream
    return stream.getvalue()


class TestConfigureLogging:
    def test_configure_production_json(self) -> None:
        """Production environment produces valid JSON output."""
        output = _capture_log_output("production")
        parsed = json.loads(output)
        assert parsed["event"] == "test_event"
        assert parsed["key"] == "value"
        assert parsed["level"] == "info"
        assert "T" in parsed["timestamp"]

    def test_configure_development_console(self) -> None:
        output = _capture_log_output("development")
        plain = re.sub(r"\x1b\[[0-9;]*m", "", output)
        assert "test_event" in plain
        assert "key=value" in plain

    def test_configure_sets_log_level(self) -> None:
        configure_logging(log_level="WARNING")
        assert logging.getLogger().level == logging.WARNING

    @pytest.mark.parametrize(
        "key",
        ["password", "provider_password", "refresh_token", "Authorization"],
    )
    def test_sensitive_values_redacted(self, key: str) -> None:
        output = _capture_log_output("production", **{key: "hunter2"})
        parsed = json.loads(output)
        assert parsed[key] == "***REDACTED***"
        assert "hunter2" not in output


class TestTenantContext:
    def test_bound_tenant_appears_on_every_line(self) -> None:
        bind_tenant("0192f2c1-0000-7000-8000-000000000001", "acme")
        parsed = json.loads(_capture_log_output("production"))
        assert parsed["tenant_id"] == "0192f2c1-0000-7000-8000-000000000001"
        assert parsed["tenant_slug"] == "acme"

    def test_clear_request_context(self) -> None:
        bind_tenant("t-1", "acme")
        clear_request_context()
        parsed = json.loads(_capture_log_output("production"))
        assert "tenant_id" not in parsed


class TestRequestLoggingMiddleware:
    @pytest.fixture()
    def test_app(self) -> FastAPI:
        """Minimal app with the middleware; one route sets a tenant."""
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test-endpoint")
        async def _test_endpoint() -> dict[str, str]:
            return {"ok": "true"}

        @app.get("/scoped")
        async def _scoped(request: Request) -> dict[str, str]:
            request.state.tenant = type(
                "Ctx", (), {"tenant_id": uuid.UUID(int=7)}
            )()
            return {"ok": "true"}

        @app.get("/health")
        async def _health() -> dict[str, str]:
            return {"status": "ok"}

        return app

    async def _get(self, app: FastAPI, path: str) -> None:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as client:
            await client.get(path)

    async def test_middleware_logs_request(self, test_app: FastAPI) -> None:
        """Middleware logs method, path, status_code, latency_ms."""
        with patch("helpdesk.api.middleware.logger") as mock_logger:
            await self._get(test_app, "/test-endpoint")

        mock_logger.info.assert_called_once()
        call_args = mock_logger.info.call_args
        assert call_args[0][0] == "http_request"
        assert call_args[1]["method"] == "GET"
        assert call_args[1]["path"] == "/test-endpoint"
        assert call_args[1]["status_code"] == 200
        assert "latency_ms" in call_args[1]
        assert call_args[1]["tenant_id"] is None

    async def test_middleware_logs_resolved_tenant(self, test_app: FastAPI) -> None:
        with patch("helpdesk.api.middleware.logger") as mock_logger:
            await self._get(test_app, "/scoped")

        assert mock_logger.info.call_args[1]["tenant_id"] == str(uuid.UUID(int=7))

    async def test_middleware_skips_health(self, test_app: FastAPI) -> None:
        with patch("helpdesk.api.middleware.logger") as mock_logger:
            await self._get(test_app, "/health")

        mock_logger.info.assert_not_called()
