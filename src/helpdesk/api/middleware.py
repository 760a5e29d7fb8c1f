"""HTTP request logging and global rate limiting middleware."""

import time
from collections.abc import Iterable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from helpdesk.auth.rate_limiter import FixedWindowRateLimiter
from helpdesk.errors import RateLimitedError
from helpdesk.logging_config import clear_request_context

logger = structlog.get_logger()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with method, path, status code, tenant and latency."""

    SKIP_PATHS: frozenset[str] = frozenset(
        {"/health", "/docs", "/openapi.json", "/redoc"}
    )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and log timing information."""
        clear_request_context()
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)

        # Set by the tenant dependency; absent for unscoped routes.
        tenant = getattr(request.state, "tenant", None)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=latency_ms,
            tenant_id=str(tenant.tenant_id) if tenant is not None else None,
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP request budget applied before routing.

    Exempt paths (public bulk reads) carry their own limiter as a route
    dependency. Rejections are rendered here: exceptions raised in
    ``BaseHTTPMiddleware`` bypass the app's exception handlers.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: FixedWindowRateLimiter,
        exempt_paths: Iterable[str] = (),
    ) -> None:
        super().__init__(app)
        self._limiter = limiter
        self._exempt_paths = frozenset(exempt_paths)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self._exempt_paths or request.method == "OPTIONS":
            return await call_next(request)

        ip = request.client.host if request.client else "unknown"
        allowed, retry_after = self._limiter.check(ip)
        if not allowed:
            logger.info("rate_limit_exceeded", scope="global", key=ip)
            error = RateLimitedError("too many requests", retry_after=retry_after)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_dict(),
                headers=error.headers,
            )
        return await call_next(request)
