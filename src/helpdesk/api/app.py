"""FastAPI application factory with lifespan management."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from helpdesk.api.middleware import RateLimitMiddleware, RequestLoggingMiddleware
from helpdesk.api.routes.articles import router as articles_router
from helpdesk.api.routes.auth import router as auth_router
from helpdesk.api.routes.reference import router as reference_router
from helpdesk.api.routes.tenants import router as tenants_router
from helpdesk.api.routes.users import router as users_router
from helpdesk.api.services import AppServices, build_services
from helpdesk.auth.passwords import PasswordHasher
from helpdesk.auth.rate_limiter import run_reaper
from helpdesk.config import Settings, get_settings
from helpdesk.email import EmailSender
from helpdesk.errors import AppError, InvalidInputError
from helpdesk.logging_config import configure_logging

logger = structlog.get_logger()

HEALTH_CHECK_TIMEOUT = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown.

    Startup:
        - Configure logging.
        - Start the reaper task (rate limiter and blacklist cleanup).
    Shutdown:
        - Cancel the reaper task.
        - Close the provider HTTP client.
        - Dispose database engine (close connection pool).
    """
    services: AppServices = app.state.services
    settings = services.settings
    configure_logging(
        environment=str(settings.environment),
        log_level=settings.log_level,
    )

    reaper_task = asyncio.create_task(
        run_reaper(
            services.reapable(),
            interval_seconds=settings.rate_limit_reaper_interval_seconds,
        )
    )
    logger.info("app_started", environment=str(settings.environment))
    yield

    reaper_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await reaper_task
    await services.http_client.aclose()
    await services.engine.dispose()
    logger.info("app_stopped")


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render :class:`AppError` as ``{"error": {"code", "message"}}``."""
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            code=exc.code,
            message=exc.message,
            path=request.url.path,
            exc_info=exc.__cause__,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid request")
    error = InvalidInputError(f"{location}: {message}" if location else message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler for unhandled exceptions."""
    logger.error("unhandled_exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "internal", "message": "Internal server error"}},
    )


async def health(request: Request) -> JSONResponse:
    """Deep health check: verifies DB connectivity."""
    services: AppServices = request.app.state.services
    checks: dict[str, str] = {}
    overall = "ok"

    try:
        async with services.session_factory() as session:
            await asyncio.wait_for(
                session.execute(text("SELECT 1")),
                timeout=HEALTH_CHECK_TIMEOUT,
            )
        checks["db"] = "ok"
    except (TimeoutError, OperationalError, SQLAlchemyError, OSError) as e:
        logger.warning("health_check_db_error", error=type(e).__name__)
        checks["db"] = f"error: {type(e).__name__}"
        overall = "degraded"

    status_code = 200 if overall == "ok" else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": overall,
            "checks": checks,
            "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
        },
    )


def create_app(
    settings: Settings | None = None,
    *,
    email_sender: EmailSender | None = None,
    hasher: PasswordHasher | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Build an application with its own services.

    Services are created here rather than in the lifespan so that an app
    driven without lifespan events (e.g. through ``httpx.ASGITransport``)
    is fully wired.
    """
    settings = settings or get_settings()
    services = build_services(
        settings,
        email_sender=email_sender,
        hasher=hasher,
        http_client=http_client,
    )

    app = FastAPI(
        title="Helpdesk",
        description="Multi-tenant helpdesk backend",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.is_dev,
    )
    app.state.services = services

    # Last added runs first: CORS, then logging, then the global limit.
    app.add_middleware(
        RateLimitMiddleware,
        limiter=services.rate_limiters.global_limiter,
        exempt_paths=settings.public_read_paths,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allowed_methods,
        allow_headers=settings.cors_allowed_headers,
    )

    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(validation_error_handler)
    app.exception_handler(Exception)(unhandled_exception_handler)

    app.add_api_route("/health", health, methods=["GET"])
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(tenants_router, prefix="/api/v1")
    app.include_router(articles_router, prefix="/api/v1")
    app.include_router(reference_router, prefix="/api/v1")
    return app


app = create_app()
