"""FastAPI dependency injection: tenant scoping, rate limits and auth.

Order on a tenant-scoped route: resolve tenant → tenant rate limit →
bearer token (if the route needs a user). The global per-IP limit runs
earlier, in :class:`~helpdesk.api.middleware.RateLimitMiddleware`.
"""

from __future__ import annotations

from typing import Annotated, cast

import structlog
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.api.services import AppServices
from helpdesk.auth.context import UserContext
from helpdesk.errors import ForbiddenError, RateLimitedError, UnauthorizedError
from helpdesk.logging_config import bind_tenant
from helpdesk.storage.database import get_session
from helpdesk.storage.repositories import TenantRepository
from helpdesk.tenancy.context import TenantContext
from helpdesk.tenancy.resolver import identify

__all__ = [
    "client_ip",
    "enforce_public_read_rate_limit",
    "enforce_tenant_rate_limit",
    "get_services",
    "get_session",
    "get_tenant",
    "require_admin",
    "require_user",
]

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> AppServices:
    """Retrieve the service container from app state.

    Built by ``create_app``.
    """
    return cast(AppServices, request.app.state.services)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


_get_session = Depends(get_session)
_get_services = Depends(get_services)


async def get_tenant(
    request: Request,
    session: AsyncSession = _get_session,
    services: AppServices = _get_services,
) -> TenantContext:
    """Resolve the request's tenant and attach it to ``request.state``.

    Raises:
        InvalidInputError 400: no (or malformed) tenant identification.
        NotFoundError 404: unknown tenant.
        ForbiddenError 403: tenant inactive.
        InternalError 500: tenant store failure.
    """
    identity = identify(
        request.headers,
        request.headers.get("host", ""),
        request.query_params,
        services.settings.tenant_identification,
    )
    tenant = await services.tenant_resolver.resolve(
        identity, TenantRepository(session)
    )
    request.state.tenant = tenant
    bind_tenant(str(tenant.tenant_id), tenant.tenant.slug)
    return tenant


_get_tenant = Depends(get_tenant)


async def enforce_tenant_rate_limit(
    request: Request,
    tenant: TenantContext = _get_tenant,
    services: AppServices = _get_services,
) -> TenantContext:
    """Count the request against the tenant's own limiter (key ``tenant:ip``).

    Raises:
        RateLimitedError 429: tenant budget for this client exhausted.
    """
    tenant_id = str(tenant.tenant_id)
    key = f"{tenant_id}:{client_ip(request)}"
    limiter = services.rate_limiters.tenants.get(tenant_id)
    allowed, retry_after = limiter.check(key)
    if not allowed:
        logger.info("rate_limit_exceeded", scope="tenant", key=key)
        raise RateLimitedError(
            "too many requests for this tenant", retry_after=retry_after
        )
    return tenant


async def enforce_public_read_rate_limit(
    request: Request,
    services: AppServices = _get_services,
) -> None:
    """Per-IP limit for public bulk-read endpoints.

    These paths are exempt from the global limiter.
    """
    ip = client_ip(request)
    allowed, retry_after = services.rate_limiters.public_read.check(ip)
    if not allowed:
        logger.info("rate_limit_exceeded", scope="public_read", key=ip)
        raise RateLimitedError("too many requests", retry_after=retry_after)


_scoped_tenant = Depends(enforce_tenant_rate_limit)
_bearer = Security(bearer_scheme)


async def require_user(
    tenant: TenantContext = _scoped_tenant,
    credentials: HTTPAuthorizationCredentials | None = _bearer,
    services: AppServices = _get_services,
) -> UserContext:
    """Authenticate the bearer token against the request's tenant.

    Raises:
        UnauthorizedError 401: missing, invalid, expired, revoked or
            cross-tenant token.
    """
    if credentials is None:
        raise UnauthorizedError("missing bearer token")
    claims = services.auth.authenticate(credentials.credentials, tenant)
    return UserContext.from_claims(claims)


_require_user = Depends(require_user)


async def require_admin(user: UserContext = _require_user) -> UserContext:
    """Raises ForbiddenError 403 unless the user has the admin role."""
    if not user.is_admin:
        raise ForbiddenError("admin role required")
    return user


SessionDep = Annotated[AsyncSession, Depends(get_session)]
ServicesDep = Annotated[AppServices, Depends(get_services)]
TenantDep = Annotated[TenantContext, Depends(enforce_tenant_rate_limit)]
UserDep = Annotated[UserContext, Depends(require_user)]
AdminDep = Annotated[UserContext, Depends(require_admin)]
BearerDep = Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)]
