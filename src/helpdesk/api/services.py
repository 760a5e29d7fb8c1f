"""Application-scoped services, built once per app instance.

Everything with shared mutable state (tenant cache, rate limiters, token
blacklist, database engine) is owned here and reached through
``request.app.state`` rather than module globals, so each app (and each
test) gets its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from helpdesk.auth.blacklist import TokenBlacklist
from helpdesk.auth.passwords import BcryptPasswordHasher, PasswordHasher
from helpdesk.auth.rate_limiter import (
    FixedWindowRateLimiter,
    SupportsCleanup,
    TenantRateLimitConfig,
    TenantRateLimiterRegistry,
)
from helpdesk.auth.service import AuthService
from helpdesk.auth.tokens import TokenService
from helpdesk.config import Settings
from helpdesk.email import EmailSender, LoggingEmailSender
from helpdesk.provider import ProviderClient
from helpdesk.storage.database import create_engine, create_session_factory
from helpdesk.tenancy.cache import TenantCache
from helpdesk.tenancy.resolver import TenantResolver


@dataclass
class RateLimiters:
    """Global (per IP), public-read (per IP) and per-tenant limiters."""

    global_limiter: FixedWindowRateLimiter
    public_read: FixedWindowRateLimiter
    tenants: TenantRateLimiterRegistry


@dataclass
class AppServices:
    settings: Settings
    tenant_resolver: TenantResolver
    rate_limiters: RateLimiters
    tokens: TokenService
    auth: AuthService
    provider: ProviderClient
    http_client: httpx.AsyncClient
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]

    def reapable(self) -> list[SupportsCleanup]:
        """State swept periodically by the reaper task."""
        return [
            self.rate_limiters.global_limiter,
            self.rate_limiters.public_read,
            self.rate_limiters.tenants,
            self.tokens.blacklist,
        ]


def build_rate_limiters(settings: Settings) -> RateLimiters:
    window = settings.rate_limit_window_seconds
    return RateLimiters(
        global_limiter=FixedWindowRateLimiter(
            settings.rate_limit_per_minute,
            settings.rate_limit_burst,
            window_seconds=window,
            ttl_seconds=window,
        ),
        public_read=FixedWindowRateLimiter(
            settings.public_read_rate_limit_per_minute,
            settings.public_read_rate_limit_burst,
            window_seconds=window,
            ttl_seconds=window,
        ),
        tenants=TenantRateLimiterRegistry(
            TenantRateLimitConfig(
                requests_per_minute=settings.tenant_rate_limit_per_minute,
                burst=settings.tenant_rate_limit_burst,
            ),
            window_seconds=window,
        ),
    )


def build_services(
    settings: Settings,
    *,
    email_sender: EmailSender | None = None,
    hasher: PasswordHasher | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AppServices:
    """Wire the service graph for one application instance."""
    tokens = TokenService(
        settings.jwt_secret.get_secret_value(),
        TokenBlacklist(),
        access_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
    )
    http_client = http_client or httpx.AsyncClient(
        timeout=settings.provider_timeout_seconds
    )
    engine = create_engine(settings)
    return AppServices(
        settings=settings,
        tenant_resolver=TenantResolver(
            TenantCache(ttl_seconds=settings.tenant_cache_ttl_seconds),
            store_timeout=settings.store_timeout_seconds,
        ),
        rate_limiters=build_rate_limiters(settings),
        tokens=tokens,
        auth=AuthService(
            tokens,
            hasher or BcryptPasswordHasher(),
            email_sender or LoggingEmailSender(),
            frontend_url=settings.frontend_url,
        ),
        provider=ProviderClient(http_client),
        http_client=http_client,
        engine=engine,
        session_factory=create_session_factory(engine),
    )
