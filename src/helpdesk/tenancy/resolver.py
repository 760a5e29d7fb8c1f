"""Tenant identification and resolution.

A request names its tenant in one of three ways:

- ``X-Tenant-ID`` header (tenant id),
- subdomain of the ``Host`` header (tenant slug),
- ``tenant_id`` query parameter (tenant id).

``identify()`` turns those signals into a :class:`TenantIdentity` using the
configured :class:`~helpdesk.config.TenantIdentification` method;
:class:`TenantResolver` turns an identity into an active tenant, going
through the :class:`~helpdesk.tenancy.cache.TenantCache` first.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Mapping
from dataclasses import dataclass

import structlog
from sqlalchemy.exc import SQLAlchemyError

from helpdesk.config import TenantIdentification
from helpdesk.errors import (
    ForbiddenError,
    InternalError,
    InvalidInputError,
    NotFoundError,
)
from helpdesk.storage.orm import Tenant
from helpdesk.storage.repositories import TenantRepository
from helpdesk.tenancy.cache import TenantCache, id_key, slug_key
from helpdesk.tenancy.context import TenantContext, TenantSnapshot

logger = structlog.get_logger()

TENANT_HEADER = "X-Tenant-ID"
TENANT_QUERY_PARAM = "tenant_id"


@dataclass(frozen=True)
class TenantIdentity:
    """What the request claims its tenant is, before any lookup."""

    value: str
    by_slug: bool
    source: str

    @property
    def cache_key(self) -> str:
        return slug_key(self.value) if self.by_slug else self.value


def extract_subdomain(host: str) -> str:
    """Extract the tenant slug from a Host header value.

    Examples::

        tenant1.app.example.com -> tenant1
        tenant1.localhost:8080  -> tenant1
        localhost               -> ""
        example.com             -> ""
    """
    host = host.split(":", 1)[0]
    if host == "localhost":
        return ""

    parts = host.split(".")
    if len(parts) == 2 and parts[1] == "localhost":
        return parts[0]
    if len(parts) >= 3:
        return parts[0]
    return ""


def _normalize_id(raw: str, source: str) -> TenantIdentity:
    try:
        value = id_key(uuid.UUID(raw))
    except ValueError:
        raise InvalidInputError("invalid tenant id") from None
    return TenantIdentity(value=value, by_slug=False, source=source)


def identify(
    headers: Mapping[str, str],
    host: str,
    query_params: Mapping[str, str],
    method: TenantIdentification,
) -> TenantIdentity | None:
    """Pick the tenant signal from a request.

    In ``AUTO`` mode the precedence is header, then subdomain, then query;
    the first non-empty signal wins and signals are never merged.

    Returns:
        The identity, or None when the request carries no tenant signal.

    Raises:
        InvalidInputError: If an id signal is present but not a UUID.
    """
    if method in (TenantIdentification.HEADER, TenantIdentification.AUTO):
        header_value = (headers.get(TENANT_HEADER) or "").strip()
        if header_value:
            return _normalize_id(header_value, "header")
        if method == TenantIdentification.HEADER:
            return None

    if method in (TenantIdentification.SUBDOMAIN, TenantIdentification.AUTO):
        slug = extract_subdomain(host)
        if slug:
            return TenantIdentity(value=slug, by_slug=True, source="subdomain")
        if method == TenantIdentification.SUBDOMAIN:
            return None

    query_value = (query_params.get(TENANT_QUERY_PARAM) or "").strip()
    if query_value:
        return _normalize_id(query_value, "query")
    return None


class TenantResolver:
    """Resolve a :class:`TenantIdentity` to an active tenant.

    Cache hits are served without touching the store. On a miss the
    store is queried (bounded by ``store_timeout``) and an active result
    is cached. A store failure is an internal error and never degrades
    into "not found".
    """

    def __init__(self, cache: TenantCache, store_timeout: float = 5.0) -> None:
        self._cache = cache
        self._store_timeout = store_timeout

    @property
    def cache(self) -> TenantCache:
        return self._cache

    async def resolve(
        self,
        identity: TenantIdentity | None,
        repo: TenantRepository,
    ) -> TenantContext:
        """Return the tenant context for ``identity``.

        Raises:
            InvalidInputError: No tenant signal on the request.
            NotFoundError: No tenant with that id/slug.
            ForbiddenError: Tenant exists but is inactive.
            InternalError: Store lookup failed or timed out.
        """
        if identity is None:
            raise InvalidInputError("tenant not identified")

        key = identity.cache_key
        snapshot = self._cache.get(key)
        if snapshot is None:
            logger.debug("tenant_cache_miss", key=key)
            generation = self._cache.generation(key)
            row = await self._load(identity, repo)
            if row is None:
                raise NotFoundError("tenant not found")
            snapshot = TenantSnapshot.from_orm(row)
            if snapshot.is_active and not self._cache.put(
                key, snapshot, generation=generation
            ):
                logger.debug("tenant_cache_put_skipped", key=key)

        if not snapshot.is_active:
            raise ForbiddenError("tenant is not active")

        return TenantContext(
            tenant_id=snapshot.id,
            tenant=snapshot,
            source=identity.source,
        )

    async def _load(
        self,
        identity: TenantIdentity,
        repo: TenantRepository,
    ) -> Tenant | None:
        try:
            async with asyncio.timeout(self._store_timeout):
                if identity.by_slug:
                    return await repo.find_by_slug_including_inactive(identity.value)
                return await repo.find_by_id_including_inactive(
                    uuid.UUID(identity.value)
                )
        except TimeoutError as exc:
            logger.error("tenant_lookup_timeout", key=identity.cache_key)
            raise InternalError("failed to validate tenant") from exc
        except (SQLAlchemyError, OSError) as exc:
            logger.error(
                "tenant_lookup_failed",
                key=identity.cache_key,
                error=type(exc).__name__,
            )
            raise InternalError("failed to validate tenant") from exc

    def invalidate(self, tenant_id: uuid.UUID | str | None, slug: str | None) -> None:
        """Forget a tenant after it was updated, deactivated or deleted."""
        self._cache.invalidate(tenant_id, slug)
        logger.info("tenant_cache_invalidated", tenant_id=str(tenant_id), slug=slug)
