"""Immutable tenant snapshot and the request-scoped tenant context."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from helpdesk.storage.orm import Tenant


@dataclass(frozen=True)
class TenantSnapshot:
    """Read-only copy of a tenant row.

    Detached from the DB session so it can be shared across requests
    through the tenant cache. The provider password is excluded from
    ``repr`` so it never ends up in logs or tracebacks.
    """

    id: uuid.UUID
    name: str
    slug: str
    provider_base_url: str
    provider_username: str
    provider_password: str = field(repr=False)
    provider_company_id: int = 0
    provider_group_id: int = 0
    provider_location_id: int = 0
    email_domain: str | None = None
    email_sender: str | None = None
    logo_url: str | None = None
    primary_color: str = "#1976D2"
    is_active: bool = True

    @classmethod
    def from_orm(cls, tenant: Tenant) -> TenantSnapshot:
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            provider_base_url=tenant.provider_base_url,
            provider_username=tenant.provider_username,
            provider_password=tenant.provider_password,
            provider_company_id=tenant.provider_company_id,
            provider_group_id=tenant.provider_group_id,
            provider_location_id=tenant.provider_location_id,
            email_domain=tenant.email_domain,
            email_sender=tenant.email_sender,
            logo_url=tenant.logo_url,
            primary_color=tenant.primary_color,
            is_active=tenant.is_active,
        )


@dataclass(frozen=True)
class TenantContext:
    """Resolved tenant for the current request.

    Stored on ``request.state.tenant`` by the tenant dependency and read
    by the tenant rate limiter, the auth check and handlers.

    Attributes:
        tenant_id: Id of the resolved, active tenant.
        tenant: Snapshot of the tenant record.
        source: Which signal identified the tenant: 'header',
            'subdomain' or 'query'.
    """

    tenant_id: uuid.UUID
    tenant: TenantSnapshot
    source: str
