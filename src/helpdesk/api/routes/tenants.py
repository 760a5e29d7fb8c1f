"""Tenant endpoints: public branding info and admin management.

Every admin mutation invalidates the tenant cache, so the next request
for that tenant (by id or slug) sees the new state.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter
from sqlalchemy.exc import IntegrityError

from helpdesk.api.deps import AdminDep, ServicesDep, SessionDep
from helpdesk.api.schemas import (
    TenantCreateRequest,
    TenantPublicInfo,
    TenantRateLimitRequest,
    TenantRateLimitResponse,
    TenantResponse,
    TenantStatusRequest,
    TenantUpdateRequest,
)
from helpdesk.api.services import AppServices
from helpdesk.auth.rate_limiter import TenantRateLimitConfig
from helpdesk.errors import ConflictError, NotFoundError
from helpdesk.storage.orm import Tenant
from helpdesk.storage.repositories import TenantRepository
from helpdesk.tenancy.resolver import TenantIdentity

logger = structlog.get_logger()

router = APIRouter(tags=["tenants"])


async def _get_or_404(repo: TenantRepository, tenant_id: uuid.UUID) -> Tenant:
    tenant = await repo.find_by_id_including_inactive(tenant_id)
    if tenant is None:
        raise NotFoundError("tenant not found")
    return tenant


def _rate_limit_response(
    services: AppServices, tenant_id: uuid.UUID
) -> TenantRateLimitResponse:
    registry = services.rate_limiters.tenants
    config = registry.config_for(str(tenant_id))
    return TenantRateLimitResponse(
        tenant_id=tenant_id,
        requests_per_minute=config.requests_per_minute,
        burst=config.burst,
        is_override=registry.has_override(str(tenant_id)),
    )


# --- Public ---


@router.get("/tenants/{slug}/info")
async def get_tenant_info(
    slug: str,
    session: SessionDep,
    services: ServicesDep,
) -> TenantPublicInfo:
    """Branding for a tenant's login page. No authentication.

    Goes through the tenant cache like any slug-identified request.
    """
    context = await services.tenant_resolver.resolve(
        TenantIdentity(value=slug, by_slug=True, source="path"),
        TenantRepository(session),
    )
    return TenantPublicInfo.model_validate(context.tenant)


# --- Admin ---


@router.post("/admin/tenants", status_code=201)
async def create_tenant(
    body: TenantCreateRequest,
    admin: AdminDep,
    session: SessionDep,
) -> TenantResponse:
    """Create a tenant. The slug must be unique across all tenants."""
    repo = TenantRepository(session)
    if await repo.find_by_slug_including_inactive(body.slug) is not None:
        raise ConflictError("tenant slug already exists")
    try:
        tenant = await repo.create(**body.model_dump())
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("tenant slug already exists") from None
    logger.info("tenant_created", tenant_id=str(tenant.id), by=str(admin.user_id))
    return TenantResponse.model_validate(tenant)


@router.get("/admin/tenants")
async def list_tenants(
    admin: AdminDep,
    session: SessionDep,
) -> list[TenantResponse]:
    """All tenants, including inactive ones."""
    tenants = await TenantRepository(session).list_all_including_inactive()
    return [TenantResponse.model_validate(t) for t in tenants]


@router.get("/admin/tenants/{tenant_id}")
async def get_tenant(
    tenant_id: uuid.UUID,
    admin: AdminDep,
    session: SessionDep,
) -> TenantResponse:
    tenant = await _get_or_404(TenantRepository(session), tenant_id)
    return TenantResponse.model_validate(tenant)


@router.put("/admin/tenants/{tenant_id}")
async def update_tenant(
    tenant_id: uuid.UUID,
    body: TenantUpdateRequest,
    admin: AdminDep,
    session: SessionDep,
    services: ServicesDep,
) -> TenantResponse:
    """Partial update; omitted fields are left unchanged."""
    repo = TenantRepository(session)
    tenant = await _get_or_404(repo, tenant_id)
    tenant = await repo.update(tenant, body.model_dump(exclude_unset=True))
    await session.commit()
    services.tenant_resolver.invalidate(tenant.id, tenant.slug)
    return TenantResponse.model_validate(tenant)


@router.delete("/admin/tenants/{tenant_id}", status_code=204)
async def delete_tenant(
    tenant_id: uuid.UUID,
    admin: AdminDep,
    session: SessionDep,
    services: ServicesDep,
) -> None:
    """Soft delete: the tenant is deactivated, its data is kept."""
    repo = TenantRepository(session)
    tenant = await _get_or_404(repo, tenant_id)
    slug = tenant.slug
    await repo.delete(tenant_id)
    await session.commit()
    services.tenant_resolver.invalidate(tenant_id, slug)
    logger.info("tenant_deleted", tenant_id=str(tenant_id), by=str(admin.user_id))


@router.patch("/admin/tenants/{tenant_id}/status")
async def set_tenant_status(
    tenant_id: uuid.UUID,
    body: TenantStatusRequest,
    admin: AdminDep,
    session: SessionDep,
    services: ServicesDep,
) -> TenantResponse:
    repo = TenantRepository(session)
    tenant = await _get_or_404(repo, tenant_id)
    tenant = await repo.update(tenant, {"is_active": body.is_active})
    await session.commit()
    services.tenant_resolver.invalidate(tenant.id, tenant.slug)
    logger.info(
        "tenant_status_changed",
        tenant_id=str(tenant_id),
        is_active=body.is_active,
        by=str(admin.user_id),
    )
    return TenantResponse.model_validate(tenant)


@router.put("/admin/tenants/{tenant_id}/rate-limit")
async def set_tenant_rate_limit(
    tenant_id: uuid.UUID,
    body: TenantRateLimitRequest,
    admin: AdminDep,
    session: SessionDep,
    services: ServicesDep,
) -> TenantRateLimitResponse:
    """Override the tenant's request budget; applies from the next request."""
    await _get_or_404(TenantRepository(session), tenant_id)
    services.rate_limiters.tenants.set_override(
        str(tenant_id),
        TenantRateLimitConfig(
            requests_per_minute=body.requests_per_minute, burst=body.burst
        ),
    )
    return _rate_limit_response(services, tenant_id)


@router.delete("/admin/tenants/{tenant_id}/rate-limit")
async def clear_tenant_rate_limit(
    tenant_id: uuid.UUID,
    admin: AdminDep,
    services: ServicesDep,
) -> TenantRateLimitResponse:
    services.rate_limiters.tenants.clear_override(str(tenant_id))
    return _rate_limit_response(services, tenant_id)
