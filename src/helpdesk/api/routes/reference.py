"""Provider reference data needed to browse and open tickets.

No authentication; the tenant is still required because the provider
credentials belong to it. Counted against the global and tenant limiters.
"""

from __future__ import annotations

from fastapi import APIRouter

from helpdesk.api.deps import ServicesDep, TenantDep
from helpdesk.api.schemas import ReferenceListResponse, TicketMetaResponse

router = APIRouter(tags=["reference"])


@router.get("/categories")
async def list_categories(
    tenant: TenantDep,
    services: ServicesDep,
) -> ReferenceListResponse:
    items = await services.provider.list_categories(tenant.tenant)
    return ReferenceListResponse(items=items)


@router.get("/statuses")
async def list_statuses(
    tenant: TenantDep,
    services: ServicesDep,
) -> ReferenceListResponse:
    items = await services.provider.list_statuses(tenant.tenant)
    return ReferenceListResponse(items=items)


@router.get("/ticket-meta")
async def ticket_meta(
    tenant: TenantDep,
    services: ServicesDep,
) -> TicketMetaResponse:
    """Priorities and ticket types for the new-ticket form."""
    meta = await services.provider.get_ticket_meta(tenant.tenant)
    return TicketMetaResponse(**meta)
