"""Public knowledge base reads, proxied to the tenant's provider."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from helpdesk.api.deps import (
    ServicesDep,
    enforce_public_read_rate_limit,
    get_tenant,
)
from helpdesk.api.schemas import ArticleListResponse
from helpdesk.tenancy.context import TenantContext

router = APIRouter(
    tags=["articles"],
    dependencies=[Depends(enforce_public_read_rate_limit)],
)

ResolvedTenantDep = Annotated[TenantContext, Depends(get_tenant)]


@router.get("/articles")
async def list_articles(
    tenant: ResolvedTenantDep,
    services: ServicesDep,
    category_id: int = Query(..., ge=1, description="Knowledge base category."),
) -> ArticleListResponse:
    """List articles of one category.

    Exempt from the global limiter; counted against the public-read
    limiter instead.
    """
    items = await services.provider.list_articles(tenant.tenant, category_id)
    return ArticleListResponse(category_id=category_id, items=items)
