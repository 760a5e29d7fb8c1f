"""Thin read proxy to a tenant's external ticketing provider.

Each tenant brings its own provider base URL and credentials; the client
is shared and the tenant snapshot supplies the per-call settings.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from helpdesk.errors import ExternalServiceError
from helpdesk.tenancy.context import TenantSnapshot

logger = structlog.get_logger()

ARTICLES_BY_CATEGORY_PATH = "/kb.articles.by.category"
CATEGORIES_PATH = "/categories"
STATUSES_PATH = "/incident.attributes.status"
PRIORITIES_PATH = "/incident.attributes.priority"
TICKET_TYPES_PATH = "/incident.attributes.type"


class ProviderClient:
    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def list_articles(
        self,
        tenant: TenantSnapshot,
        category_id: int,
    ) -> list[dict[str, Any]]:
        """Knowledge base articles of one category.

        Raises:
            ExternalServiceError: Transport failure, non-2xx status, or a
                body that is not a list/object of articles.
        """
        return await self._get_list(
            tenant,
            ARTICLES_BY_CATEGORY_PATH,
            params={"category_id": category_id},
        )

    async def list_categories(self, tenant: TenantSnapshot) -> list[dict[str, Any]]:
        return await self._get_list(tenant, CATEGORIES_PATH)

    async def list_statuses(self, tenant: TenantSnapshot) -> list[dict[str, Any]]:
        return await self._get_list(tenant, STATUSES_PATH)

    async def get_ticket_meta(
        self, tenant: TenantSnapshot
    ) -> dict[str, list[dict[str, Any]]]:
        """Priorities and ticket types offered when opening a ticket."""
        priorities, types = await asyncio.gather(
            self._get_list(tenant, PRIORITIES_PATH),
            self._get_list(tenant, TICKET_TYPES_PATH),
        )
        return {"priorities": priorities, "types": types}

    async def _get_list(
        self,
        tenant: TenantSnapshot,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """GET ``path`` on the tenant's provider and return its items.

        Raises:
            ExternalServiceError: Transport failure, non-2xx status, or a
                body that is neither a list nor an object of items.
        """
        url = tenant.provider_base_url.rstrip("/") + path
        log = logger.bind(tenant_id=str(tenant.id), path=path)
        try:
            response = await self._http.get(
                url,
                params=params,
                auth=(tenant.provider_username, tenant.provider_password),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            log.warning("provider_bad_status", status_code=exc.response.status_code)
            raise ExternalServiceError("ticketing provider request failed") from exc
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("provider_request_failed", error=type(exc).__name__)
            raise ExternalServiceError("ticketing provider unavailable") from exc

        # The provider answers either a list or an id -> item mapping.
        if isinstance(payload, dict):
            payload = list(payload.values())
        if not isinstance(payload, list):
            raise ExternalServiceError("unexpected ticketing provider response")
        return [item for item in payload if isinstance(item, dict)]
