"""Tenant identification, caching and request scoping."""

from helpdesk.tenancy.cache import TenantCache
from helpdesk.tenancy.context import TenantContext, TenantSnapshot
from helpdesk.tenancy.resolver import (
    TenantIdentity,
    TenantResolver,
    extract_subdomain,
    identify,
)

__all__ = [
    "TenantCache",
    "TenantContext",
    "TenantIdentity",
    "TenantResolver",
    "TenantSnapshot",
    "extract_subdomain",
    "identify",
]
