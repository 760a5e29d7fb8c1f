"""Request/response schemas for the API layer."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
SLUG_PATTERN = r"^[a-z0-9](?:[a-z0-9-]{0,98}[a-z0-9])?$"

# Tenant columns that cannot be cleared through an update.
REQUIRED_TENANT_FIELDS = (
    "name",
    "provider_base_url",
    "provider_username",
    "provider_password",
    "provider_company_id",
    "provider_group_id",
    "provider_location_id",
    "primary_color",
)

# --- Auth ---


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    lastname: str = Field(default="", max_length=255)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(BaseModel):
    """Access/refresh token pair.

    ``expires_in`` is the access token lifetime in seconds.
    """

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class MessageResponse(BaseModel):
    message: str


# --- Users ---


class UserResponse(BaseModel):
    """Public view of a user; never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    name: str
    lastname: str
    role: str
    created_at: datetime | None = None


class AuthResponse(BaseModel):
    """Response for register and login."""

    user: UserResponse
    tokens: TokenResponse


class ProfileUpdateRequest(BaseModel):
    """Request body for PUT /users/profile. Omitted fields are unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    lastname: str | None = Field(default=None, max_length=255)
    password: str | None = Field(default=None, min_length=1, max_length=128)


# --- Tenants ---


class TenantPublicInfo(BaseModel):
    """Branding shown on a tenant's login page.

    Example::

        {"name": "Acme", "slug": "acme", "logo_url": null,
         "primary_color": "#1976D2"}
    """

    model_config = ConfigDict(from_attributes=True)

    name: str
    slug: str
    logo_url: str | None
    primary_color: str


class TenantCreateRequest(BaseModel):
    """Request body for POST /admin/tenants."""

    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., pattern=SLUG_PATTERN)
    provider_base_url: str = Field(..., min_length=1, max_length=255)
    provider_username: str = Field(..., min_length=1, max_length=255)
    provider_password: str = Field(..., min_length=1, max_length=255)
    provider_company_id: int = 0
    provider_group_id: int = 0
    provider_location_id: int = 0
    email_domain: str | None = Field(default=None, max_length=255)
    email_sender: str | None = Field(default=None, max_length=255)
    logo_url: str | None = Field(default=None, max_length=255)
    primary_color: str = Field(default="#1976D2", pattern=HEX_COLOR_PATTERN)


class TenantUpdateRequest(BaseModel):
    """Request body for PUT /admin/tenants/{id}. Slug is immutable."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    provider_base_url: str | None = Field(default=None, min_length=1, max_length=255)
    provider_username: str | None = Field(default=None, min_length=1, max_length=255)
    provider_password: str | None = Field(default=None, min_length=1, max_length=255)
    provider_company_id: int | None = None
    provider_group_id: int | None = None
    provider_location_id: int | None = None
    email_domain: str | None = Field(default=None, max_length=255)
    email_sender: str | None = Field(default=None, max_length=255)
    logo_url: str | None = Field(default=None, max_length=255)
    primary_color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)

    @field_validator(*REQUIRED_TENANT_FIELDS)
    @classmethod
    def _not_null(cls, value: object) -> object:
        # Omit a field to leave it unchanged; only the contact fields are clearable.
        if value is None:
            raise ValueError("may not be null")
        return value


class TenantStatusRequest(BaseModel):
    is_active: bool


class TenantResponse(BaseModel):
    """Admin view of a tenant. Provider credentials are write-only."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str
    provider_base_url: str
    provider_username: str
    provider_company_id: int
    provider_group_id: int
    provider_location_id: int
    email_domain: str | None
    email_sender: str | None
    logo_url: str | None
    primary_color: str
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TenantRateLimitRequest(BaseModel):
    """Per-tenant override of the default rate limit."""

    requests_per_minute: int = Field(..., gt=0)
    burst: int = Field(default=0, ge=0)


class TenantRateLimitResponse(BaseModel):
    tenant_id: uuid.UUID
    requests_per_minute: int
    burst: int
    is_override: bool


# --- Articles ---


class ArticleListResponse(BaseModel):
    """Knowledge base articles, passed through from the provider as-is."""

    category_id: int
    items: list[dict[str, Any]]


# --- Provider reference data ---


class ReferenceListResponse(BaseModel):
    """Categories or statuses, passed through from the provider as-is."""

    items: list[dict[str, Any]]


class TicketMetaResponse(BaseModel):
    priorities: list[dict[str, Any]]
    types: list[dict[str, Any]]
