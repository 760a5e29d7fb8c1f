"""Authenticated user context for request processing."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from helpdesk.auth.tokens import TokenClaims
from helpdesk.storage.orm import UserRole


@dataclass(frozen=True)
class UserContext:
    """Authenticated user, injected into protected endpoints.

    Extracted from a verified access token whose tenant matched the
    request's tenant.
    """

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    role: str
    token_id: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> UserContext:
        return cls(
            user_id=claims.user_id,
            tenant_id=claims.tenant_id,
            email=claims.email,
            role=claims.role,
            token_id=claims.jti,
        )
