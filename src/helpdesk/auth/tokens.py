"""Signed session tokens (HS256 JWT) carrying user and tenant identity."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

import jwt
import structlog
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from helpdesk.auth.blacklist import TokenBlacklist
from helpdesk.errors import UnauthorizedError

logger = structlog.get_logger()

REQUIRED_CLAIMS = ["exp", "iat", "sub", "jti", "type", "tenant_id"]


class TokenType(StrEnum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Verified payload of a token."""

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    role: str
    token_type: TokenType
    jti: str
    expires_at: float


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class TokenService:
    """Issue, verify and revoke tokens.

    Every token carries the tenant it was issued for; callers compare
    ``TokenClaims.tenant_id`` with the request's tenant.
    """

    def __init__(
        self,
        secret: str,
        blacklist: TokenBlacklist,
        *,
        access_ttl: timedelta = timedelta(minutes=60),
        refresh_ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
    ) -> None:
        self._secret = secret
        self._blacklist = blacklist
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._algorithm = algorithm

    @property
    def blacklist(self) -> TokenBlacklist:
        return self._blacklist

    def issue(
        self,
        *,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        email: str,
        role: str,
        token_type: TokenType = TokenType.ACCESS,
        now: datetime | None = None,
    ) -> str:
        """Sign a token of ``token_type`` for a user of a tenant."""
        now = now or datetime.now(UTC)
        ttl = self._access_ttl if token_type == TokenType.ACCESS else self._refresh_ttl
        payload = {
            "sub": str(user_id),
            "tenant_id": str(tenant_id),
            "email": email,
            "role": role,
            "type": str(token_type),
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def issue_pair(
        self,
        *,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        email: str,
        role: str,
    ) -> TokenPair:
        identity = {
            "user_id": user_id,
            "tenant_id": tenant_id,
            "email": email,
            "role": role,
        }
        return TokenPair(
            access_token=self.issue(**identity, token_type=TokenType.ACCESS),
            refresh_token=self.issue(**identity, token_type=TokenType.REFRESH),
            expires_in=int(self._access_ttl.total_seconds()),
        )

    def parse(
        self,
        token: str,
        expected_type: TokenType = TokenType.ACCESS,
    ) -> TokenClaims:
        """Verify signature, expiry, type and revocation.

        Raises:
            UnauthorizedError: For any token that must not be accepted.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except ExpiredSignatureError:
            raise UnauthorizedError("token has expired") from None
        except InvalidTokenError as exc:
            logger.debug("token_invalid", error=type(exc).__name__)
            raise UnauthorizedError("invalid token") from None

        if payload["type"] != expected_type:
            raise UnauthorizedError("invalid token type")

        try:
            claims = TokenClaims(
                user_id=uuid.UUID(payload["sub"]),
                tenant_id=uuid.UUID(payload["tenant_id"]),
                email=payload.get("email", ""),
                role=payload.get("role", "user"),
                token_type=TokenType(payload["type"]),
                jti=payload["jti"],
                expires_at=float(payload["exp"]),
            )
        except (ValueError, TypeError):
            raise UnauthorizedError("invalid token") from None

        if self._blacklist.is_blacklisted(claims.jti):
            raise UnauthorizedError("token has been revoked")
        return claims

    def revoke(self, claims: TokenClaims) -> None:
        self._blacklist.revoke(claims.jti, claims.expires_at)
        logger.info(
            "token_revoked",
            user_id=str(claims.user_id),
            tenant_id=str(claims.tenant_id),
            token_type=str(claims.token_type),
        )
