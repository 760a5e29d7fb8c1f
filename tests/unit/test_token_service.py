"""Tests for access/refresh tokens and the revocation blacklist."""

import time
import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt
import pytest

from helpdesk.auth.blacklist import TokenBlacklist
from helpdesk.auth.tokens import TokenService, TokenType
from helpdesk.errors import UnauthorizedError

SECRET = "test-secret"
USER_ID = uuid.uuid4()
TENANT_ID = uuid.uuid4()


@pytest.fixture()
def service() -> TokenService:
    return TokenService(SECRET, TokenBlacklist())


def _issue(service: TokenService, **kwargs: object) -> str:
    return service.issue(
        user_id=USER_ID,
        tenant_id=TENANT_ID,
        email="ana@acme.test",
        role="user",
        **kwargs,  # type: ignore[arg-type]
    )


class TestTokenService:
    def test_round_trip_claims(self, service: TokenService) -> None:
        claims = service.parse(_issue(service))
        assert claims.user_id == USER_ID
        assert claims.tenant_id == TENANT_ID
        assert claims.email == "ana@acme.test"
        assert claims.token_type == TokenType.ACCESS
        assert claims.jti

    def test_pair_has_distinct_types(self, service: TokenService) -> None:
        pair = service.issue_pair(
            user_id=USER_ID, tenant_id=TENANT_ID, email="a@b.c", role="user"
        )
        assert pair.expires_in == 3600
        assert pair.token_type == "Bearer"
        assert service.parse(pair.refresh_token, TokenType.REFRESH).token_type == (
            TokenType.REFRESH
        )

    def test_wrong_type_rejected(self, service: TokenService) -> None:
        refresh = _issue(service, token_type=TokenType.REFRESH)
        with pytest.raises(UnauthorizedError, match="invalid token type"):
            service.parse(refresh, TokenType.ACCESS)

    def test_expired_rejected(self, service: TokenService) -> None:
        token = _issue(service, now=datetime.now(UTC) - timedelta(hours=2))
        with pytest.raises(UnauthorizedError, match="expired"):
            service.parse(token)

    def test_bad_signature_rejected(self, service: TokenService) -> None:
        other = TokenService("another-secret", TokenBlacklist())
        with pytest.raises(UnauthorizedError, match="invalid token"):
            service.parse(_issue(other))

    def test_missing_claims_rejected(self, service: TokenService) -> None:
        token = jwt.encode({"sub": str(USER_ID)}, SECRET, algorithm="HS256")
        with pytest.raises(UnauthorizedError):
            service.parse(token)

    def test_revoked_rejected(self, service: TokenService) -> None:
        token = _issue(service)
        claims = service.parse(token)
        service.revoke(claims)
        assert service.blacklist.is_blacklisted(claims.jti) is True
        with pytest.raises(UnauthorizedError, match="revoked"):
            service.parse(token)

    def test_revocation_is_per_token(self, service: TokenService) -> None:
        first, second = _issue(service), _issue(service)
        service.revoke(service.parse(first))
        assert service.parse(second).user_id == USER_ID


class TestTokenBlacklist:
    def test_blacklisted_until_expiry(self) -> None:
        blacklist = TokenBlacklist()
        blacklist.revoke("jti-1", expires_at=2000.0)
        with patch("helpdesk.auth.blacklist.time.time", return_value=1999.0):
            assert blacklist.is_blacklisted("jti-1") is True
        with patch("helpdesk.auth.blacklist.time.time", return_value=2000.0):
            assert blacklist.is_blacklisted("jti-1") is False

    def test_unknown_jti(self) -> None:
        assert TokenBlacklist().is_blacklisted("nope") is False

    def test_prune_removes_only_expired(self) -> None:
        blacklist = TokenBlacklist()
        now = time.time()
        blacklist.revoke("expired", expires_at=now - 1)
        blacklist.revoke("live", expires_at=now + 3600)

        assert blacklist.prune() == 1
        assert len(blacklist) == 1
        assert blacklist.is_blacklisted("live") is True
