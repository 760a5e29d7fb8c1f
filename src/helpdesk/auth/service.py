"""Authentication use cases: register, login, refresh, revoke, password reset.

Every operation except password redemption runs inside a resolved tenant.
Tokens carry the tenant id and are rejected when presented to another
tenant.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.auth.passwords import PasswordHasher, is_strong_enough
from helpdesk.auth.reset_tokens import (
    generate_reset_token,
    hash_reset_token,
    is_expired,
    reset_token_expiry,
)
from helpdesk.auth.tokens import TokenClaims, TokenPair, TokenService, TokenType
from helpdesk.email import EmailSender
from helpdesk.errors import (
    ConflictError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from helpdesk.storage.orm import User, UserRole
from helpdesk.storage.repositories import ResetTokenRepository, UserRepository
from helpdesk.tenancy.context import TenantContext

logger = structlog.get_logger()

WEAK_PASSWORD_MESSAGE = (
    "password must be at least 6 characters and contain an uppercase letter"
)


class AuthService:
    """Stateless use cases over per-request sessions.

    Writes are committed here, not by the route: password redemption has
    to commit the new hash before it tries to delete the used token.
    """

    def __init__(
        self,
        tokens: TokenService,
        hasher: PasswordHasher,
        email_sender: EmailSender,
        *,
        frontend_url: str,
    ) -> None:
        self._tokens = tokens
        self._hasher = hasher
        self._email = email_sender
        self._frontend_url = frontend_url.rstrip("/")

    @property
    def tokens(self) -> TokenService:
        return self._tokens

    # --- Sessions ---

    async def register(
        self,
        session: AsyncSession,
        tenant: TenantContext,
        *,
        email: str,
        password: str,
        name: str,
        lastname: str = "",
    ) -> tuple[User, TokenPair]:
        """Create a user in ``tenant`` and sign them in.

        Raises:
            InvalidInputError: Password too weak.
            ConflictError: Email already registered in this tenant.
        """
        if not is_strong_enough(password):
            raise InvalidInputError(WEAK_PASSWORD_MESSAGE)

        users = UserRepository(session, tenant.tenant_id)
        if await users.get_by_email(email) is not None:
            raise ConflictError("email already registered")

        password_hash = await asyncio.to_thread(self._hasher.hash, password)
        try:
            user = await users.create(
                email=email,
                name=name,
                lastname=lastname,
                password_hash=password_hash,
                role=UserRole.USER,
            )
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise ConflictError("email already registered") from None

        logger.info("user_registered", user_id=str(user.id))
        return user, self._issue(user)

    async def login(
        self,
        session: AsyncSession,
        tenant: TenantContext,
        *,
        email: str,
        password: str,
    ) -> tuple[User, TokenPair]:
        """Check credentials within ``tenant``.

        Raises:
            UnauthorizedError: Unknown email or wrong password (same message).
        """
        user = await UserRepository(session, tenant.tenant_id).get_by_email(email)
        if user is None:
            raise UnauthorizedError("invalid email or password")

        valid = await asyncio.to_thread(
            self._hasher.verify, password, user.password_hash
        )
        if not valid:
            logger.info("login_failed", user_id=str(user.id))
            raise UnauthorizedError("invalid email or password")

        logger.info("login_succeeded", user_id=str(user.id))
        return user, self._issue(user)

    async def refresh(
        self,
        session: AsyncSession,
        tenant: TenantContext,
        refresh_token: str,
    ) -> TokenPair:
        """Exchange a refresh token for a new pair; the old one is revoked.

        Raises:
            UnauthorizedError: Invalid, revoked or cross-tenant token, or the
                user no longer exists.
        """
        claims = self._tokens.parse(refresh_token, TokenType.REFRESH)
        self.ensure_same_tenant(claims, tenant)

        user = await UserRepository(session, tenant.tenant_id).get_by_id(
            claims.user_id
        )
        if user is None:
            raise UnauthorizedError("user no longer exists")

        self._tokens.revoke(claims)
        return self._issue(user)

    def authenticate(self, token: str, tenant: TenantContext) -> TokenClaims:
        """Verify an access token for a request of ``tenant``."""
        claims = self._tokens.parse(token, TokenType.ACCESS)
        self.ensure_same_tenant(claims, tenant)
        return claims

    def revoke(self, token: str, tenant: TenantContext) -> TokenClaims:
        """Revoke a still-valid access token of ``tenant`` before its expiry."""
        claims = self.authenticate(token, tenant)
        self._tokens.revoke(claims)
        return claims

    async def update_profile(
        self,
        session: AsyncSession,
        tenant: TenantContext,
        user_id: uuid.UUID,
        *,
        name: str | None = None,
        lastname: str | None = None,
        password: str | None = None,
    ) -> User:
        """Change the caller's own name, lastname and/or password.

        Raises:
            InvalidInputError: New password too weak.
            NotFoundError: User no longer exists in this tenant.
        """
        changes: dict[str, str] = {}
        if name is not None:
            changes["name"] = name
        if lastname is not None:
            changes["lastname"] = lastname
        if password is not None:
            if not is_strong_enough(password):
                raise InvalidInputError(WEAK_PASSWORD_MESSAGE)
            changes["password_hash"] = await asyncio.to_thread(
                self._hasher.hash, password
            )

        users = UserRepository(session, tenant.tenant_id)
        user = await users.update_profile(user_id, changes)
        if user is None:
            raise NotFoundError("user not found")
        await session.commit()
        logger.info("profile_updated", user_id=str(user_id), fields=sorted(changes))
        return user

    @staticmethod
    def ensure_same_tenant(claims: TokenClaims, tenant: TenantContext) -> None:
        if claims.tenant_id != tenant.tenant_id:
            logger.warning(
                "cross_tenant_token_rejected",
                token_tenant_id=str(claims.tenant_id),
                request_tenant_id=str(tenant.tenant_id),
            )
            raise UnauthorizedError("token does not belong to this tenant")

    def _issue(self, user: User) -> TokenPair:
        return self._tokens.issue_pair(
            user_id=user.id,
            tenant_id=user.tenant_id,
            email=user.email,
            role=user.role,
        )

    # --- Password reset ---

    async def request_password_reset(
        self,
        session: AsyncSession,
        tenant: TenantContext,
        email: str,
        *,
        now: datetime | None = None,
    ) -> None:
        """Issue a reset token and email the link.

        Returns normally whether or not the email has an account, so the
        caller cannot discover which addresses are registered.

        Args:
            now: Override for current time (useful for testing).

        Raises:
            InternalError: The token could not be stored or the email
                could not be sent.
        """
        now = now or datetime.now(UTC)
        user = await UserRepository(session, tenant.tenant_id).get_by_email(email)
        if user is None:
            logger.info("password_reset_unknown_email")
            return

        token, token_hash = generate_reset_token()
        try:
            await ResetTokenRepository(session).create(
                tenant_id=tenant.tenant_id,
                user_id=user.id,
                token_hash=token_hash,
                expires_at=reset_token_expiry(now),
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.error("password_reset_store_failed", error=type(exc).__name__)
            raise InternalError("failed to create reset token") from exc

        reset_link = f"{self._frontend_url}/reset-password?token={token}"
        try:
            await self._email.send_password_reset(user.email, reset_link)
        except Exception as exc:
            logger.error("password_reset_email_failed", error=type(exc).__name__)
            raise InternalError("failed to send password reset email") from exc

        logger.info("password_reset_requested", user_id=str(user.id))

    async def reset_password(
        self,
        session: AsyncSession,
        token: str,
        new_password: str,
        *,
        now: datetime | None = None,
    ) -> None:
        """Redeem a reset token. Tokens are single use.

        Args:
            now: Override for current time (useful for testing).

        Raises:
            NotFoundError: Unknown (or already used) token.
            InvalidInputError: Token expired (it is deleted), or the new
                password is too weak.
        """
        now = now or datetime.now(UTC)
        token_hash = hash_reset_token(token)
        tokens = ResetTokenRepository(session)

        record = await tokens.get_by_hash(token_hash)
        if record is None:
            raise NotFoundError("invalid or expired reset token")

        if is_expired(record.expires_at, now):
            await self._discard_token(session, tokens, token_hash)
            raise InvalidInputError("reset token has expired")

        if not is_strong_enough(new_password):
            raise InvalidInputError(WEAK_PASSWORD_MESSAGE)

        password_hash = await asyncio.to_thread(self._hasher.hash, new_password)
        users = UserRepository(session, record.tenant_id)
        updated = await users.update_password(record.user_id, password_hash)
        if not updated:
            await self._discard_token(session, tokens, token_hash)
            raise NotFoundError("user not found")
        await session.commit()

        # Password is changed at this point; a failed delete is only logged.
        await self._discard_token(session, tokens, token_hash)
        logger.info(
            "password_reset_completed",
            user_id=str(record.user_id),
            tenant_id=str(record.tenant_id),
        )

    @staticmethod
    async def _discard_token(
        session: AsyncSession,
        tokens: ResetTokenRepository,
        token_hash: str,
    ) -> None:
        try:
            await tokens.delete(token_hash)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning("reset_token_delete_failed", error=type(exc).__name__)
