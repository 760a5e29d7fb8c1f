"""CRUD repositories for database operations."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.storage.orm import PasswordResetToken, Tenant, User

# Columns an admin may change through TenantRepository.update().
TENANT_MUTABLE_FIELDS: frozenset[str] = frozenset(
    {
        "name",
        "provider_base_url",
        "provider_username",
        "provider_password",
        "provider_company_id",
        "provider_group_id",
        "provider_location_id",
        "email_domain",
        "email_sender",
        "logo_url",
        "primary_color",
        "is_active",
    }
)

USER_PROFILE_FIELDS: frozenset[str] = frozenset(
    {"name", "lastname", "password_hash"}
)


class TenantRepository:
    """Source of truth for tenant records.

    Not tenant-scoped. ``find_by_id`` / ``find_by_slug`` return active
    tenants only; the ``*_including_inactive`` variants are for admin
    screens and for the request resolver, which must tell a missing
    tenant apart from a deactivated one.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Tenant:
        """Insert a new tenant and flush to obtain its id."""
        tenant = Tenant(**fields)
        self._session.add(tenant)
        await self._session.flush()
        return tenant

    async def find_by_id(self, tenant_id: uuid.UUID) -> Tenant | None:
        stmt = select(Tenant).where(Tenant.id == tenant_id, Tenant.is_active.is_(True))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_slug(self, slug: str) -> Tenant | None:
        stmt = select(Tenant).where(Tenant.slug == slug, Tenant.is_active.is_(True))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_id_including_inactive(
        self, tenant_id: uuid.UUID
    ) -> Tenant | None:
        stmt = select(Tenant).where(Tenant.id == tenant_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_slug_including_inactive(self, slug: str) -> Tenant | None:
        stmt = select(Tenant).where(Tenant.slug == slug)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Tenant]:
        """All active tenants, ordered by name."""
        stmt = select(Tenant).where(Tenant.is_active.is_(True)).order_by(Tenant.name)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_all_including_inactive(self) -> list[Tenant]:
        stmt = select(Tenant).order_by(Tenant.name)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update(self, tenant: Tenant, changes: Mapping[str, Any]) -> Tenant:
        """Apply ``changes`` to a loaded tenant and flush.

        Raises:
            ValueError: If a key is not an admin-mutable column.
        """
        unknown = set(changes) - TENANT_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update tenant fields: {sorted(unknown)}")
        for field, value in changes.items():
            setattr(tenant, field, value)
        await self._session.flush()
        return tenant

    async def delete(self, tenant_id: uuid.UUID) -> bool:
        """Soft delete: flip ``is_active`` off.

        Returns:
            True if a row was updated.
        """
        stmt = update(Tenant).where(Tenant.id == tenant_id).values(is_active=False)
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def hard_delete(self, tenant_id: uuid.UUID) -> bool:
        """Permanently remove the tenant and (by cascade) its users."""
        stmt = delete(Tenant).where(Tenant.id == tenant_id)
        result = await self._session.execute(stmt)
        return bool(result.rowcount)


class UserRepository:
    """Tenant-scoped repository for users.

    All queries are automatically filtered by tenant_id to ensure
    data isolation between tenants.
    """

    def __init__(self, session: AsyncSession, tenant_id: uuid.UUID) -> None:
        self._session = session
        self._tenant_id = tenant_id

    async def create(
        self,
        *,
        email: str,
        name: str,
        password_hash: str,
        lastname: str = "",
        role: str = "user",
        provider_user_id: int | None = None,
    ) -> User:
        """Create a user in the current tenant."""
        user = User(
            tenant_id=self._tenant_id,
            email=email,
            name=name,
            lastname=lastname,
            password_hash=password_hash,
            role=role,
            provider_user_id=provider_user_id,
        )
        self._session.add(user)
        await self._session.flush()
        return user

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(
            User.tenant_id == self._tenant_id,
            User.email == email,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        stmt = select(User).where(
            User.tenant_id == self._tenant_id,
            User.id == user_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_password(self, user_id: uuid.UUID, password_hash: str) -> bool:
        """Replace a user's password hash, scoped to the current tenant."""
        stmt = (
            update(User)
            .where(User.tenant_id == self._tenant_id, User.id == user_id)
            .values(password_hash=password_hash)
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def update_profile(
        self, user_id: uuid.UUID, changes: Mapping[str, Any]
    ) -> User | None:
        """Apply profile changes (``name``, ``lastname``, ``password_hash``)."""
        unknown = set(changes) - USER_PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)}")
        user = await self.get_by_id(user_id)
        if user is None:
            return None
        for field, value in changes.items():
            setattr(user, field, value)
        await self._session.flush()
        return user


class ResetTokenRepository:
    """Password reset token storage.

    Not tenant-scoped: token hashes are globally unique, and each
    record carries its own tenant_id.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        token_hash: str,
        expires_at: datetime,
    ) -> PasswordResetToken:
        record = PasswordResetToken(
            tenant_id=tenant_id,
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def get_by_hash(self, token_hash: str) -> PasswordResetToken | None:
        stmt = select(PasswordResetToken).where(
            PasswordResetToken.token_hash == token_hash
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete(self, token_hash: str) -> None:
        stmt = delete(PasswordResetToken).where(
            PasswordResetToken.token_hash == token_hash
        )
        await self._session.execute(stmt)
