"""SQLAlchemy ORM models for tenants, users and password reset tokens."""

import uuid
from datetime import datetime
from enum import StrEnum

import uuid_utils as uuid7_lib
from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

DEFAULT_PRIMARY_COLOR = "#1976D2"


def _uuid7() -> uuid.UUID:
    """Generate a UUIDv7 (time-ordered) for use as default PK value."""
    return uuid.UUID(bytes=uuid7_lib.uuid7().bytes)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class UserRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


# ──────────────────────────────────────────────
# Tenants
# ──────────────────────────────────────────────


class Tenant(Base):
    """Organization account with its own branding and provider credentials."""

    __tablename__ = "tenants"
    # Fetch server-generated timestamps on flush; lazy loads fail under asyncio.
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=_uuid7)
    name: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    # Ticketing provider credentials (per tenant)
    provider_base_url: Mapped[str] = mapped_column(String(255))
    provider_username: Mapped[str] = mapped_column(String(255))
    provider_password: Mapped[str] = mapped_column(String(255))
    provider_company_id: Mapped[int] = mapped_column(Integer)
    provider_group_id: Mapped[int] = mapped_column(Integer)
    provider_location_id: Mapped[int] = mapped_column(Integer)

    # Email
    email_domain: Mapped[str | None] = mapped_column(String(255))
    email_sender: Mapped[str | None] = mapped_column(String(255))

    # Branding
    logo_url: Mapped[str | None] = mapped_column(String(255))
    primary_color: Mapped[str] = mapped_column(
        String(7), default=DEFAULT_PRIMARY_COLOR
    )

    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    users: Mapped[list["User"]] = relationship(
        back_populates="tenant", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"Tenant(id={self.id!s}, slug={self.slug!r}, active={self.is_active})"


# ──────────────────────────────────────────────
# Users & password reset
# ──────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=_uuid7)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), index=True
    )
    email: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255))
    lastname: Mapped[str] = mapped_column(String(255), default="")
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER)
    provider_user_id: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    tenant: Mapped["Tenant"] = relationship(back_populates="users")


class PasswordResetToken(Base):
    """Single-use password reset credential.

    Only the SHA-256 hash of the issued token is stored.
    """

    __tablename__ = "password_reset_tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=_uuid7)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
