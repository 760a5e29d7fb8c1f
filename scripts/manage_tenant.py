"""CLI for tenant and admin user management.

Usage::

    uv run python -m scripts.manage_tenant <command> [options]

Commands:
    create-tenant       Create a new tenant with provider credentials
    list-tenants        List all tenants
    deactivate-tenant   Deactivate a tenant (its requests get 403)
    create-admin        Create an admin user in a tenant

A running API keeps serving a deactivated tenant from its cache until the
entry expires (``TENANT_CACHE_TTL_SECONDS``); use the admin API for an
immediate effect.
"""

from __future__ import annotations

import argparse
import getpass
import sys
from collections.abc import Callable

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from helpdesk.auth.passwords import BcryptPasswordHasher, is_strong_enough
from helpdesk.config import settings
from helpdesk.storage.orm import Tenant, User, UserRole


def get_sync_session() -> Session:
    """Create sync session for CLI operations.

    Uses the same database URL as the async app (psycopg v3
    handles both sync and async natively).
    """
    engine = create_engine(settings.database_url)
    return Session(engine)


def _find_tenant(session: Session, slug: str) -> Tenant:
    tenant = session.execute(
        select(Tenant).where(Tenant.slug == slug)
    ).scalar_one_or_none()
    if tenant is None:
        print(f"Tenant not found: {slug}", file=sys.stderr)
        sys.exit(1)
    return tenant


def create_tenant(args: argparse.Namespace) -> None:
    """Create a new tenant."""
    with get_sync_session() as session:
        existing = session.execute(
            select(Tenant).where(Tenant.slug == args.slug)
        ).scalar_one_or_none()
        if existing is not None:
            print(f"Tenant already exists: {args.slug}", file=sys.stderr)
            sys.exit(1)

        tenant = Tenant(
            name=args.name,
            slug=args.slug,
            provider_base_url=args.provider_url,
            provider_username=args.provider_username,
            provider_password=args.provider_password,
            provider_company_id=args.company_id,
            provider_group_id=args.group_id,
            provider_location_id=args.location_id,
            email_domain=args.email_domain,
            is_active=True,
        )
        session.add(tenant)
        session.commit()
        print(f"Tenant created: {args.name} (slug: {args.slug}, id: {tenant.id})")


def list_tenants(_args: argparse.Namespace) -> None:
    """List all tenants with user counts."""
    with get_sync_session() as session:
        stmt = (
            select(
                Tenant.id,
                Tenant.slug,
                Tenant.name,
                Tenant.is_active,
                func.count(User.id).label("user_count"),
            )
            .outerjoin(User, Tenant.id == User.tenant_id)
            .group_by(Tenant.id)
            .order_by(Tenant.slug)
        )
        rows = session.execute(stmt).all()

        if not rows:
            print("No tenants found.")
            return

        print("Tenants:")
        for i, row in enumerate(rows, 1):
            status = "active" if row.is_active else "inactive"
            users = row.user_count
            print(
                f"  {i}. {row.slug} - {row.name} ({status}, "
                f"{users} user{'s' if users != 1 else ''}) id={row.id}"
            )


def deactivate_tenant(args: argparse.Namespace) -> None:
    """Deactivate a tenant."""
    with get_sync_session() as session:
        tenant = _find_tenant(session, args.slug)
        if not tenant.is_active:
            print(f"Tenant already inactive: {args.slug}", file=sys.stderr)
            sys.exit(1)

        tenant.is_active = False
        session.commit()
        print(f"Tenant deactivated: {args.slug}")


def create_admin(args: argparse.Namespace) -> None:
    """Create an admin user in a tenant."""
    password = args.password or getpass.getpass("Admin password: ")
    if not is_strong_enough(password):
        print(
            "Password must be at least 6 characters with an uppercase letter",
            file=sys.stderr,
        )
        sys.exit(1)

    with get_sync_session() as session:
        tenant = _find_tenant(session, args.tenant)
        existing = session.execute(
            select(User).where(User.tenant_id == tenant.id, User.email == args.email)
        ).scalar_one_or_none()
        if existing is not None:
            print(f"User already exists: {args.email}", file=sys.stderr)
            sys.exit(1)

        user = User(
            tenant_id=tenant.id,
            email=args.email,
            name=args.name,
            lastname=args.lastname,
            password_hash=BcryptPasswordHasher().hash(password),
            role=UserRole.ADMIN,
        )
        session.add(user)
        session.commit()
        print(f'Admin created in "{args.tenant}": {args.email} (id: {user.id})')


def main() -> None:
    """Parse arguments and dispatch to command handler."""
    parser = argparse.ArgumentParser(description="Tenant management CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # create-tenant
    p = sub.add_parser("create-tenant", help="Create a new tenant")
    p.add_argument("--name", required=True, help="Display name")
    p.add_argument("--slug", required=True, help="Subdomain / URL slug")
    p.add_argument("--provider-url", required=True, help="Provider API base URL")
    p.add_argument("--provider-username", required=True)
    p.add_argument("--provider-password", required=True)
    p.add_argument("--company-id", type=int, default=0)
    p.add_argument("--group-id", type=int, default=0)
    p.add_argument("--location-id", type=int, default=0)
    p.add_argument("--email-domain", default=None)

    # list-tenants
    sub.add_parser("list-tenants", help="List all tenants")

    # deactivate-tenant
    p = sub.add_parser("deactivate-tenant", help="Deactivate a tenant")
    p.add_argument("--slug", required=True, help="Tenant slug")

    # create-admin
    p = sub.add_parser("create-admin", help="Create an admin user")
    p.add_argument("--tenant", required=True, help="Tenant slug")
    p.add_argument("--email", required=True)
    p.add_argument("--name", required=True)
    p.add_argument("--lastname", default="")
    p.add_argument("--password", default=None, help="Prompted if omitted")

    args = parser.parse_args()
    commands: dict[str, Callable[[argparse.Namespace], None]] = {
        "create-tenant": create_tenant,
        "list-tenants": list_tenants,
        "deactivate-tenant": deactivate_tenant,
        "create-admin": create_admin,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
