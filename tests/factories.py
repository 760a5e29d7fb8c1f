"""Test data builders shared across test modules."""

from __future__ import annotations

import uuid
from typing import Any

from helpdesk.config import Settings
from helpdesk.storage.orm import Tenant


class FakeHasher:
    """Reversible stand-in so tests do not pay for bcrypt rounds."""

    def hash(self, password: str) -> str:
        return f"hashed:{password}"

    def verify(self, password: str, hashed: str) -> bool:
        return hashed == f"hashed:{password}"


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the developer's ``.env``."""
    values: dict[str, Any] = {"environment": "testing", "jwt_secret": "test-secret"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_tenant(**overrides: Any) -> Tenant:
    """Detached Tenant row, as a repository would return it."""
    fields: dict[str, Any] = {
        "id": uuid.uuid4(),
        "name": "Acme Corp",
        "slug": "acme",
        "provider_base_url": "https://helpdesk.acme.test/api",
        "provider_username": "acme-bot",
        "provider_password": "provider-secret",
        "provider_company_id": 1,
        "provider_group_id": 2,
        "provider_location_id": 3,
        "email_domain": "acme.test",
        "email_sender": None,
        "logo_url": None,
        "primary_color": "#1976D2",
        "is_active": True,
    }
    fields.update(overrides)
    return Tenant(**fields)
