"""Current-user endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from helpdesk.api.deps import ServicesDep, SessionDep, TenantDep, UserDep
from helpdesk.api.schemas import ProfileUpdateRequest, UserResponse
from helpdesk.errors import NotFoundError
from helpdesk.storage.repositories import UserRepository

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
async def get_me(
    user: UserDep,
    tenant: TenantDep,
    session: SessionDep,
) -> UserResponse:
    record = await UserRepository(session, tenant.tenant_id).get_by_id(user.user_id)
    if record is None:
        raise NotFoundError("user not found")
    return UserResponse.model_validate(record)


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    user: UserDep,
    tenant: TenantDep,
    session: SessionDep,
    services: ServicesDep,
) -> UserResponse:
    """Update the caller's name, lastname or password."""
    record = await services.auth.update_profile(
        session,
        tenant,
        user.user_id,
        name=body.name,
        lastname=body.lastname,
        password=body.password,
    )
    return UserResponse.model_validate(record)
