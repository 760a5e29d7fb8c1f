"""Authentication API endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from helpdesk.api.deps import BearerDep, ServicesDep, SessionDep, TenantDep
from helpdesk.api.schemas import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)
from helpdesk.auth.tokens import TokenPair
from helpdesk.errors import UnauthorizedError

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "if the email is registered, a reset link has been sent"


def _tokens(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
    )


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    tenant: TenantDep,
    session: SessionDep,
    services: ServicesDep,
) -> AuthResponse:
    """Create an account in the request's tenant and sign in."""
    user, pair = await services.auth.register(
        session,
        tenant,
        email=body.email,
        password=body.password,
        name=body.name,
        lastname=body.lastname,
    )
    return AuthResponse(user=UserResponse.model_validate(user), tokens=_tokens(pair))


@router.post("/login")
async def login(
    body: LoginRequest,
    tenant: TenantDep,
    session: SessionDep,
    services: ServicesDep,
) -> AuthResponse:
    user, pair = await services.auth.login(
        session, tenant, email=body.email, password=body.password
    )
    return AuthResponse(user=UserResponse.model_validate(user), tokens=_tokens(pair))


@router.post("/refresh")
async def refresh(
    body: RefreshRequest,
    tenant: TenantDep,
    session: SessionDep,
    services: ServicesDep,
) -> TokenResponse:
    """Rotate a refresh token. The presented token stops working."""
    pair = await services.auth.refresh(session, tenant, body.refresh_token)
    return _tokens(pair)


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    tenant: TenantDep,
    session: SessionDep,
    services: ServicesDep,
) -> MessageResponse:
    """Email a reset link.

    The response is identical whether or not the address is registered.
    """
    await services.auth.request_password_reset(session, tenant, body.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    session: SessionDep,
    services: ServicesDep,
) -> MessageResponse:
    """Redeem a reset token.

    Reset tokens are globally unique, so no tenant identification is
    required here.
    """
    await services.auth.reset_password(session, body.token, body.new_password)
    return MessageResponse(message="password has been reset")


@router.post("/revoke")
async def revoke(
    tenant: TenantDep,
    services: ServicesDep,
    credentials: BearerDep,
) -> MessageResponse:
    """Revoke the presented access token (logout)."""
    if credentials is None:
        raise UnauthorizedError("missing bearer token")
    services.auth.revoke(credentials.credentials, tenant)
    return MessageResponse(message="token revoked")
