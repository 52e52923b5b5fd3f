"""
Authentication router: register, login, logout, password change and sessions.
"""

from fastapi import APIRouter, Body, Depends

from undangan.api.dependencies import (
    BearerToken,
    ClientFingerprint,
    CurrentUser,
    get_auth_service,
    get_session_service,
)
from undangan.models import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    LogoutResponse,
    RegisterRequest,
    SessionRead,
    UpdatePasswordRequest,
    UpdatePasswordResponse,
    User,
    UserRead,
)
from undangan.services.auth_service import AuthService
from undangan.services.session_service import SessionService
from undangan.utils.common import token_preview

router = APIRouter(tags=["auth"])


@router.post("/register", response_model=AuthResponse)
async def register(
    request: RegisterRequest,
    fingerprint: ClientFingerprint,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account and log it in on the calling device."""
    return await service.register(request, fingerprint)


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    fingerprint: ClientFingerprint,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Log in; repeated logins from the same device return the same token."""
    return await service.login(request, fingerprint)


@router.delete("/logout", response_model=LogoutResponse)
async def logout(
    user: CurrentUser,
    token: BearerToken,
    request: LogoutRequest | None = Body(default=None),
    service: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    """End the current session, or another session of the caller given in the body."""
    target = request.token if request and request.token else token
    return await service.logout(user, target)


@router.get("/me", response_model=UserRead)
async def get_me(user: CurrentUser) -> User:
    """Get current user."""
    return user


@router.patch("/password", response_model=UpdatePasswordResponse)
async def update_password(
    request: UpdatePasswordRequest,
    user: CurrentUser,
    fingerprint: ClientFingerprint,
    service: AuthService = Depends(get_auth_service),
) -> UpdatePasswordResponse:
    """Change the password; every other device has to log in again."""
    return await service.update_password(user, request, fingerprint)


@router.get("/sessions", response_model=list[SessionRead])
async def list_sessions(
    user: CurrentUser,
    token: BearerToken,
    service: SessionService = Depends(get_session_service),
) -> list[SessionRead]:
    """List the caller's live sessions."""
    sessions = await service.list_sessions(user.id)
    return [
        SessionRead(
            token_preview=token_preview(s.token),
            device_type=s.device_type,
            browser=s.browser,
            os=s.os,
            ip_address=s.ip_address,
            created_at=s.created_at,
            last_activity=s.last_activity,
            expires_at=s.expires_at,
            is_current=(s.token == token),
        )
        for s in sessions
    ]
