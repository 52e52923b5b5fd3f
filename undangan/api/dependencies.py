"""
Common dependencies for Undangan API endpoints.

This module wires repositories and services per request and resolves the
bearer token of the caller to its session and user.
"""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions.domain import InactiveAccountError, InvalidSessionError
from ..models import ClientInfo, User, UserSession
from ..repositories.session_repository import SessionRepository
from ..repositories.user_repository import UserRepository
from ..services.auth_service import AuthService
from ..services.expiry import ExpiryPolicy
from ..services.session_service import SessionService
from ..utils.client_info import extract_client_info
from ..utils.database import get_async_session


async def get_session_service(
    session: AsyncSession = Depends(get_async_session),
) -> SessionService:
    """Session service bound to the request's database session."""
    return SessionService(SessionRepository(session), ExpiryPolicy.from_settings())


async def get_auth_service(
    session: AsyncSession = Depends(get_async_session),
    session_service: SessionService = Depends(get_session_service),
) -> AuthService:
    """Auth service bound to the request's database session."""
    return AuthService(UserRepository(session), session_service)


async def get_bearer_token(authorization: Annotated[str | None, Header()] = None) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        InvalidSessionError: If the header is missing or malformed
    """
    if not authorization:
        raise InvalidSessionError().with_context("Missing authorization header")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme != "Bearer" or not token:
        raise InvalidSessionError().with_context("Invalid token format")
    return token


async def get_current_session(
    token: str = Depends(get_bearer_token),
    session_service: SessionService = Depends(get_session_service),
) -> UserSession:
    """Live session of the caller."""
    return await session_service.authenticate(token)


async def get_current_user(
    current: UserSession = Depends(get_current_session),
    session: AsyncSession = Depends(get_async_session),
) -> User:
    """
    Get the current authenticated user.

    Raises:
        InvalidSessionError: If the session's user no longer exists
        InactiveAccountError: If the user is disabled
    """
    user = await UserRepository(session).get_optional(current.user_id)
    if user is None:
        raise InvalidSessionError()
    if not user.is_active:
        raise InactiveAccountError()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
BearerToken = Annotated[str, Depends(get_bearer_token)]
ClientFingerprint = Annotated[ClientInfo, Depends(extract_client_info)]
