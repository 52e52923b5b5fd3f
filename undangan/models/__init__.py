"""
Undangan data models.

This package contains the SQLModel-based models that define the database schema
and the request/response schemas of the API.
"""

from .auth import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    LogoutResponse,
    RegisterRequest,
    UpdatePasswordRequest,
    UpdatePasswordResponse,
)
from .base import BaseModel
from .session import FINGERPRINT_FIELDS, ClientInfo, SessionRead, UserSession
from .user import User, UserRead

__all__ = [
    # Auth
    "AuthResponse",
    # Base
    "BaseModel",
    # Session
    "FINGERPRINT_FIELDS",
    "ClientInfo",
    "LoginRequest",
    "LogoutRequest",
    "LogoutResponse",
    "RegisterRequest",
    "SessionRead",
    "UpdatePasswordRequest",
    "UpdatePasswordResponse",
    # User
    "User",
    "UserRead",
    "UserSession",
]
