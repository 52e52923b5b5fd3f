"""
Request and response schemas for the authentication endpoints.
"""

import re
from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from ..utils.auth import MAX_PASSWORD_BYTES, password_too_long
from .base import BaseModel

USERNAME_PATTERN = re.compile(r"^[a-z0-9._]+$")


def check_password_length(value: str) -> str:
    """Reject passwords bcrypt would refuse to hash."""
    if password_too_long(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class RegisterRequest(BaseModel):
    """Payload for creating an account."""

    username: str
    email: EmailStr
    password: str = Field(min_length=8)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_length(value)

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        """Check username rules in the order users are most likely to trip them."""
        if len(value) < 3:
            raise ValueError("Username must be at least 3 characters")
        if len(value) > 20:
            raise ValueError("Username must be at most 20 characters")
        if " " in value:
            raise ValueError("Username must not contain spaces")
        if value[0].isdigit():
            raise ValueError("Username must not start with a digit")
        if value[0] in "._":
            raise ValueError("Username must not start with a dot or underscore")
        if not USERNAME_PATTERN.match(value):
            raise ValueError(
                "Username may only contain lowercase letters, digits, dots (.) and underscores (_)"
            )
        return value


class LoginRequest(BaseModel):
    """Payload for logging in."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AuthResponse(BaseModel):
    """Account data returned after register/login together with the session token."""

    id: UUID
    username: str
    email: str
    token: str
    is_active: bool = True
    created_at: datetime


class LogoutRequest(BaseModel):
    """Optional payload for logging out one specific session of the caller."""

    token: str | None = None


class LogoutResponse(BaseModel):
    """Result of a logout."""

    success: bool
    message: str
    timestamp: datetime
    token_preview: str | None = None


class UpdatePasswordRequest(BaseModel):
    """Payload for changing the password of the current user."""

    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_password_length(value)


class UpdatePasswordResponse(AuthResponse):
    """Account data with the freshly issued session token after a password change."""

    password_changed_at: datetime
