"""
Domain exceptions for business logic layer.

These exceptions are used in repositories and services to represent
business logic errors without coupling to HTTP status codes.
"""

from typing import Self
from uuid import UUID


class UndanganError(Exception):
    """Base exception for all Undangan-specific errors."""

    def with_context(self, detail: str) -> Self:
        """Add context information to the exception.

        Args:
            detail: Additional details about the error

        Returns:
            Self with updated message
        """
        self.args = (detail,)
        return self


# Base domain exceptions
class EntityNotFoundError(UndanganError):
    """Raised when an entity is not found in the database."""

    pass


class EntityAlreadyExistsError(UndanganError):
    """Raised when trying to create an entity that already exists."""

    pass


class AuthenticationError(UndanganError):
    """Raised when authentication fails."""

    pass


class ValidationError(UndanganError):
    """Raised when data validation fails."""

    pass


class StorageError(UndanganError):
    """Raised when the underlying database operation fails."""

    pass


# User-specific exceptions
class UserNotFoundError(EntityNotFoundError):
    """Raised when a user is not found."""

    def __init__(self, user_id: UUID | None = None):
        if user_id:
            super().__init__(f"User with ID '{user_id}' not found")
        else:
            super().__init__("User not found")


class UserAlreadyExistsError(EntityAlreadyExistsError):
    """Raised when the username or email is already taken."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field.capitalize()} is already in use")


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid."""

    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class InactiveAccountError(AuthenticationError):
    """Raised when a disabled account tries to authenticate."""

    def __init__(self) -> None:
        super().__init__("Account is disabled")


class PasswordMismatchError(ValidationError):
    """Raised when a password confirmation does not match."""

    def __init__(self, detail: str = "Passwords do not match") -> None:
        super().__init__(detail)


# Session exceptions
class InvalidSessionError(AuthenticationError):
    """Raised when a session token is unknown, inactive or expired."""

    def __init__(self) -> None:
        super().__init__("Invalid or expired session")


class SessionNotFoundError(EntityNotFoundError):
    """Raised when a session row vanished between lookup and update."""

    def __init__(self, session_id: UUID):
        super().__init__(f"Session with ID '{session_id}' not found")
