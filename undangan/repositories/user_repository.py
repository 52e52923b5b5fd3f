"""Repository for User-specific database operations."""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import or_, select

from undangan.exceptions.domain import UserNotFoundError
from undangan.models import User
from undangan.repositories.base import BaseRepository, translate_storage_errors


class UserRepository(BaseRepository[User]):
    """Repository for User model operations."""

    def __init__(self, session: AsyncSession):
        """Initialize user repository with session."""
        super().__init__(session, User)

    async def get(self, id: Any) -> User:
        """Get user by ID or raise UserNotFoundError.

        Raises:
            UserNotFoundError: If user doesn't exist
        """
        user = await self.get_optional(id)
        if user is None:
            raise UserNotFoundError(id)
        return user

    async def find_by_username(self, username: str) -> User | None:
        """Find user by username.

        Args:
            username: Username to search for

        Returns:
            User if found, None otherwise
        """
        return await self.get_by(username=username)

    @translate_storage_errors
    async def find_by_username_or_email(self, username: str, email: str) -> User | None:
        """Find a user holding either the username or the email.

        Args:
            username: Username to look for
            email: Email to look for

        Returns:
            First clashing user, or None
        """
        statement = select(User).where(or_(User.username == username, User.email == email))
        result = await self.session.execute(statement)
        return result.scalars().first()

    @translate_storage_errors
    async def update_password(self, user: User, hashed_password: str, changed_at: datetime) -> User:
        """Update user's password.

        Args:
            user: User to update
            hashed_password: New hashed password
            changed_at: Time of the change

        Returns:
            Updated user
        """
        user.hashed_password = hashed_password
        user.password_changed_at = changed_at
        await self._commit()
        await self.session.refresh(user)
        return user
