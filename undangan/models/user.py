"""
User-related models for Undangan.

The session subsystem only cares about a user's ``id``, whether the account
is active and its password hash.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from ..utils.common import utc_now
from .base import UTCDateTime


class User(SQLModel, table=True):
    """Registered account."""

    __tablename__ = "user"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=20)
    email: str = Field(unique=True, index=True, max_length=255)
    hashed_password: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime(), nullable=False)
    password_changed_at: datetime | None = Field(default=None, sa_type=UTCDateTime(), nullable=True)


class UserRead(SQLModel):
    """Pydantic model for reading user data without sensitive fields."""

    id: UUID
    username: str
    email: str
    is_active: bool = True
    created_at: datetime
