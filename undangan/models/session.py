"""
Session storage model for bearer authentication with lifecycle management.
"""

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Column, ForeignKey, Index, String, Uuid
from sqlmodel import Field, SQLModel

from ..utils.common import utc_now
from .base import UTCDateTime

FINGERPRINT_FIELDS = ("ip_address", "user_agent", "device_type", "browser", "os")


class ClientInfo(BaseModel):
    """Device fingerprint of the client that opened a session.

    Every field is optional; two fingerprints match only when all five
    fields are equal, with ``None`` matching ``None``.
    """

    model_config = ConfigDict(frozen=True)

    ip_address: str | None = None
    user_agent: str | None = None
    device_type: str | None = None
    browser: str | None = None
    os: str | None = None


class UserSession(SQLModel, table=True):
    """
    Bearer session owned by a user and bound to a device fingerprint.

    A session is valid only while ``is_active`` is set and ``expires_at``
    lies in the future.
    """

    __tablename__ = "sessions"
    __table_args__ = (Index("ix_sessions_user_active_expires", "user_id", "is_active", "expires_at"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    token: str = Field(sa_column=Column(String(128), unique=True, index=True, nullable=False))
    user_id: UUID = Field(
        sa_column=Column(
            Uuid(),
            ForeignKey("user.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )

    # Device fingerprint
    ip_address: str | None = Field(default=None, max_length=45)  # IPv6 support
    user_agent: str | None = Field(default=None, max_length=512)
    device_type: str | None = Field(default=None, max_length=32)
    browser: str | None = Field(default=None, max_length=64)
    os: str | None = Field(default=None, max_length=64)

    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime(), nullable=False)
    last_activity: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime(), nullable=False)
    expires_at: datetime = Field(sa_type=UTCDateTime(), nullable=False, index=True)

    @property
    def fingerprint(self) -> ClientInfo:
        """Fingerprint this session was opened with."""
        return ClientInfo(**{name: getattr(self, name) for name in FINGERPRINT_FIELDS})


class SessionRead(SQLModel):
    """Information about one of the current user's sessions."""

    token_preview: str
    device_type: str | None
    browser: str | None
    os: str | None
    ip_address: str | None
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    is_current: bool = False
