"""
Base models for Undangan.

This module provides the base SQLModel class, the UTC datetime column type
and common functionality used throughout the Undangan models.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import field_validator
from sqlalchemy import DateTime
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator
from sqlmodel import SQLModel

type T = Any


class UTCDateTime(TypeDecorator[datetime]):
    """Timestamp column that always round-trips as an aware UTC datetime.

    SQLite stores datetimes without an offset, so naive values are read back
    as UTC wall time.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class BaseModel(SQLModel):
    """Base model for request/response schemas with common validation."""

    @field_validator("*", mode="before")
    @classmethod
    def empty_to_none(cls, value: T) -> T | None:
        """Convert null bytes to spaces and the literal "null" to None."""
        if isinstance(value, str):
            value = value.replace("\x00", " ")
            if value == "null":
                return None
        return value
