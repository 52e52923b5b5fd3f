"""Repository layer for data access operations."""

from undangan.repositories.base import BaseRepository, transaction
from undangan.repositories.session_repository import SessionRepository
from undangan.repositories.user_repository import UserRepository

__all__ = ["BaseRepository", "SessionRepository", "UserRepository", "transaction"]
