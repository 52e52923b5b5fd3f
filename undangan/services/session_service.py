"""Service layer for session lifecycle: one session per user device."""

from collections.abc import Callable, Sequence
from datetime import datetime
from uuid import UUID

from undangan.exceptions.domain import InvalidSessionError, SessionNotFoundError
from undangan.models import ClientInfo, UserSession
from undangan.repositories.session_repository import SessionRepository
from undangan.services.expiry import ExpiryPolicy
from undangan.utils.common import token_preview, utc_now
from undangan.utils.logger import logger


class SessionService:
    """Reconciles logins with existing sessions and keeps the table tidy."""

    def __init__(
        self,
        repository: SessionRepository,
        policy: ExpiryPolicy,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize session service.

        Args:
            repository: Session repository instance
            policy: Expiry policy
            clock: Source of the current time
        """
        self.repository = repository
        self.policy = policy
        self.clock = clock

    async def create_or_refresh(self, user_id: UUID, fingerprint: ClientInfo | None = None) -> str:
        """Return a token for the user's device, reusing a live session if one exists.

        A live session with an identical fingerprint keeps its token and gets
        its expiry moved; otherwise a new session is created. If the matched
        row disappears before it can be updated, a new session is created.

        Args:
            user_id: Authenticated user ID
            fingerprint: Device fingerprint of the client

        Returns:
            Session token

        Raises:
            StorageError: If the database operation fails
        """
        now = self.clock()
        expires_at = self.policy.compute_expiry(now)

        existing = await self.repository.find_live_match(user_id, fingerprint, now)
        if existing is not None:
            try:
                refreshed = await self.repository.bump_expiry(existing.id, expires_at, now)
            except SessionNotFoundError:
                logger.info(f"Session {existing.id} vanished during refresh, creating a new one")
            else:
                logger.debug(f"Reusing session {token_preview(refreshed.token)} for user {user_id}")
                return refreshed.token

        created = await self.repository.create_session(user_id, expires_at, now, fingerprint)
        logger.info(f"New session {token_preview(created.token)} for user {user_id}")
        return created.token

    async def invalidate_all(self, user_id: UUID) -> int:
        """Deactivate every active session of the user.

        Call this before issuing the session for the device that changed the
        credentials, or that session is invalidated as well.

        Returns:
            Number of sessions deactivated
        """
        count = await self.repository.deactivate_all(user_id, self.clock())
        logger.info(f"Invalidated {count} sessions for user {user_id}")
        return count

    async def purge_expired(self) -> int:
        """Delete all expired sessions. Never raises.

        Returns:
            Number of sessions deleted, 0 on failure
        """
        try:
            count = await self.repository.delete_expired(self.clock())
        except Exception as e:
            logger.error(f"Failed to purge expired sessions: {e}")
            return 0
        logger.info(f"Removed {count} expired sessions")
        return count

    async def purge_expired_for_user(self, user_id: UUID) -> int:
        """Delete the user's expired sessions. Never raises.

        Returns:
            Number of sessions deleted, 0 on failure
        """
        try:
            count = await self.repository.delete_expired_for_user(user_id, self.clock())
        except Exception as e:
            logger.error(f"Failed to purge expired sessions for user {user_id}: {e}")
            return 0
        if count:
            logger.debug(f"Removed {count} expired sessions for user {user_id}")
        return count

    async def authenticate(self, token: str) -> UserSession:
        """Resolve a bearer token to its live session.

        Raises:
            InvalidSessionError: If no live session holds the token
        """
        session = await self.repository.find_live_by_token(token, self.clock())
        if session is None:
            raise InvalidSessionError()
        return session

    async def logout(self, user_id: UUID, token: str) -> None:
        """Delete the user's session holding ``token``.

        Raises:
            InvalidSessionError: If the user has no active session with that token
        """
        deleted = await self.repository.delete_by_user_and_token(user_id, token)
        if deleted == 0:
            raise InvalidSessionError()
        logger.info(f"User {user_id} logged out session {token_preview(token)}")

    async def list_sessions(self, user_id: UUID) -> Sequence[UserSession]:
        """List the user's live sessions, most recently used first."""
        return await self.repository.list_live_for_user(user_id, self.clock())
