"""Repository for session rows: durable CRUD, no business policy."""

from collections.abc import Callable, Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from undangan.exceptions.domain import SessionNotFoundError, StorageError
from undangan.models import ClientInfo, UserSession
from undangan.repositories.base import BaseRepository, translate_storage_errors
from undangan.settings import settings
from undangan.utils.common import generate_token, token_preview
from undangan.utils.logger import logger


class SessionRepository(BaseRepository[UserSession]):
    """Repository for UserSession model operations.

    Every write commits immediately unless a transaction() block owns the
    commit, in which case it is only flushed. Bulk updates and deletes
    report the number of affected rows; zero is a valid outcome, not an error.
    """

    def __init__(
        self,
        session: AsyncSession,
        token_factory: Callable[[], str] = generate_token,
        max_attempts: int | None = None,
    ):
        """Initialize session repository.

        Args:
            session: Database session
            token_factory: Generates candidate session tokens
            max_attempts: Tokens to try before giving up on a collision streak
        """
        super().__init__(session, UserSession)
        self.token_factory = token_factory
        self.max_attempts = max_attempts or settings.session_token_attempts

    async def _token_exists(self, token: str) -> bool:
        return await self.count(token=token) > 0

    @translate_storage_errors
    async def create_session(
        self,
        user_id: UUID,
        expires_at: datetime,
        now: datetime,
        fingerprint: ClientInfo | None = None,
    ) -> UserSession:
        """Insert a new active session with a freshly generated token.

        ``created_at`` and ``last_activity`` are both set to ``now``.

        Args:
            user_id: Owner of the session
            expires_at: Expiry timestamp
            now: Current time
            fingerprint: Device fingerprint, all fields None when omitted

        Returns:
            Created session

        Raises:
            StorageError: On any other constraint violation, or when every
                generated token collided
        """
        fields = (fingerprint or ClientInfo()).model_dump()

        for attempt in range(1, self.max_attempts + 1):
            token = self.token_factory()
            if await self._token_exists(token):
                logger.warning(f"Session token collision (attempt {attempt}), regenerating")
                continue

            entity = UserSession(
                token=token,
                user_id=user_id,
                is_active=True,
                created_at=now,
                last_activity=now,
                expires_at=expires_at,
                **fields,
            )
            self.session.add(entity)
            try:
                await self._commit()
            except IntegrityError as e:
                await self.session.rollback()
                # The rollback discarded the enclosing transaction's writes too
                if self.in_transaction:
                    raise StorageError("Failed to create session") from e
                # A concurrent writer may have taken the token in between
                if await self._token_exists(token):
                    logger.warning(f"Session token collision (attempt {attempt}), regenerating")
                    continue
                raise StorageError("Failed to create session") from e

            await self.session.refresh(entity)
            logger.debug(f"Created session {token_preview(token)} for user {user_id}")
            return entity

        raise StorageError(f"Could not generate a unique session token in {self.max_attempts} attempts")

    @translate_storage_errors
    async def find_live_match(
        self, user_id: UUID, fingerprint: ClientInfo | None, now: datetime
    ) -> UserSession | None:
        """Find a live session of the user opened from the same device.

        All five fingerprint fields must be equal; a None field only matches
        NULL. When several rows match, the most recently created one wins.

        Args:
            user_id: Owner of the session
            fingerprint: Device fingerprint to match
            now: Current time

        Returns:
            Matching session or None
        """
        statement = select(UserSession).where(
            col(UserSession.user_id) == user_id,
            col(UserSession.is_active).is_(True),
            col(UserSession.expires_at) > now,
        )
        for name, value in (fingerprint or ClientInfo()).model_dump().items():
            column = col(getattr(UserSession, name))
            statement = statement.where(column.is_(None) if value is None else column == value)

        statement = statement.order_by(col(UserSession.created_at).desc()).limit(1)
        result = await self.session.execute(statement)
        return result.scalars().first()

    @translate_storage_errors
    async def find_live_by_token(self, token: str, now: datetime) -> UserSession | None:
        """Find the live session presenting this token.

        Args:
            token: Bearer token
            now: Current time

        Returns:
            Session or None
        """
        statement = select(UserSession).where(
            col(UserSession.token) == token,
            col(UserSession.is_active).is_(True),
            col(UserSession.expires_at) > now,
        )
        result = await self.session.execute(statement)
        return result.scalars().first()

    @translate_storage_errors
    async def list_live_for_user(self, user_id: UUID, now: datetime) -> Sequence[UserSession]:
        """List live sessions of a user, most recently used first."""
        statement = (
            select(UserSession)
            .where(
                col(UserSession.user_id) == user_id,
                col(UserSession.is_active).is_(True),
                col(UserSession.expires_at) > now,
            )
            .order_by(col(UserSession.last_activity).desc())
        )
        result = await self.session.execute(statement)
        return result.scalars().all()

    @translate_storage_errors
    async def bump_expiry(
        self, session_id: UUID, new_expiry: datetime, now: datetime
    ) -> UserSession:
        """Move a session's expiry and record activity.

        Args:
            session_id: Session ID
            new_expiry: New expiry timestamp
            now: Current time, stored as ``last_activity``

        Returns:
            Updated session

        Raises:
            SessionNotFoundError: If the row no longer exists
        """
        statement = (
            update(UserSession)
            .where(col(UserSession.id) == session_id)
            .values(expires_at=new_expiry, last_activity=now)
            .execution_options(synchronize_session="evaluate")
        )
        result = await self.session.execute(statement)
        if result.rowcount == 0:
            await self._commit()
            raise SessionNotFoundError(session_id)
        await self._commit()

        entity = await self.session.get(UserSession, session_id, populate_existing=True)
        if entity is None:
            raise SessionNotFoundError(session_id)
        return entity

    @translate_storage_errors
    async def delete_expired(self, before: datetime) -> int:
        """Delete every session whose expiry is at or before ``before``.

        Returns:
            Number of rows deleted
        """
        statement = (
            delete(UserSession)
            .where(col(UserSession.expires_at) <= before)
            .execution_options(synchronize_session="evaluate")
        )
        result = await self.session.execute(statement)
        await self._commit()
        return result.rowcount

    @translate_storage_errors
    async def delete_expired_for_user(self, user_id: UUID, before: datetime) -> int:
        """Delete one user's sessions whose expiry is at or before ``before``.

        Returns:
            Number of rows deleted
        """
        statement = (
            delete(UserSession)
            .where(
                col(UserSession.user_id) == user_id,
                col(UserSession.expires_at) <= before,
            )
            .execution_options(synchronize_session="evaluate")
        )
        result = await self.session.execute(statement)
        await self._commit()
        return result.rowcount

    @translate_storage_errors
    async def deactivate_all(self, user_id: UUID, now: datetime) -> int:
        """Deactivate and force-expire all active sessions of a user.

        Rows that are already inactive are left alone, so re-running is a no-op.

        Returns:
            Number of newly deactivated rows
        """
        statement = (
            update(UserSession)
            .where(
                col(UserSession.user_id) == user_id,
                col(UserSession.is_active).is_(True),
            )
            .values(is_active=False, expires_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        result = await self.session.execute(statement)
        await self._commit()
        return result.rowcount

    @translate_storage_errors
    async def delete_by_user_and_token(self, user_id: UUID, token: str) -> int:
        """Delete the active session matching both the user and the token.

        Returns:
            1 if the session was deleted, 0 if nothing matched
        """
        statement = (
            delete(UserSession)
            .where(
                col(UserSession.user_id) == user_id,
                col(UserSession.token) == token,
                col(UserSession.is_active).is_(True),
            )
            .execution_options(synchronize_session="evaluate")
        )
        result = await self.session.execute(statement)
        await self._commit()
        return result.rowcount
