"""
Background service for cleaning expired sessions.
"""

import asyncio
import contextlib
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, time, timedelta, tzinfo

from sqlalchemy.ext.asyncio import AsyncSession

from undangan.repositories.session_repository import SessionRepository
from undangan.services.expiry import ExpiryPolicy
from undangan.services.session_service import SessionService
from undangan.settings import settings
from undangan.utils.common import as_utc, utc_now
from undangan.utils.db_manager import db_manager
from undangan.utils.logger import logger

type SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class SessionCleanupService:
    """Background service purging expired sessions once a day."""

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        hour: int | None = None,
        minute: int | None = None,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the cleanup service.

        Args:
            session_factory: Opens a database session per run
            hour: Hour of the daily run
            minute: Minute of the daily run
            tz: Timezone of the run time
            clock: Source of the current time
        """
        self.session_factory = session_factory or db_manager.get_async_session_context
        self.hour = settings.session_cleanup_hour if hour is None else hour
        self.minute = settings.session_cleanup_minute if minute is None else minute
        self.tz = tz or settings.session_tz
        self.clock = clock
        self.is_running = False
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    def seconds_until_next_run(self, now: datetime | None = None) -> float:
        """Seconds from ``now`` until the next daily run time.

        A run time equal to ``now`` is scheduled for the next day.
        """
        now_utc = as_utc(now or self.clock())
        local_date = now_utc.astimezone(self.tz).date()
        run_time = time(self.hour, self.minute)

        # Datetimes sharing a ZoneInfo subtract as wall time, so compare in UTC
        run_at = as_utc(datetime.combine(local_date, run_time, tzinfo=self.tz))
        if run_at <= now_utc:
            run_at = as_utc(
                datetime.combine(local_date + timedelta(days=1), run_time, tzinfo=self.tz)
            )
        return (run_at - now_utc).total_seconds()

    async def start(self) -> None:
        """Start the cleanup service."""
        if self.is_running:
            logger.warning("Session cleanup service already running")
            return

        self.is_running = True
        self._task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            f"Session cleanup service started, runs daily at {self.hour:02d}:{self.minute:02d}"
        )

    async def stop(self) -> None:
        """Stop the cleanup service."""
        self.is_running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        logger.info("Session cleanup service stopped")

    async def _cleanup_loop(self) -> None:
        """Main cleanup loop."""
        while self.is_running:
            await asyncio.sleep(self.seconds_until_next_run())
            await self.cleanup_once()

    async def cleanup_once(self) -> int:
        """Perform a single cleanup run.

        A run that starts while another one is still in progress is skipped.

        Returns:
            Number of sessions deleted
        """
        if self._lock.locked():
            logger.warning("Session cleanup already in progress, skipping this run")
            return 0

        async with self._lock:
            try:
                async with self.session_factory() as session:
                    service = SessionService(
                        SessionRepository(session), ExpiryPolicy.from_settings(), clock=self.clock
                    )
                    return await service.purge_expired()
            except Exception as e:
                logger.error(f"Error in session cleanup: {e}")
                return 0
