"""Session expiry policy.

Sessions end at midnight: a session opened or refreshed on day D stays valid
until 00:00 of day D + N in the configured timezone.
"""

from datetime import UTC, datetime, time, timedelta, tzinfo

from undangan.models import UserSession
from undangan.settings import settings
from undangan.utils.common import as_utc


class ExpiryPolicy:
    """Pure expiry and liveness computations."""

    def __init__(self, days: int = 1, tz: tzinfo = UTC):
        """Initialize the policy.

        Args:
            days: Number of calendar days until the expiring midnight
            tz: Timezone whose midnight is used
        """
        if days < 1:
            raise ValueError("days must be at least 1")
        self.days = days
        self.tz = tz

    @classmethod
    def from_settings(cls) -> "ExpiryPolicy":
        """Build the policy configured in settings."""
        return cls(days=settings.session_expiry_days, tz=settings.session_tz)

    def compute_expiry(self, now: datetime) -> datetime:
        """Midnight starting the day ``now + days``, as an aware UTC datetime.

        Args:
            now: Current time (naive values are taken as UTC)

        Returns:
            Expiry timestamp
        """
        local = as_utc(now).astimezone(self.tz)
        target_day = local.date() + timedelta(days=self.days)
        midnight = datetime.combine(target_day, time.min, tzinfo=self.tz)
        return midnight.astimezone(UTC)

    def is_live(self, session: UserSession, now: datetime) -> bool:
        """Whether the session is active and strictly before its expiry."""
        return session.is_active and as_utc(session.expires_at) > as_utc(now)
