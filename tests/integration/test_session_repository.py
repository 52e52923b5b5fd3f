"""Integration tests for SessionRepository against SQLite."""

import random
from datetime import UTC, datetime, timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from tests.utils.factories import LAPTOP, PHONE, UserFactory
from undangan.exceptions.domain import SessionNotFoundError, StorageError
from undangan.models import ClientInfo, User, UserSession
from undangan.repositories.base import transaction
from undangan.repositories.session_repository import SessionRepository
from undangan.utils.common import generate_token

NOW = datetime(2024, 5, 1, 10, 0, tzinfo=UTC)
TOMORROW = datetime(2024, 5, 2, tzinfo=UTC)


async def _all_sessions(session: AsyncSession) -> list[UserSession]:
    result = await session.execute(select(UserSession).execution_options(populate_existing=True))
    return list(result.scalars().all())


def _miss_first_check(repo: SessionRepository) -> None:
    """Let the first existence check pass, as if another writer inserted the token right after."""
    real_check = repo._token_exists
    checks = 0

    async def check(token: str) -> bool:
        nonlocal checks
        checks += 1
        return False if checks == 1 else await real_check(token)

    repo._token_exists = check  # type: ignore[method-assign]


class TestCreateSession:
    """Tests for session creation and token uniqueness."""

    @pytest.mark.asyncio
    async def test_create_session(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)

        created = await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)

        assert created.user_id == test_user.id
        assert created.is_active is True
        assert created.created_at == NOW
        assert created.last_activity == NOW
        assert created.expires_at == TOMORROW
        assert created.fingerprint == LAPTOP
        assert len(created.token) >= 43

    @pytest.mark.asyncio
    async def test_create_without_fingerprint(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)

        created = await repo.create_session(test_user.id, TOMORROW, NOW)

        assert created.fingerprint == ClientInfo()

    @pytest.mark.asyncio
    async def test_timestamps_come_back_as_utc(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)
        created = await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)

        stored = await repo.find_live_by_token(created.token, NOW)

        assert stored is not None
        assert stored.expires_at.tzinfo is not None
        assert stored.expires_at == TOMORROW

    @pytest.mark.asyncio
    async def test_collision_regenerates(self, test_session: AsyncSession, test_user: User):
        """A generated token that is already taken is replaced by a new one."""
        await SessionRepository(test_session, token_factory=lambda: "taken").create_session(
            test_user.id, TOMORROW, NOW
        )
        candidates = iter(["taken", "taken", "free"])
        repo = SessionRepository(test_session, token_factory=lambda: next(candidates))

        created = await repo.create_session(test_user.id, TOMORROW, NOW, PHONE)

        assert created.token == "free"
        assert len(await _all_sessions(test_session)) == 2

    @pytest.mark.asyncio
    async def test_collision_streak_gives_up(self, test_session: AsyncSession, test_user: User):
        await SessionRepository(test_session, token_factory=lambda: "taken").create_session(
            test_user.id, TOMORROW, NOW
        )
        repo = SessionRepository(test_session, token_factory=lambda: "taken", max_attempts=3)

        with pytest.raises(StorageError, match="unique session token"):
            await repo.create_session(test_user.id, TOMORROW, NOW, PHONE)

        assert len(await _all_sessions(test_session)) == 1

    @pytest.mark.asyncio
    async def test_token_taken_between_check_and_insert(
        self, test_session: AsyncSession, test_user: User
    ):
        user_id = test_user.id
        await SessionRepository(test_session, token_factory=lambda: "taken").create_session(
            user_id, TOMORROW, NOW
        )
        candidates = iter(["taken", "free"])
        repo = SessionRepository(test_session, token_factory=lambda: next(candidates))
        _miss_first_check(repo)

        created = await repo.create_session(user_id, TOMORROW, NOW, PHONE)

        assert created.token == "free"
        assert created.user_id == user_id
        assert sorted(s.token for s in await _all_sessions(test_session)) == ["free", "taken"]

    @pytest.mark.asyncio
    async def test_other_integrity_error_is_not_retried(
        self, test_session: AsyncSession, test_user: User
    ):
        repo = SessionRepository(test_session, token_factory=lambda: "fresh")
        failure = IntegrityError(
            "INSERT INTO sessions", {}, Exception("FOREIGN KEY constraint failed")
        )

        with (
            patch.object(test_session, "commit", side_effect=failure),
            pytest.raises(StorageError, match="Failed to create session"),
        ):
            await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)

        assert await _all_sessions(test_session) == []

    @pytest.mark.asyncio
    async def test_collision_inside_transaction_aborts_it(
        self, test_session: AsyncSession, test_user: User
    ):
        user_id = test_user.id
        await SessionRepository(test_session, token_factory=lambda: "taken").create_session(
            user_id, TOMORROW, NOW
        )
        candidates = iter(["taken", "free"])
        repo = SessionRepository(test_session, token_factory=lambda: next(candidates))
        _miss_first_check(repo)

        with pytest.raises(StorageError, match="Failed to create session"):
            async with transaction(test_session):
                await repo.create_session(user_id, TOMORROW, NOW, PHONE)

        assert [s.token for s in await _all_sessions(test_session)] == ["taken"]

    def test_generated_tokens_are_distinct(self):
        tokens = {generate_token() for _ in range(10_000)}

        assert len(tokens) == 10_000

    @pytest.mark.asyncio
    async def test_tokens_unique_across_users_and_devices(self, test_session: AsyncSession):
        users = [await UserFactory.create_user(test_session) for _ in range(5)]
        repo = SessionRepository(test_session)
        rng = random.Random(1)

        for i in range(200):
            fingerprint = ClientInfo(ip_address=f"10.0.{i % 7}.{i % 11}", user_agent=f"agent-{i % 3}")
            await repo.create_session(rng.choice(users).id, TOMORROW, NOW, fingerprint)

        tokens = [s.token for s in await _all_sessions(test_session)]
        assert len(tokens) == 200
        assert len(set(tokens)) == 200

    @pytest.mark.asyncio
    async def test_database_failure_becomes_storage_error(
        self, test_session: AsyncSession, test_user: User
    ):
        repo = SessionRepository(test_session)
        failure = OperationalError("SELECT", {}, Exception("disk I/O error"))

        with (
            patch.object(test_session, "execute", side_effect=failure),
            pytest.raises(StorageError),
        ):
            await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)


class TestFindLiveMatch:
    """Tests for fingerprint matching."""

    @pytest.mark.asyncio
    async def test_exact_match(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)
        created = await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)

        found = await repo.find_live_match(test_user.id, LAPTOP, NOW)

        assert found is not None
        assert found.id == created.id

    @pytest.mark.asyncio
    async def test_any_field_difference_prevents_match(
        self, test_session: AsyncSession, test_user: User
    ):
        repo = SessionRepository(test_session)
        await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)

        for field in ("ip_address", "user_agent", "device_type", "browser", "os"):
            changed = LAPTOP.model_copy(update={field: "something-else"})
            assert await repo.find_live_match(test_user.id, changed, NOW) is None

    @pytest.mark.asyncio
    async def test_none_matches_only_null(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)
        partial = ClientInfo(ip_address="10.0.0.1")
        created = await repo.create_session(test_user.id, TOMORROW, NOW, partial)

        found = await repo.find_live_match(test_user.id, partial, NOW)
        assert found is not None
        assert found.id == created.id

        # A concrete value never matches a stored NULL
        assert await repo.find_live_match(test_user.id, LAPTOP, NOW) is None
        # And None never matches a stored value
        assert await repo.find_live_match(test_user.id, ClientInfo(), NOW) is None

    @pytest.mark.asyncio
    async def test_other_user_not_matched(
        self, test_session: AsyncSession, test_user: User, other_user: User
    ):
        repo = SessionRepository(test_session)
        await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)

        assert await repo.find_live_match(other_user.id, LAPTOP, NOW) is None

    @pytest.mark.asyncio
    async def test_expired_not_matched(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)
        await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)

        # Expiry equal to now is already dead
        assert await repo.find_live_match(test_user.id, LAPTOP, TOMORROW) is None

    @pytest.mark.asyncio
    async def test_inactive_not_matched(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)
        await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)
        await repo.deactivate_all(test_user.id, NOW - timedelta(hours=1))

        assert await repo.find_live_match(test_user.id, LAPTOP, NOW) is None

    @pytest.mark.asyncio
    async def test_most_recent_wins(self, test_session: AsyncSession, test_user: User):
        """Duplicates left by a concurrent race resolve to the newest row."""
        repo = SessionRepository(test_session)
        await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)
        newer = await repo.create_session(test_user.id, TOMORROW, NOW + timedelta(minutes=5), LAPTOP)

        found = await repo.find_live_match(test_user.id, LAPTOP, NOW + timedelta(minutes=10))

        assert found is not None
        assert found.id == newer.id


class TestBumpExpiry:
    """Tests for bump_expiry."""

    @pytest.mark.asyncio
    async def test_moves_expiry_and_activity(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)
        created = await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)
        later = NOW + timedelta(days=1, hours=2)
        new_expiry = TOMORROW + timedelta(days=1)

        updated = await repo.bump_expiry(created.id, new_expiry, later)

        assert updated.token == created.token
        assert updated.expires_at == new_expiry
        assert updated.last_activity == later
        assert updated.created_at == NOW

    @pytest.mark.asyncio
    async def test_missing_row(self, test_session: AsyncSession):
        repo = SessionRepository(test_session)

        with pytest.raises(SessionNotFoundError):
            await repo.bump_expiry(uuid4(), TOMORROW, NOW)

    @pytest.mark.asyncio
    async def test_row_deleted_after_lookup(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)
        created = await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)
        await repo.delete_by_user_and_token(test_user.id, created.token)

        with pytest.raises(SessionNotFoundError):
            await repo.bump_expiry(created.id, TOMORROW, NOW)


class TestBulkOperations:
    """Tests for purge, deactivation and logout deletes."""

    @pytest.mark.asyncio
    async def test_delete_expired_mixed(
        self, test_session: AsyncSession, test_user: User, other_user: User
    ):
        """Exactly the rows with expiry at or before the cutoff are removed."""
        repo = SessionRepository(test_session)
        rng = random.Random(5)
        cutoff = NOW
        expected_survivors = set()

        for i in range(60):
            offset = timedelta(minutes=rng.randint(-3000, 3000))
            if i % 10 == 0:
                offset = timedelta(0)
            owner = test_user if i % 2 else other_user
            created = await repo.create_session(owner.id, cutoff + offset, NOW - timedelta(days=3))
            if offset > timedelta(0):
                expected_survivors.add(created.id)

        deleted = await repo.delete_expired(cutoff)

        survivors = {s.id for s in await _all_sessions(test_session)}
        assert survivors == expected_survivors
        assert deleted == 60 - len(expected_survivors)

    @pytest.mark.asyncio
    async def test_delete_expired_nothing_to_do(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)
        await repo.create_session(test_user.id, TOMORROW, NOW)

        assert await repo.delete_expired(NOW) == 0

    @pytest.mark.asyncio
    async def test_delete_expired_for_user_is_scoped(
        self, test_session: AsyncSession, test_user: User, other_user: User
    ):
        repo = SessionRepository(test_session)
        yesterday = NOW - timedelta(days=1)
        await repo.create_session(test_user.id, yesterday, yesterday)
        await repo.create_session(test_user.id, TOMORROW, NOW)
        theirs = await repo.create_session(other_user.id, yesterday, yesterday)

        assert await repo.delete_expired_for_user(test_user.id, NOW) == 1

        remaining = await _all_sessions(test_session)
        assert len(remaining) == 2
        assert theirs.id in {s.id for s in remaining}

    @pytest.mark.asyncio
    async def test_deactivate_all(
        self, test_session: AsyncSession, test_user: User, other_user: User
    ):
        repo = SessionRepository(test_session)
        mine = [
            await repo.create_session(test_user.id, TOMORROW, NOW, fp) for fp in (LAPTOP, PHONE)
        ]
        theirs = await repo.create_session(other_user.id, TOMORROW, NOW, LAPTOP)
        later = NOW + timedelta(hours=1)

        assert await repo.deactivate_all(test_user.id, later) == 2
        # Re-running touches nothing
        assert await repo.deactivate_all(test_user.id, later) == 0

        rows = {s.id: s for s in await _all_sessions(test_session)}
        for session in mine:
            assert rows[session.id].is_active is False
            assert rows[session.id].expires_at <= later
            assert await repo.find_live_by_token(session.token, later) is None
        assert rows[theirs.id].is_active is True
        assert await repo.find_live_by_token(theirs.token, later) is not None

    @pytest.mark.asyncio
    async def test_delete_by_user_and_token(
        self, test_session: AsyncSession, test_user: User, other_user: User
    ):
        repo = SessionRepository(test_session)
        laptop = await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)
        phone = await repo.create_session(test_user.id, TOMORROW, NOW, PHONE)

        # Someone else's user id never deletes the row
        assert await repo.delete_by_user_and_token(other_user.id, laptop.token) == 0
        assert await repo.delete_by_user_and_token(test_user.id, laptop.token) == 1
        assert await repo.delete_by_user_and_token(test_user.id, laptop.token) == 0

        remaining = await _all_sessions(test_session)
        assert [s.id for s in remaining] == [phone.id]

    @pytest.mark.asyncio
    async def test_delete_by_token_ignores_inactive(
        self, test_session: AsyncSession, test_user: User
    ):
        repo = SessionRepository(test_session)
        created = await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)
        await repo.deactivate_all(test_user.id, NOW)

        assert await repo.delete_by_user_and_token(test_user.id, created.token) == 0

    @pytest.mark.asyncio
    async def test_list_live_for_user(self, test_session: AsyncSession, test_user: User):
        repo = SessionRepository(test_session)
        laptop = await repo.create_session(test_user.id, TOMORROW, NOW, LAPTOP)
        phone = await repo.create_session(test_user.id, TOMORROW, NOW + timedelta(minutes=1), PHONE)
        await repo.create_session(test_user.id, NOW, NOW - timedelta(hours=1))

        listed = await repo.list_live_for_user(test_user.id, NOW + timedelta(minutes=2))

        assert [s.id for s in listed] == [phone.id, laptop.id]
