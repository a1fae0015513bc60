"""
Integration tests for the account lockout guard.

Runs against the in-memory database with a frozen clock.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.repositories.accounts import AccountRepository
from app.services.lockout import LockoutGuard, minutes_until
from tests.factories import UserFactory

IP = "10.0.0.1"


@pytest.fixture
def guard(db_session, clock):
    return LockoutGuard(AccountRepository(db_session), settings=settings, clock=clock)


async def fail_times(guard, identifier, times):
    outcome = None
    for _ in range(times):
        outcome = await guard.record_failure(identifier, IP)
    return outcome


@pytest.mark.asyncio
class TestRecordFailure:
    """Failed attempts counting and locking."""

    async def test_counts_down_remaining_attempts(self, guard, user):
        outcome = await guard.record_failure("user@test.com", IP)

        assert outcome.locked is False
        assert outcome.attempts == 1
        assert outcome.remaining_attempts == 4

    async def test_fifth_failure_locks(self, guard, user, clock):
        outcome = await fail_times(guard, "user@test.com", 4)
        assert outcome.locked is False
        assert outcome.remaining_attempts == 1

        outcome = await guard.record_failure("user@test.com", IP)

        assert outcome.locked is True
        assert outcome.attempts == 5
        assert outcome.retry_after_minutes == 15

        account = await guard.accounts.get(user.id)
        assert account.failed_login_attempts == 5
        assert account.locked_until == clock() + timedelta(minutes=15)

    async def test_five_failures_then_check_lock(self, guard, user):
        await fail_times(guard, "USER@test.com", 5)

        status = await guard.check_lock(user.id)

        assert status.locked is True
        assert 0 < status.retry_after_minutes <= 15

    async def test_unknown_identifier_writes_nothing(self, guard, user):
        outcome = await guard.record_failure("ghost@test.com", IP)

        assert outcome.locked is False
        assert outcome.remaining_attempts is None
        account = await guard.accounts.get(user.id)
        assert account.failed_login_attempts == 0

    async def test_resolves_registration_number(self, guard, student):
        outcome = await guard.record_failure("dent/2023/001", IP)

        assert outcome.attempts == 1

    async def test_resolves_staff_id(self, guard, lecturer):
        outcome = await guard.record_failure("LEC/045", IP)

        assert outcome.attempts == 1

    async def test_failures_are_per_account(self, guard, user, student):
        await fail_times(guard, "user@test.com", 5)

        assert (await guard.check_lock(student.id)).locked is False


@pytest.mark.asyncio
class TestCheckLock:
    """Lock window and lazy expiry."""

    async def test_never_failed(self, guard, user):
        status = await guard.check_lock(user.id)

        assert status.locked is False
        assert status.retry_after_minutes is None

    async def test_unknown_account_is_not_locked(self, guard):
        assert (await guard.check_lock(999)).locked is False

    async def test_retry_after_rounds_up(self, guard, user, clock):
        await fail_times(guard, "user@test.com", 5)

        clock.advance(minutes=10)
        assert (await guard.check_lock(user.id)).retry_after_minutes == 5

        clock.advance(minutes=4, seconds=30)
        assert (await guard.check_lock(user.id)).retry_after_minutes == 1

    async def test_expired_lock_resets_count(self, guard, user, clock):
        await fail_times(guard, "user@test.com", 5)

        clock.advance(minutes=15)
        status = await guard.check_lock(user.id)

        assert status.locked is False
        account = await guard.accounts.get(user.id)
        assert account.failed_login_attempts == 0
        assert account.locked_until is None

        # a fresh cycle starts from zero
        outcome = await guard.record_failure("user@test.com", IP)
        assert outcome.remaining_attempts == 4

    async def test_check_by_identifier(self, guard, lecturer):
        await fail_times(guard, "lec/045", 5)

        assert (await guard.check_lock_for_identifier("LEC/045")).locked is True
        assert (await guard.check_lock_for_identifier("nobody@test.com")).locked is False


@pytest.mark.asyncio
class TestRecordSuccess:
    """Successful login bookkeeping."""

    async def test_resets_count_and_stamps_login(self, guard, user, clock):
        await fail_times(guard, "user@test.com", 3)

        await guard.record_success(user.id, "198.51.100.9")

        account = await guard.accounts.get(user.id)
        assert account.failed_login_attempts == 0
        assert account.locked_until is None
        assert account.last_login_at == clock()
        assert account.last_login_ip == "198.51.100.9"

    async def test_clears_active_lock(self, guard, user):
        outcome = await fail_times(guard, "user@test.com", 5)
        assert outcome.locked is True
        assert (await guard.accounts.get(user.id)).locked_until is not None

        await guard.record_success(user.id, IP)

        account = await guard.accounts.get(user.id)
        assert account.failed_login_attempts == 0
        assert account.locked_until is None
        assert (await guard.check_lock(user.id)).locked is False

    async def test_persistence_error_is_swallowed(self, guard, user, mocker):
        mocker.patch.object(
            guard.accounts,
            "record_login_success",
            side_effect=OperationalError("UPDATE users", {}, Exception("database is locked")),
        )

        await guard.record_success(user.id, IP)

    async def test_failure_persistence_error_propagates(self, guard, user, mocker):
        mocker.patch.object(
            guard.accounts,
            "increment_failed_attempts",
            side_effect=OperationalError("UPDATE users", {}, Exception("database is locked")),
        )

        with pytest.raises(OperationalError):
            await guard.record_failure("user@test.com", IP)


@pytest.mark.asyncio
class TestAtomicIncrement:
    """The counter is incremented by the database, not from a loaded copy."""

    async def test_stale_session_does_not_lose_updates(self, session_factory, clock):
        async with session_factory() as setup:
            user = await UserFactory.create_async(setup, email="race@test.com", failed_login_attempts=4)
            await setup.commit()

        async with session_factory() as first, session_factory() as second:
            guard_a = LockoutGuard(AccountRepository(first), settings=settings, clock=clock)
            guard_b = LockoutGuard(AccountRepository(second), settings=settings, clock=clock)

            # both requests have already loaded the account with count=4
            stale = await guard_b.accounts.get(user.id)
            assert stale.failed_login_attempts == 4

            outcome_a = await guard_a.record_failure("race@test.com", IP)
            outcome_b = await guard_b.record_failure("race@test.com", IP)

        assert outcome_a.attempts == 5
        assert outcome_b.attempts == 6
        assert outcome_a.locked is True
        assert outcome_b.locked is True


def test_minutes_until_has_floor_of_one(clock):
    assert minutes_until(clock.now, clock.now) == 1


@pytest.mark.asyncio
class TestLockExpiryRace:
    """An expired lock is cleared only if it is still the lock on the row."""

    async def test_stale_expiry_does_not_erase_new_lock(self, session_factory, clock, mocker):
        async with session_factory() as setup:
            user = await UserFactory.create_async(setup, email="race@test.com")
            await setup.commit()

        async with session_factory() as first, session_factory() as second:
            guard_a = LockoutGuard(AccountRepository(first), settings=settings, clock=clock)
            guard_b = LockoutGuard(AccountRepository(second), settings=settings, clock=clock)

            await fail_times(guard_b, "race@test.com", 5)
            clock.advance(minutes=16)

            # request A read the row while the old lock had already elapsed
            expired = await guard_a.accounts.get(user.id)
            stale = SimpleNamespace(id=expired.id, locked_until=expired.locked_until)
            real_get = guard_a.accounts.get
            reads = []

            async def get(account_id):
                reads.append(account_id)
                if len(reads) == 1:
                    return stale
                return await real_get(account_id)

            mocker.patch.object(guard_a.accounts, "get", side_effect=get)

            # meanwhile request B starts a new cycle and locks the account again
            assert (await guard_b.check_lock(user.id)).locked is False
            outcome = await fail_times(guard_b, "race@test.com", 5)
            assert outcome.locked is True

            status = await guard_a.check_lock(user.id)

            assert status.locked is True
            assert status.retry_after_minutes == 15
            account = await real_get(user.id)
            assert account.failed_login_attempts == 5
            assert account.locked_until == clock() + timedelta(minutes=15)

    async def test_clear_expired_lock_is_conditional(self, guard, user, clock):
        await fail_times(guard, "user@test.com", 5)

        assert await guard.accounts.clear_expired_lock(user.id, clock()) is False
        assert await guard.accounts.clear_expired_lock(user.id, clock() + timedelta(minutes=15)) is True
        assert await guard.accounts.clear_expired_lock(user.id, clock() + timedelta(minutes=15)) is False
