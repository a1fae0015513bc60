"""
Account lockout guard.

Tracks failed logins per account and locks the account for a fixed window
once the threshold is reached:

    Unlocked(n) --failure, n+1 < max--> Unlocked(n+1)
    Unlocked(n) --failure, n+1 >= max--> Locked(until)
    Locked(until) --check after until--> Unlocked(0)
    Unlocked(n) --success--> Unlocked(0)

Negative outcomes are returned as values. Persistence errors propagate,
except from record_success which must never block a valid login.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings, settings as default_settings
from app.helpers.getters import utcnow
from app.logging import get_logger
from app.repositories.accounts import AccountRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class LockStatus:
    locked: bool
    retry_after_minutes: Optional[int] = None


@dataclass(frozen=True)
class FailureOutcome:
    locked: bool
    remaining_attempts: Optional[int] = None
    attempts: Optional[int] = None
    retry_after_minutes: Optional[int] = None


def minutes_until(until: datetime, now: datetime) -> int:
    return max(1, math.ceil((until - now).total_seconds() / 60))


class LockoutGuard:
    def __init__(
        self,
        accounts: AccountRepository,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.accounts = accounts
        self.db = accounts.db
        self.max_attempts = settings.LOGIN_MAX_FAILED_ATTEMPTS
        self.lock_duration = timedelta(minutes=settings.LOGIN_LOCK_MINUTES)
        self.clock = clock

    async def check_lock(self, account_id: int) -> LockStatus:
        user = await self.accounts.get(account_id)
        if user is None or user.locked_until is None:
            return LockStatus(locked=False)

        now = self.clock()
        if now < user.locked_until:
            return LockStatus(locked=True, retry_after_minutes=minutes_until(user.locked_until, now))

        # Lock elapsed: start over from zero, unless another request already re-locked the row
        try:
            cleared = await self.accounts.clear_expired_lock(account_id, now)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        if not cleared:
            user = await self.accounts.get(account_id)
            if user is not None and user.locked_until is not None and now < user.locked_until:
                return LockStatus(locked=True, retry_after_minutes=minutes_until(user.locked_until, now))
            return LockStatus(locked=False)

        logger.info("Account lock expired", user_id=account_id)
        return LockStatus(locked=False)

    async def check_lock_for_identifier(self, identifier: str) -> LockStatus:
        user = await self.accounts.find_by_identifier(identifier)
        if user is None:
            return LockStatus(locked=False)
        return await self.check_lock(user.id)

    async def record_failure(self, identifier: str, client_ip: str) -> FailureOutcome:
        user = await self.accounts.find_by_identifier(identifier)
        if user is None:
            # Same answer as for a real account, nothing written
            logger.audit("Failed login for unknown identifier", ip=client_ip)
            return FailureOutcome(locked=False)

        try:
            attempts = await self.accounts.increment_failed_attempts(user.id)
            if attempts >= self.max_attempts:
                until = self.clock() + self.lock_duration
                await self.accounts.set_lock(user.id, until)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        if attempts >= self.max_attempts:
            logger.audit(
                "Account locked",
                email=user.email,
                identifier=identifier,
                ip=client_ip,
                attempts=attempts,
            )
            return FailureOutcome(
                locked=True,
                attempts=attempts,
                remaining_attempts=0,
                retry_after_minutes=int(self.lock_duration.total_seconds() // 60),
            )

        logger.audit(
            "Failed login",
            email=user.email,
            ip=client_ip,
            attempts=f"{attempts}/{self.max_attempts}",
        )
        return FailureOutcome(
            locked=False,
            attempts=attempts,
            remaining_attempts=self.max_attempts - attempts,
        )

    async def record_success(self, account_id: int, client_ip: str) -> None:
        try:
            await self.accounts.record_login_success(account_id, client_ip, self.clock())
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.error("Error recording successful login", user_id=account_id, ip=client_ip)
            return
        logger.info("Successful login", user_id=account_id, ip=client_ip)
