"""
OTP token persistence.

Repositories only issue statements; commit/rollback belongs to the caller.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.otp_token import OtpToken


class OtpRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def lock_owner(self, owner_key: str, purpose: str) -> None:
        """
        Transaction-scoped lock on (owner, purpose) so concurrent issuances
        run their invalidate + insert one after the other. SQLite already
        serializes writers, so only PostgreSQL needs the advisory lock.
        """
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(
            select(func.pg_advisory_xact_lock(func.hashtext(f"otp:{purpose}:{owner_key}")))
        )

    async def invalidate_pending(self, owner_key: str, purpose: str) -> int:
        """Delete every unused code for (owner, purpose), verified or not."""
        result = await self.db.execute(
            delete(OtpToken)
            .where(
                OtpToken.owner_key == owner_key,
                OtpToken.purpose == purpose,
                OtpToken.is_used.is_(False),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def insert(self, token: OtpToken) -> OtpToken:
        self.db.add(token)
        await self.db.flush()
        return token

    async def delete(self, token_id: int) -> None:
        await self.db.execute(
            delete(OtpToken).where(OtpToken.id == token_id).execution_options(synchronize_session=False)
        )

    async def get(self, token_id: int) -> Optional[OtpToken]:
        result = await self.db.execute(
            select(OtpToken).where(OtpToken.id == token_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_latest(self, owner_key: str, purpose: str) -> Optional[OtpToken]:
        """Most recent record regardless of state. Only used to log why a check failed."""
        result = await self.db.execute(
            select(OtpToken)
            .where(OtpToken.owner_key == owner_key, OtpToken.purpose == purpose)
            .order_by(OtpToken.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def find_active(self, owner_key: str, code: str, purpose: str, now: datetime) -> Optional[OtpToken]:
        result = await self.db.execute(
            select(OtpToken)
            .where(
                OtpToken.owner_key == owner_key,
                OtpToken.purpose == purpose,
                OtpToken.code == code,
                OtpToken.is_used.is_(False),
                OtpToken.expires_at > now,
            )
            .order_by(OtpToken.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def find_verified(self, owner_key: str, code: str, purpose: str) -> Optional[OtpToken]:
        result = await self.db.execute(
            select(OtpToken)
            .where(
                OtpToken.owner_key == owner_key,
                OtpToken.purpose == purpose,
                OtpToken.code == code,
                OtpToken.is_used.is_(False),
                OtpToken.verified_at.is_not(None),
            )
            .order_by(OtpToken.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def mark_verified(self, token_id: int, at: datetime) -> None:
        await self.db.execute(
            update(OtpToken)
            .where(OtpToken.id == token_id)
            .values(verified_at=at)
            .execution_options(synchronize_session=False)
        )

    async def mark_used(self, token_id: int, at: datetime) -> bool:
        """
        Flip is_used only if it is still false. Returns False when another
        request already consumed the record.
        """
        result = await self.db.execute(
            update(OtpToken)
            .where(OtpToken.id == token_id, OtpToken.is_used.is_(False))
            .values(is_used=True, used_at=at)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1
