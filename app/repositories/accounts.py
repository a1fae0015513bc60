"""
Account persistence used by the lockout guard and the auth handlers.

Repositories only issue statements; commit/rollback belongs to the caller.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.lecturer import Lecturer
from app.models.student import Student
from app.models.user import User


class AccountRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, account_id: int) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.id == account_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_identifier(self, identifier: str) -> Optional[User]:
        """Resolve an email, student registration number or lecturer staff id to one account."""
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        upper = identifier.upper()
        result = await self.db.execute(
            select(User)
            .outerjoin(Student, Student.user_id == User.id)
            .outerjoin(Lecturer, Lecturer.user_id == User.id)
            .where(or_(
                User.email == identifier.lower(),
                Student.registration_number == upper,
                Lecturer.staff_id == upper,
            ))
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def increment_failed_attempts(self, account_id: int) -> int:
        """Single-statement ``count = count + 1``; concurrent failures never lose an update."""
        result = await self.db.execute(
            update(User)
            .where(User.id == account_id)
            .values(failed_login_attempts=User.failed_login_attempts + 1)
            .returning(User.failed_login_attempts)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one()

    async def set_lock(self, account_id: int, until: datetime) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == account_id)
            .values(locked_until=until)
            .execution_options(synchronize_session=False)
        )

    async def clear_expired_lock(self, account_id: int, now: datetime) -> bool:
        """
        Reset the counter only while the stored lock is still the elapsed one.
        Returns False when the row was unlocked or re-locked in the meantime.
        """
        result = await self.db.execute(
            update(User)
            .where(
                User.id == account_id,
                User.locked_until.is_not(None),
                User.locked_until <= now,
            )
            .values(failed_login_attempts=0, locked_until=None)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def record_login_success(self, account_id: int, ip_address: str, at: datetime) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == account_id)
            .values(
                failed_login_attempts=0,
                locked_until=None,
                last_login_at=at,
                last_login_ip=ip_address,
            )
            .execution_options(synchronize_session=False)
        )

    async def email_exists(self, email: str) -> bool:
        result = await self.db.execute(select(func.count(User.id)).where(User.email == email.lower()))
        return result.scalar_one() > 0

    async def find_active_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .where(User.email == email.lower(), User.is_active.is_(True))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def registration_number_exists(self, registration_number: str) -> bool:
        result = await self.db.execute(
            select(func.count(Student.id)).where(Student.registration_number == registration_number.upper())
        )
        return result.scalar_one() > 0

    async def staff_id_exists(self, staff_id: str) -> bool:
        result = await self.db.execute(
            select(func.count(Lecturer.id)).where(Lecturer.staff_id == staff_id.upper())
        )
        return result.scalar_one() > 0

    async def create_account(
        self,
        *,
        email: str,
        password_hash: str,
        full_name: str,
        first_name: str,
        last_name: str,
        role: str,
        student: Optional[dict] = None,
        lecturer: Optional[dict] = None,
    ) -> User:
        user = User(
            email=email.lower(),
            password_hash=password_hash,
            full_name=full_name,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        self.db.add(user)
        await self.db.flush()  # assigns user.id

        if student is not None:
            self.db.add(Student(user_id=user.id, **student))
        if lecturer is not None:
            self.db.add(Lecturer(user_id=user.id, **lecturer))
        await self.db.flush()
        return user

    async def set_password(self, account_id: int, password_hash: str) -> None:
        """New hash, bumped token version (old JWTs die) and a clean lockout state."""
        await self.db.execute(
            update(User)
            .where(User.id == account_id)
            .values(
                password_hash=password_hash,
                token_version=User.token_version + 1,
                failed_login_attempts=0,
                locked_until=None,
            )
            .execution_options(synchronize_session=False)
        )
