from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import decode_access_token
from app.db.session import SessionAsync
from app.helpers.getters import utcnow
from app.models.user import User
from app.repositories.accounts import AccountRepository
from app.repositories.otp import OtpRepository
from app.services.delivery import OtpDelivery, get_otp_delivery
from app.services.lockout import LockoutGuard
from app.services.otp import OtpManager

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/login",
    description="Bearer token returned by /api/auth/login"
)


async def get_db():
    async with SessionAsync() as session:
        yield session


def get_clock() -> Callable:
    return utcnow


def get_delivery() -> OtpDelivery:
    return get_otp_delivery(settings)


def get_account_repository(db: AsyncSession = Depends(get_db)) -> AccountRepository:
    return AccountRepository(db)


def get_lockout_guard(
    accounts: AccountRepository = Depends(get_account_repository),
    clock: Callable = Depends(get_clock),
) -> LockoutGuard:
    return LockoutGuard(accounts, settings=settings, clock=clock)


def get_otp_manager(
    db: AsyncSession = Depends(get_db),
    delivery: OtpDelivery = Depends(get_delivery),
    clock: Callable = Depends(get_clock),
) -> OtpManager:
    return OtpManager(OtpRepository(db), delivery, settings=settings, clock=clock)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
        tv = payload.get("tv")
        if user_id is None or tv is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    result = await db.execute(
        select(User).where(User.id == int(user_id)).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user or not user.is_active or int(tv) != int(user.token_version or 1):
        raise credentials_exception
    return user


def require_role(*roles: str):
    """
    Dependency factory restricting an endpoint to the given roles.

    Usage:
        @router.get("/admin-only", dependencies=[Depends(require_role("admin"))])
    """
    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Insufficient permissions.",
            )
        return current_user

    return checker
