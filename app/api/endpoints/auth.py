"""
    Authentication Endpoints

    - /login: checks the lockout guard, authenticates by email, registration
      number or staff id, records the attempt and issues a JWT access token.
    - /verify: validates a bearer token and returns the active user.

    Failed logins never reveal whether the identifier exists; a locked
    account answers 423 with the minutes left before it may retry.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.dependencies import get_account_repository, get_current_user, get_lockout_guard
from app.core.security import create_access_token, verify_password
from app.helpers.network import get_client_ip
from app.models.user import User
from app.repositories.accounts import AccountRepository
from app.schemas.auth import Login, Token, TokenVerifyOut, UserProfile
from app.services.lockout import LockoutGuard

router = APIRouter()

INVALID_CREDENTIALS = "Invalid credentials"


def _locked_exception(retry_after_minutes: int, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_423_LOCKED,
        detail={
            "message": message,
            "locked": True,
            "retry_after_minutes": retry_after_minutes,
        },
        headers={"Retry-After": str(retry_after_minutes * 60)},
    )


@router.post("/login", response_model=Token)
async def login(
    login_data: Login,
    request: Request,
    guard: LockoutGuard = Depends(get_lockout_guard),
    accounts: AccountRepository = Depends(get_account_repository),
):
    client_ip = get_client_ip(request)
    identifier = login_data.identifier

    user = await accounts.find_by_identifier(identifier)
    if user is None:
        await guard.record_failure(identifier, client_ip)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    lock = await guard.check_lock(user.id)
    if lock.locked:
        raise _locked_exception(
            lock.retry_after_minutes,
            f"Account is locked. Try again in {lock.retry_after_minutes} minute(s).",
        )

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated. Contact admin.")

    if not verify_password(login_data.password, user.password_hash):
        outcome = await guard.record_failure(identifier, client_ip)
        if outcome.locked:
            raise _locked_exception(
                outcome.retry_after_minutes,
                f"Too many failed login attempts. Account locked for {outcome.retry_after_minutes} minutes.",
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": INVALID_CREDENTIALS, "remaining_attempts": outcome.remaining_attempts},
        )

    await guard.record_success(user.id, client_ip)
    user = await accounts.get(user.id)

    access_token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role},
        token_version=user.token_version,
    )
    return Token(access_token=access_token, user=UserProfile.model_validate(user))


@router.get("/verify", response_model=TokenVerifyOut)
async def verify_token(current_user: User = Depends(get_current_user)):
    return TokenVerifyOut(user=UserProfile.model_validate(current_user))
