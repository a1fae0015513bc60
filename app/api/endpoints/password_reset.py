"""
    Password Reset Endpoints

    - /request: issues a reset OTP for an active account and emails it.
    - /verify-otp: checks the OTP and returns the token_id handle.
    - /reset: redeems the verified OTP and sets the new password in the same
      transaction; the token version is bumped so older JWTs stop working.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_account_repository, get_otp_manager
from app.core.security import get_password_hash
from app.models.otp_token import OtpPurpose, OtpToken
from app.repositories.accounts import AccountRepository
from app.schemas.password_reset import (
    PasswordResetConfirmIn,
    PasswordResetRequestIn,
    PasswordResetRequestOut,
    PasswordResetVerifyIn,
    PasswordResetVerifyOut,
)
from app.services.delivery import OtpDeliveryError
from app.services.otp import OtpManager

router = APIRouter()

PURPOSE = OtpPurpose.PASSWORD_RESET.value


@router.post("/request", response_model=PasswordResetRequestOut)
async def request_reset(
    payload: PasswordResetRequestIn,
    accounts: AccountRepository = Depends(get_account_repository),
    otp: OtpManager = Depends(get_otp_manager),
):
    user = await accounts.find_active_by_email(payload.email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No account found with this email")

    try:
        await otp.issue(payload.email, PURPOSE, user_id=user.id)
    except OtpDeliveryError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to send reset code.")

    ttl_minutes = int(otp.ttl_for(PURPOSE).total_seconds() // 60)
    return PasswordResetRequestOut(expires_in=f"{ttl_minutes} minutes")


@router.post("/verify-otp", response_model=PasswordResetVerifyOut)
async def verify_reset_otp(payload: PasswordResetVerifyIn, otp: OtpManager = Depends(get_otp_manager)):
    verification = await otp.verify(payload.email, payload.otp_code, PURPOSE)
    if not verification.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OTP")
    return PasswordResetVerifyOut(token_id=verification.handle)


@router.post("/reset")
async def reset_password(
    payload: PasswordResetConfirmIn,
    accounts: AccountRepository = Depends(get_account_repository),
    otp: OtpManager = Depends(get_otp_manager),
):
    password_hash = get_password_hash(payload.new_password)

    async def apply_new_password(token: OtpToken) -> None:
        await accounts.set_password(token.user_id, password_hash)

    redemption = await otp.redeem(
        payload.token_id,
        payload.email,
        payload.otp_code,
        PURPOSE,
        on_redeem=apply_new_password,
    )
    if not redemption.ok:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OTP not verified or already used. Request a new OTP.",
        )
    return {"message": "Password reset successfully. You can now login."}
