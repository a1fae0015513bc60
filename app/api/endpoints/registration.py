"""
    Registration Endpoints

    Students and lecturers self-register after proving control of their
    email address. Pending sign-ups live in otp_tokens, not in process
    memory, so they survive restarts and work across instances.

    - /send-otp: issues a registration OTP for an unused email.
    - /verify-otp: optional first phase, returns the token_id handle.
    - /verify-and-register: redeems the OTP and creates the account and its
      student/lecturer row in one transaction.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError

from app.api.dependencies import get_account_repository, get_otp_manager
from app.core.security import get_password_hash
from app.logging import get_logger
from app.models.otp_token import OtpPurpose, OtpToken
from app.models.user import ROLE_LECTURER, ROLE_STUDENT
from app.repositories.accounts import AccountRepository
from app.schemas.registration import (
    RegisterIn,
    RegisterOut,
    RegistrationVerifyIn,
    RegistrationVerifyOut,
    SendOtpIn,
    SendOtpOut,
)
from app.services.delivery import OtpDeliveryError
from app.services.otp import OtpManager

router = APIRouter()
logger = get_logger(__name__)

PURPOSE = OtpPurpose.REGISTRATION.value
EMAIL_TAKEN = "User with this email already exists"


@router.post("/send-otp", response_model=SendOtpOut)
async def send_registration_otp(
    payload: SendOtpIn,
    accounts: AccountRepository = Depends(get_account_repository),
    otp: OtpManager = Depends(get_otp_manager),
):
    if await accounts.email_exists(payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN)

    try:
        await otp.issue(payload.email, PURPOSE)
    except OtpDeliveryError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to send OTP. Please try again.")

    ttl_minutes = int(otp.ttl_for(PURPOSE).total_seconds() // 60)
    return SendOtpOut(expires_in=f"{ttl_minutes} minutes")


@router.post("/verify-otp", response_model=RegistrationVerifyOut)
async def verify_registration_otp(payload: RegistrationVerifyIn, otp: OtpManager = Depends(get_otp_manager)):
    verification = await otp.verify(payload.email, payload.otp, PURPOSE)
    if not verification.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OTP")
    return RegistrationVerifyOut(token_id=verification.handle)


@router.post("/verify-and-register", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
async def verify_and_register(
    payload: RegisterIn,
    accounts: AccountRepository = Depends(get_account_repository),
    otp: OtpManager = Depends(get_otp_manager),
):
    if await accounts.email_exists(payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN)
    if payload.role == ROLE_STUDENT and await accounts.registration_number_exists(payload.registration_number):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Registration number already exists")
    if payload.role == ROLE_LECTURER and payload.staff_id and await accounts.staff_id_exists(payload.staff_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Staff ID already exists")

    password_hash = get_password_hash(payload.password)
    created = {}

    async def create_account(token: OtpToken) -> None:
        user = await accounts.create_account(
            email=payload.email,
            password_hash=password_hash,
            full_name=payload.full_name,
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role,
            student=payload.student_fields() if payload.role == ROLE_STUDENT else None,
            lecturer=payload.lecturer_fields() if payload.role == ROLE_LECTURER else None,
        )
        created["user_id"] = user.id

    try:
        if payload.token_id is not None:
            redemption = await otp.redeem(payload.token_id, payload.email, payload.otp, PURPOSE, on_redeem=create_account)
        else:
            redemption = await otp.verify_and_redeem(payload.email, payload.otp, PURPOSE, on_redeem=create_account)
    except IntegrityError:
        # lost a race with another sign-up for the same email / number
        logger.warning("Registration conflict", email=payload.email, role=payload.role)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Account already exists")

    if not redemption.ok:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired OTP. Please request a new OTP.",
        )

    logger.great("Registration completed", user_id=created["user_id"], role=payload.role)
    return RegisterOut(user_id=created["user_id"])
