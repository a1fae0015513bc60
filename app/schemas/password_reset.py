"""
Pydantic schemas for the password reset flow.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.helpers.validators import normalize_otp, validate_password


class PasswordResetRequestIn(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class PasswordResetRequestOut(BaseModel):
    message: str = "OTP sent to your email."
    expires_in: str


class PasswordResetVerifyIn(BaseModel):
    email: EmailStr
    otp_code: str = Field(..., min_length=1, max_length=12)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("otp_code")
    @classmethod
    def strip_otp(cls, v: str) -> str:
        return normalize_otp(v)


class PasswordResetVerifyOut(BaseModel):
    message: str = "OTP verified successfully. You can now set your new password."
    token_id: int


class PasswordResetConfirmIn(BaseModel):
    email: EmailStr
    otp_code: str = Field(..., min_length=1, max_length=12)
    new_password: str
    token_id: Optional[int] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("otp_code")
    @classmethod
    def strip_otp(cls, v: str) -> str:
        return normalize_otp(v)

    @model_validator(mode="after")
    def check_password(self):
        validate_password(self.new_password, self.email)
        return self
