"""
Pydantic schemas for self-registration with email OTP verification.

Field names are snake_case; the web client sends camelCase, so both are accepted.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.helpers.validators import (
    normalize_otp,
    split_full_name,
    validate_academic_status,
    validate_batch_year,
    validate_department,
    validate_designation,
    validate_email,
    validate_full_name,
    validate_password,
    validate_registration_number,
    validate_self_register_role,
    validate_staff_id,
    DEFAULT_LECTURER_DEPARTMENT,
)
from app.models.user import ROLE_LECTURER, ROLE_STUDENT


class SendOtpIn(BaseModel):
    email: str
    role: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str) -> str:
        return validate_self_register_role(v)


class SendOtpOut(BaseModel):
    message: str = "OTP sent to your email."
    expires_in: str


class RegistrationVerifyIn(BaseModel):
    email: str
    otp: str = Field(..., min_length=1, max_length=12)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("otp")
    @classmethod
    def strip_otp(cls, v: str) -> str:
        return normalize_otp(v)


class RegistrationVerifyOut(BaseModel):
    message: str = "OTP verified. Complete your registration."
    token_id: int


class RegisterIn(BaseModel):
    email: str
    otp: str = Field(..., min_length=1, max_length=12)
    password: str
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    token_id: Optional[int] = None

    # student
    batch_year: Optional[Union[int, str]] = None
    registration_number: Optional[str] = None
    department: Optional[str] = None
    academic_status: Optional[str] = None

    # lecturer
    staff_id: Optional[str] = None
    designation: Optional[str] = None
    office_location: Optional[str] = Field(None, max_length=100)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("otp")
    @classmethod
    def strip_otp(cls, v: str) -> str:
        return normalize_otp(v)

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: str) -> str:
        return validate_full_name(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str) -> str:
        return validate_self_register_role(v)

    @field_validator("staff_id")
    @classmethod
    def check_staff_id(cls, v: Optional[str]) -> Optional[str]:
        return validate_staff_id(v)

    @field_validator("department")
    @classmethod
    def check_department(cls, v: Optional[str]) -> Optional[str]:
        return validate_department(v)

    @model_validator(mode="after")
    def check_role_fields(self):
        validate_password(self.password, self.email)

        if not self.first_name or not self.last_name:
            self.first_name, self.last_name = split_full_name(self.full_name)

        if self.role == ROLE_STUDENT:
            if not self.batch_year or not self.registration_number:
                raise ValueError("Students must provide batch year and registration number")
            self.batch_year = validate_batch_year(self.batch_year)
            self.registration_number = validate_registration_number(self.registration_number)
            self.academic_status = validate_academic_status(self.academic_status)
        elif self.role == ROLE_LECTURER:
            self.department = self.department or DEFAULT_LECTURER_DEPARTMENT
            self.designation = validate_designation(self.designation)
        return self

    def student_fields(self) -> dict:
        return {
            "registration_number": self.registration_number,
            "batch_year": self.batch_year,
            "department": self.department,
            "academic_status": self.academic_status,
        }

    def lecturer_fields(self) -> dict:
        return {
            "staff_id": self.staff_id,
            "department": self.department,
            "designation": self.designation,
            "office_location": self.office_location,
        }


class RegisterOut(BaseModel):
    message: str = "Registration successful! You can now login."
    user_id: int
