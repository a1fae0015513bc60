"""
Pydantic schemas for login and token verification.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class Login(BaseModel):
    """Login by email, student registration number or lecturer staff id."""
    identifier: Optional[str] = None
    # Older clients send one of these instead of identifier
    email: Optional[str] = None
    registration_number: Optional[str] = Field(None, alias="registrationNumber")
    staff_id: Optional[str] = Field(None, alias="staffId")
    password: str = Field(..., min_length=1)

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def resolve_identifier(self):
        identifier = self.identifier or self.email or self.registration_number or self.staff_id or ""
        identifier = identifier.strip()
        if not identifier:
            raise ValueError("Email, registration number, or staff ID is required")
        self.identifier = identifier
        return self


class StudentProfile(BaseModel):
    registration_number: str
    batch_year: int
    department: Optional[str] = None
    academic_status: str

    class Config:
        from_attributes = True


class LecturerProfile(BaseModel):
    staff_id: Optional[str] = None
    department: str
    designation: str
    office_location: Optional[str] = None

    class Config:
        from_attributes = True


class UserProfile(BaseModel):
    id: int
    email: str
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    student: Optional[StudentProfile] = None
    lecturer: Optional[LecturerProfile] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    message: str = "Login successful"
    user: UserProfile


class TokenVerifyOut(BaseModel):
    valid: bool = True
    user: UserProfile
