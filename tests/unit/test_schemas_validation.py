"""
Unit tests for Pydantic schemas validation.

Tests schema validation without database.
"""

import pytest
from pydantic import ValidationError

from app.schemas.auth import Login
from app.schemas.password_reset import (
    PasswordResetConfirmIn,
    PasswordResetRequestIn,
    PasswordResetVerifyIn,
)
from app.schemas.registration import RegisterIn, RegistrationVerifyIn, SendOtpIn


class TestLoginSchema:
    """Test the Login request body."""

    def test_identifier(self):
        login = Login(identifier="  user@test.com ", password="x")

        assert login.identifier == "user@test.com"

    def test_legacy_fields_resolve_identifier(self):
        assert Login(email="user@test.com", password="x").identifier == "user@test.com"
        assert Login(registrationNumber="DENT/2023/001", password="x").identifier == "DENT/2023/001"
        assert Login(staffId="LEC/045", password="x").identifier == "LEC/045"

    def test_missing_identifier(self):
        with pytest.raises(ValidationError) as exc_info:
            Login(password="x")

        assert "Email, registration number, or staff ID is required" in str(exc_info.value)

    def test_missing_password(self):
        with pytest.raises(ValidationError) as exc_info:
            Login(identifier="user@test.com")

        errors = exc_info.value.errors()
        assert any(error["loc"] == ("password",) for error in errors)


class TestPasswordResetSchemas:
    """Test password reset request bodies."""

    def test_request_lowercases_email(self):
        assert PasswordResetRequestIn(email="User@Test.com").email == "user@test.com"

    def test_request_invalid_email(self):
        with pytest.raises(ValidationError):
            PasswordResetRequestIn(email="not-an-email")

    def test_otp_keeps_leading_zeros(self):
        data = PasswordResetVerifyIn(email="user@test.com", otp_code=" 007123 ")

        assert data.otp_code == "007123"

    def test_confirm_rejects_weak_password(self):
        with pytest.raises(ValidationError) as exc_info:
            PasswordResetConfirmIn(email="user@test.com", otp_code="123456", new_password="weak")

        assert "at least 8 characters" in str(exc_info.value)

    def test_confirm_valid(self):
        data = PasswordResetConfirmIn(
            email="user@test.com", otp_code="123456", new_password="NewPass123!", token_id=4,
        )

        assert data.token_id == 4


class TestRegistrationSchemas:
    """Test registration request bodies."""

    def test_send_otp_rejects_admin(self):
        with pytest.raises(ValidationError) as exc_info:
            SendOtpIn(email="new@test.com", role="admin")

        assert "Admins cannot self-register" in str(exc_info.value)

    def test_verify_normalizes_email(self):
        data = RegistrationVerifyIn(email=" New@Test.com ", otp="000042")

        assert data.email == "new@test.com"
        assert data.otp == "000042"

    def test_student_registration_camel_case(self):
        data = RegisterIn(**{
            "email": "kasun@test.com",
            "otp": "123456",
            "password": "Student123!",
            "fullName": "Kasun Perera",
            "role": "student",
            "batchYear": "2023",
            "registrationNumber": "dent/2023/015",
        })

        assert data.first_name == "Kasun"
        assert data.last_name == "Perera"
        assert data.batch_year == 2023
        assert data.registration_number == "DENT/2023/015"
        assert data.academic_status == "Active"
        assert data.student_fields()["registration_number"] == "DENT/2023/015"

    def test_student_requires_registration_number(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterIn(
                email="kasun@test.com",
                otp="123456",
                password="Student123!",
                full_name="Kasun Perera",
                role="student",
                batch_year=2023,
            )

        assert "Students must provide batch year and registration number" in str(exc_info.value)

    def test_lecturer_defaults(self):
        data = RegisterIn(
            email="nimal@test.com",
            otp="123456",
            password="Lecturer123!",
            full_name="Nimal Silva",
            role="lecturer",
        )

        assert data.department == "Restorative Dentistry"
        assert data.designation == "Lecturer"
        assert data.staff_id is None
        assert data.lecturer_fields()["designation"] == "Lecturer"

    def test_lecturer_invalid_staff_id(self):
        with pytest.raises(ValidationError):
            RegisterIn(
                email="nimal@test.com",
                otp="123456",
                password="Lecturer123!",
                full_name="Nimal Silva",
                role="lecturer",
                staff_id="45",
            )
