"""
Field validators shared by the registration, login and password reset schemas.

Every validator returns the sanitized value or raises ValueError with a
message that is safe to show to the user. Pydantic turns the ValueError into
a 422 response when used inside a field_validator.
"""
import re
from typing import Optional, Tuple, Union

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
FULL_NAME_RE = re.compile(r"^[a-zA-Z\s]+$")
REGISTRATION_NUMBER_RE = re.compile(r"^DENT/\d{4}/\d{3}$")
STAFF_ID_RE = re.compile(r"^LEC/\d{3}$")
PASSWORD_SPECIALS = "@$!%*?&"

MIN_YEAR = 2000
MAX_YEAR = 2030

DEPARTMENTS = (
    "Basic Sciences",
    "Community Dental Health",
    "Oral Medicine & Periodontology",
    "Oral & Maxillofacial Surgery",
    "Oral Pathology",
    "Prosthetic Dentistry",
    "Restorative Dentistry",
)
DEFAULT_LECTURER_DEPARTMENT = "Restorative Dentistry"
ACADEMIC_STATUSES = ("Active", "Suspended", "Graduated")
DESIGNATIONS = ("Lecturer", "Consultant", "Demonstrator")
SELF_REGISTER_ROLES = ("student", "lecturer")


def validate_email(email: Optional[str]) -> str:
    if not email:
        raise ValueError("Email is required")
    trimmed = email.strip()
    if len(trimmed) > 255:
        raise ValueError("Email must not exceed 255 characters")
    if " " in trimmed:
        raise ValueError("Email cannot contain spaces")
    if not EMAIL_RE.match(trimmed):
        raise ValueError("Invalid email format")
    return trimmed.lower()


def validate_password(password: Optional[str], email: str = "", username: str = "") -> str:
    if not password:
        raise ValueError("Password is required")
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters long")
    # bcrypt only looks at the first 72 bytes
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password must not exceed 72 bytes")
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        raise ValueError("Password must contain at least one number")
    if not any(ch in PASSWORD_SPECIALS for ch in password):
        raise ValueError(f"Password must contain at least one special character ({PASSWORD_SPECIALS})")
    if email and password.lower() == email.lower():
        raise ValueError("Password cannot be the same as email")
    if username and password.lower() == username.lower():
        raise ValueError("Password cannot be the same as username")
    return password


def validate_full_name(full_name: Optional[str]) -> str:
    if not full_name:
        raise ValueError("Full name is required")
    trimmed = full_name.strip()
    if len(trimmed) < 3:
        raise ValueError("Full name must be at least 3 characters")
    if len(trimmed) > 200:
        raise ValueError("Full name must not exceed 200 characters")
    if not FULL_NAME_RE.match(trimmed):
        raise ValueError("Full name can only contain letters and spaces")
    return trimmed


def split_full_name(full_name: str) -> Tuple[str, str]:
    """'Ada Byron King' -> ('Ada', 'Byron King'); a single word is used for both."""
    parts = full_name.split()
    first = parts[0]
    last = " ".join(parts[1:]) or first
    return first, last


def validate_registration_number(reg_number: Optional[str]) -> str:
    if not reg_number:
        raise ValueError("Registration number is required for students")
    reg_number = reg_number.strip().upper()
    if not REGISTRATION_NUMBER_RE.match(reg_number):
        raise ValueError("Registration number must follow format: DENT/YYYY/XXX (e.g., DENT/2023/001)")

    _, year, number = reg_number.split("/")
    if not MIN_YEAR <= int(year) <= MAX_YEAR:
        raise ValueError(f"Registration number year must be between {MIN_YEAR}-{MAX_YEAR}")
    if not 1 <= int(number) <= 200:
        raise ValueError("Registration number must be between 001-200")
    return reg_number


def validate_batch_year(batch_year: Union[int, str, None]) -> int:
    if batch_year is None or batch_year == "":
        raise ValueError("Batch year is required for students")
    try:
        year = int(batch_year)
    except (TypeError, ValueError):
        raise ValueError("Batch year must be a valid number")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError(f"Batch year must be between {MIN_YEAR} and {MAX_YEAR}")
    return year


def validate_staff_id(staff_id: Optional[str]) -> Optional[str]:
    if not staff_id:
        return None
    staff_id = staff_id.strip().upper()
    if not STAFF_ID_RE.match(staff_id):
        raise ValueError("Staff ID must follow format: LEC/XXX (e.g., LEC/045)")
    return staff_id


def validate_department(department: Optional[str], required: bool = False) -> Optional[str]:
    if not department:
        if required:
            raise ValueError("Department is required for lecturers")
        return None
    if department not in DEPARTMENTS:
        raise ValueError(f"Invalid department. Must be one of: {', '.join(DEPARTMENTS)}")
    return department


def validate_academic_status(status: Optional[str]) -> str:
    if not status:
        return "Active"
    if status not in ACADEMIC_STATUSES:
        raise ValueError(f"Academic status must be one of: {', '.join(ACADEMIC_STATUSES)}")
    return status


def validate_designation(designation: Optional[str]) -> str:
    if not designation:
        return "Lecturer"
    if designation not in DESIGNATIONS:
        raise ValueError(f"Designation must be one of: {', '.join(DESIGNATIONS)}")
    return designation


def validate_self_register_role(role: Optional[str]) -> str:
    if not role:
        raise ValueError("Role is required")
    if role not in SELF_REGISTER_ROLES:
        raise ValueError("Invalid role. Admins cannot self-register.")
    return role


def normalize_otp(code) -> str:
    """OTP codes are compared as strings; '007123' must never become 7123."""
    if code is None:
        return ""
    return str(code).strip()
