from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.types import UTCDateTime
from app.helpers.getters import utcnow

ROLE_STUDENT = "student"
ROLE_LECTURER = "lecturer"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)  # always lowercase
    password_hash = Column(String(150), nullable=False)
    full_name = Column(String(200), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_STUDENT)
    is_active = Column(Boolean, default=True, nullable=False)

    # Lockout state, owned by LockoutGuard
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(UTCDateTime, nullable=True)
    last_login_at = Column(UTCDateTime, nullable=True)
    last_login_ip = Column(String(64), nullable=True)

    token_version = Column(Integer, default=1, nullable=False)  # invalidate old JWTs
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    student = relationship("Student", back_populates="user", uselist=False, lazy="selectin")
    lecturer = relationship("Lecturer", back_populates="user", uselist=False, lazy="selectin")
