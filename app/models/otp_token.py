# app/models/otp_token.py
from enum import Enum

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, false

from app.db.base import Base
from app.db.types import UTCDateTime
from app.helpers.getters import utcnow


class OtpPurpose(str, Enum):
    PASSWORD_RESET = "password_reset"
    REGISTRATION = "registration"


class OtpToken(Base):
    """
    Single-use passcode bound to an email address and a purpose.

    Lifecycle: unused -> verified (verified_at set) -> used (is_used, terminal).
    An expired record that was never verified is dead without any flag.
    """

    __tablename__ = "otp_tokens"

    id = Column(Integer, primary_key=True)
    owner_key = Column(String(255), nullable=False)  # lowercased email
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    purpose = Column(String(32), nullable=False)
    code = Column(String(12), nullable=False)  # zero-padded digits, never cast to int

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    verified_at = Column(UTCDateTime, nullable=True)
    used_at = Column(UTCDateTime, nullable=True)
    is_used = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_otp_tokens_owner_purpose", "owner_key", "purpose", "is_used"),
        # at most one live code per (owner, purpose)
        Index(
            "uq_otp_tokens_live_owner_purpose",
            "owner_key",
            "purpose",
            unique=True,
            postgresql_where=is_used == false(),
            sqlite_where=is_used == false(),
        ),
    )
