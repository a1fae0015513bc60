from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.types import UTCDateTime
from app.helpers.getters import utcnow


class Lecturer(Base):
    __tablename__ = "lecturers"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    staff_id = Column(String(20), unique=True, index=True, nullable=True)  # LEC/NNN
    department = Column(String(100), nullable=False)
    designation = Column(String(50), default="Lecturer", nullable=False)
    office_location = Column(String(100), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)

    user = relationship("User", back_populates="lecturer")
