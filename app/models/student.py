from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.types import UTCDateTime
from app.helpers.getters import utcnow


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    registration_number = Column(String(20), unique=True, index=True, nullable=False)  # DENT/YYYY/NNN
    batch_year = Column(Integer, nullable=False)
    department = Column(String(100), nullable=True)
    academic_status = Column(String(20), default="Active", nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)

    user = relationship("User", back_populates="student")
