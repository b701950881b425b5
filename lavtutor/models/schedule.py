"""Schedule model - Tutor weekly availability slots"""
import uuid

from sqlalchemy import Column, String, Time, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lavtutor.database import Base


class Schedule(Base):
    """One published weekly slot, e.g. Monday 08:00-10:00"""

    __tablename__ = "schedule"

    schedule_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tutor_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    day = Column(String(10), nullable=False)  # e.g., 'Monday'
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_schedule_tutor_day", "tutor_id", "day"),
    )

    def __repr__(self):
        return f"<Schedule(tutor={self.tutor_id}, day={self.day}, {self.start_time}-{self.end_time})>"
