"""Appointment model - A tutoring session between one tutor and one tutee"""
import enum
import uuid

from sqlalchemy import Column, String, Integer, Date, Time, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lavtutor.database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    STARTED = "started"
    AWAITING_FEEDBACK = "awaiting_feedback"
    COMPLETED = "completed"
    DECLINED = "declined"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value) -> "AppointmentStatus":
        """Case-normalize a raw status value ('Confirmed' -> CONFIRMED)"""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.DECLINED,
    AppointmentStatus.CANCELLED,
})

FINISHED_STATUSES = frozenset({
    AppointmentStatus.AWAITING_FEEDBACK,
    AppointmentStatus.COMPLETED,
})


class Appointment(Base):
    """
    Tutoring session record.

    date/start_time/end_time are local wall clock without timezone; they are
    compared against "now" in the configured fixed offset.
    """

    __tablename__ = "appointment"

    appointment_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tutor_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    # The tutee who booked the session
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )

    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    subject = Column(String(100), nullable=False)
    topic = Column(String(200), nullable=True)
    mode_of_session = Column(String(20), nullable=False)  # Online / Face-to-Face
    session_location = Column(String(300), nullable=True)
    number_of_tutees = Column(Integer, nullable=False, default=1)

    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    tutor_decline_reason = Column(Text, nullable=True)
    tutee_decline_reason = Column(Text, nullable=True)

    resource_link = Column(String(500), nullable=True)
    resource_note = Column(Text, nullable=True)
    online_link = Column(String(500), nullable=True)
    file_link = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_appointment_tutor_date", "tutor_id", "date", "start_time"),
        Index("idx_appointment_tutee_date", "user_id", "date", "start_time"),
        Index("idx_appointment_status", "status"),
    )

    def __repr__(self):
        return f"<Appointment(id={self.appointment_id}, status={self.status}, date={self.date})>"
