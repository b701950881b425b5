"""Notification model - Structured per-user messages created by lifecycle events"""
import enum
import uuid

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lavtutor.database import Base


class NotificationType(str, enum.Enum):
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    APPOINTMENT_DECLINED = "appointment_declined"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    SESSION_ENDING_SOON = "session_ending_soon"
    ASSESSMENT_REQUESTED = "assessment_requested"
    FEEDBACK_REQUESTED = "feedback_requested"
    ANNOUNCEMENT = "announcement"


class Notification(Base):
    """
    Notification for one recipient.

    appointment_id is a structured reference; notification_content is the
    rendered text derived from it and is never parsed back.
    """

    __tablename__ = "notification"

    notification_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    type = Column(String(40), nullable=False)
    appointment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("appointment.appointment_id", ondelete="SET NULL"),
        nullable=True,
    )
    notification_content = Column(Text, nullable=False)
    status = Column(String(10), nullable=False, default="unread")  # unread / read
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_notification_user_status", "user_id", "status"),
    )

    def __repr__(self):
        return f"<Notification(id={self.notification_id}, user={self.user_id}, type={self.type})>"
