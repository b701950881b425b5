"""Announcement and Event models - LAV bulletin content managed by administrators"""
import uuid

from sqlalchemy import Column, String, Text, Date, Time, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lavtutor.database import Base


class Announcement(Base):
    """Bulletin text shown on the dashboards; the newest one is featured"""

    __tablename__ = "announcement"

    announcement_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    announcement_content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_announcement_created", "created_at"),
    )

    def __repr__(self):
        return f"<Announcement(id={self.announcement_id}, created_at={self.created_at})>"


class Event(Base):
    """Scheduled LAV event (workshop, orientation); images are not stored here"""

    __tablename__ = "event"

    event_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    event_title = Column(String(200), nullable=False)
    event_description = Column(Text, nullable=True)
    event_date = Column(Date, nullable=False)
    event_time = Column(Time, nullable=False)
    event_location = Column(String(300), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_event_date_time", "event_date", "event_time"),
    )

    def __repr__(self):
        return f"<Event(id={self.event_id}, title={self.event_title}, date={self.event_date})>"
