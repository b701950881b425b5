"""Evaluation model - Pre/post test scores and the tutee satisfaction survey"""
import uuid

from sqlalchemy import Column, String, Float, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lavtutor.database import Base

TUTOR_RATING_FIELDS = (
    "presentation_clarity",
    "drills_sufficiency",
    "patience_enthusiasm",
    "study_skills_development",
    "positive_impact",
)

LAV_RATING_FIELDS = (
    "lav_environment",
    "lav_scheduling",
    "lav_support",
    "lav_book_again",
    "lav_value",
)


class Evaluation(Base):
    """
    One evaluation per appointment.

    Uniqueness is enforced by lookup-before-insert in the service layer.
    Ratings are stored as text ("1".."5" or "N/A").
    """

    __tablename__ = "evaluation"

    evaluation_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    appointment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("appointment.appointment_id", ondelete="CASCADE"),
        nullable=False,
    )
    tutor_id = Column(UUID(as_uuid=True), nullable=True)
    user_id = Column(UUID(as_uuid=True), nullable=True)

    # Tutor-entered assessment
    pre_test_score = Column(Float, nullable=True)
    post_test_score = Column(Float, nullable=True)
    pre_test_total = Column(Float, nullable=True)
    post_test_total = Column(Float, nullable=True)
    tutor_notes = Column(Text, nullable=True)

    # Tutee satisfaction survey: tutor
    presentation_clarity = Column(String(3), nullable=True)
    drills_sufficiency = Column(String(3), nullable=True)
    patience_enthusiasm = Column(String(3), nullable=True)
    study_skills_development = Column(String(3), nullable=True)
    positive_impact = Column(String(3), nullable=True)
    tutor_comment = Column(Text, nullable=True)

    # Tutee satisfaction survey: organization
    lav_environment = Column(String(3), nullable=True)
    lav_scheduling = Column(String(3), nullable=True)
    lav_support = Column(String(3), nullable=True)
    lav_book_again = Column(String(3), nullable=True)
    lav_value = Column(String(3), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_evaluation_appointment", "appointment_id"),
        Index("idx_evaluation_tutor", "tutor_id"),
    )

    def __repr__(self):
        return f"<Evaluation(id={self.evaluation_id}, appointment={self.appointment_id})>"
