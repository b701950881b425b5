"""User and Profile models - accounts, roles and tutor profile details"""
import enum
import uuid

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lavtutor.database import Base


class Role(str, enum.Enum):
    TUTEE = "tutee"
    TUTOR = "tutor"
    ADMIN = "admin"


class User(Base):
    """Application account; role decides which screens and actions apply"""

    __tablename__ = "users"

    user_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default=Role.TUTEE.value)
    # Opaque bearer token issued by the auth provider
    access_token = Column(String(255), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_users_role", "role"),
    )

    def __repr__(self):
        return f"<User(user_id={self.user_id}, name={self.name}, role={self.role})>"


class Profile(Base):
    """Tutor profile: teaching subject and default meeting/material links"""

    __tablename__ = "profile"

    profile_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    subject = Column(String(100), nullable=True)
    specialization = Column(String(200), nullable=True)
    college = Column(String(200), nullable=True)
    program = Column(String(200), nullable=True)
    year_level = Column(Integer, nullable=True)
    online_link = Column(String(500), nullable=True)
    file_link = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<Profile(profile_id={self.profile_id}, user={self.user_id}, subject={self.subject})>"
