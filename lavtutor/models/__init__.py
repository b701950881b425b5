"""SQLAlchemy ORM Models for the LAV tutoring schema"""
from lavtutor.models.user import User, Profile, Role
from lavtutor.models.schedule import Schedule
from lavtutor.models.appointment import Appointment, AppointmentStatus
from lavtutor.models.evaluation import Evaluation
from lavtutor.models.notification import Notification, NotificationType
from lavtutor.models.announcement import Announcement, Event

__all__ = [
    "User",
    "Profile",
    "Role",
    "Schedule",
    "Appointment",
    "AppointmentStatus",
    "Evaluation",
    "Notification",
    "NotificationType",
    "Announcement",
    "Event",
]
