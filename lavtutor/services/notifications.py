"""
Notification Service

Renders lifecycle notifications from structured fields and stores them for
their recipients. Delivery is best-effort: a failed insert is logged and
never undoes the status change that triggered it.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from lavtutor.database import AsyncSessionLocal
from lavtutor.errors import NotFound, ValidationFailed
from lavtutor.models.notification import Notification, NotificationType
from lavtutor.models.user import Role, User
from lavtutor.services.change_feed import get_data_sync

logger = logging.getLogger(__name__)


@dataclass
class NotificationDraft:
    """Notification content before it is stored"""
    recipient_id: uuid.UUID
    type: NotificationType
    content: str
    appointment_id: Optional[uuid.UUID] = None


def describe_session(appointment) -> str:
    """'Calculus' or 'Calculus - Limits'"""
    if appointment.topic:
        return f"{appointment.subject} - {appointment.topic}"
    return appointment.subject


def format_long_date(value: date) -> str:
    """date(2026, 3, 5) -> 'March 5, 2026'"""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_clock(value: time) -> str:
    """time(15, 0) -> '3:00 PM'"""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def confirmed_notice(appointment, location: str) -> NotificationDraft:
    content = (
        f"Your appointment request for {describe_session(appointment)} on "
        f"{format_long_date(appointment.date)} at {format_clock(appointment.start_time)} "
        f"has been confirmed. Location: {location}."
    )
    return NotificationDraft(
        recipient_id=appointment.user_id,
        type=NotificationType.APPOINTMENT_CONFIRMED,
        content=content,
        appointment_id=appointment.appointment_id,
    )


def declined_notice(appointment, reason: str) -> NotificationDraft:
    content = (
        f"Your appointment request for {describe_session(appointment)} has been declined. "
        f"Reason: {reason}"
    )
    return NotificationDraft(
        recipient_id=appointment.user_id,
        type=NotificationType.APPOINTMENT_DECLINED,
        content=content,
        appointment_id=appointment.appointment_id,
    )


def cancelled_by_tutor_notice(appointment, reason: str) -> NotificationDraft:
    content = (
        f"Your appointment for {describe_session(appointment)} has been cancelled. "
        f"Reason: {reason}"
    )
    return NotificationDraft(
        recipient_id=appointment.user_id,
        type=NotificationType.APPOINTMENT_CANCELLED,
        content=content,
        appointment_id=appointment.appointment_id,
    )


def cancelled_by_tutee_notice(appointment, tutee_name: str, reason: str) -> NotificationDraft:
    content = (
        f"{tutee_name} cancelled the appointment for {describe_session(appointment)}. "
        f"Reason: {reason}"
    )
    return NotificationDraft(
        recipient_id=appointment.tutor_id,
        type=NotificationType.APPOINTMENT_CANCELLED,
        content=content,
        appointment_id=appointment.appointment_id,
    )


def ending_soon_notice(appointment, minutes: int) -> NotificationDraft:
    content = (
        f"Your session for {describe_session(appointment)} will end automatically in "
        f"{minutes} minutes at {format_clock(appointment.end_time)}."
    )
    return NotificationDraft(
        recipient_id=appointment.tutor_id,
        type=NotificationType.SESSION_ENDING_SOON,
        content=content,
        appointment_id=appointment.appointment_id,
    )


def assessment_requested_notice(appointment) -> NotificationDraft:
    content = (
        f"The session for {describe_session(appointment)} on {format_long_date(appointment.date)} "
        "has ended. Please record the pre-test and post-test scores."
    )
    return NotificationDraft(
        recipient_id=appointment.tutor_id,
        type=NotificationType.ASSESSMENT_REQUESTED,
        content=content,
        appointment_id=appointment.appointment_id,
    )


def feedback_requested_notice(appointment) -> NotificationDraft:
    content = (
        f"Your session for {describe_session(appointment)} on {format_long_date(appointment.date)} "
        "has ended. Please complete the evaluation to finish the appointment."
    )
    return NotificationDraft(
        recipient_id=appointment.user_id,
        type=NotificationType.FEEDBACK_REQUESTED,
        content=content,
        appointment_id=appointment.appointment_id,
    )


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "notification_id": str(notification.notification_id),
        "type": notification.type,
        "appointment_id": str(notification.appointment_id) if notification.appointment_id else None,
        "content": notification.notification_content,
        "status": notification.status,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


class NotificationService:
    """Stores and lists per-user notifications"""

    def __init__(self, session_factory=AsyncSessionLocal, data_sync=None):
        self.session_factory = session_factory
        self.data_sync = data_sync or get_data_sync()

    async def _store(self, drafts: List[NotificationDraft]):
        async with self.session_factory() as session:
            for draft in drafts:
                session.add(Notification(
                    user_id=draft.recipient_id,
                    type=draft.type.value,
                    appointment_id=draft.appointment_id,
                    notification_content=draft.content,
                    status="unread",
                ))
            await session.commit()

    async def deliver(self, *drafts: NotificationDraft) -> int:
        """
        Store notifications in their own transaction.

        A failed insert is logged and registered with the data sync error
        registry so it can be retried later.

        Returns:
            Number stored (0 when the insert failed)
        """
        drafts = [draft for draft in drafts if draft is not None]
        if not drafts:
            return 0

        types = ",".join(sorted({d.type.value for d in drafts}))
        try:
            await self._store(drafts)
        except Exception as e:
            logger.warning(f"Failed to deliver {len(drafts)} notification(s) ({types}): {e}")
            key = f"notifications:{drafts[0].appointment_id or 'broadcast'}:{types}"

            async def retry():
                await self._store(drafts)

            self.data_sync.report_error(key, f"Notifications could not be sent: {e}", retry)
            return 0

        logger.info(f"Delivered {len(drafts)} notification(s) ({types})")
        return len(drafts)

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        async with self.session_factory() as session:
            conditions = [Notification.user_id == user_id]
            if unread_only:
                conditions.append(Notification.status == "unread")
            stmt = (
                select(Notification)
                .where(*conditions)
                .order_by(Notification.created_at.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [serialize_notification(n) for n in result.scalars().all()]

    async def mark_read(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> Dict[str, Any]:
        async with self.session_factory() as session:
            notification = await session.get(Notification, notification_id)
            if notification is None or notification.user_id != user_id:
                raise NotFound("Notification not found", details={"notification_id": str(notification_id)})
            notification.status = "read"
            await session.commit()
            return serialize_notification(notification)

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Notification).where(
                    Notification.user_id == user_id,
                    Notification.status == "unread",
                )
            )
            unread = result.scalars().all()
            for notification in unread:
                notification.status = "read"
            await session.commit()
            return len(unread)

    async def announce(self, content: str, role: Optional[str] = None) -> int:
        """
        Broadcast an announcement to every user, or every user of one role.

        Returns:
            Number of recipients
        """
        content = (content or "").strip()
        if not content:
            raise ValidationFailed("Announcement text is required.", details={"field": "content"})
        if role is not None:
            try:
                role = Role(role.strip().lower()).value
            except ValueError:
                raise ValidationFailed(f"Unknown role '{role}'.", details={"field": "role"})

        async with self.session_factory() as session:
            stmt = select(User)
            if role is not None:
                stmt = stmt.where(User.role == role)
            result = await session.execute(stmt)
            recipients = result.scalars().all()

        drafts = [
            NotificationDraft(recipient_id=user.user_id, type=NotificationType.ANNOUNCEMENT, content=content)
            for user in recipients
        ]
        delivered = await self.deliver(*drafts)
        logger.info(f"Announcement sent to {delivered} user(s) (role={role or 'all'})")
        return delivered


_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get or create global NotificationService instance"""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
