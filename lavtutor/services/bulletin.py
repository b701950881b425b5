"""
Bulletin Service

Administrator-managed content shown on the dashboards and landing page:
- announcements (the newest one is featured on the tutee dashboard)
- LAV events with date, time and location

Publishing an announcement can also notify every user of a role through
the notification service.
"""
import logging
import uuid
from datetime import date, time
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select

from lavtutor.database import AsyncSessionLocal
from lavtutor.errors import NotFound, PermissionDenied, ValidationFailed
from lavtutor.models.announcement import Announcement, Event
from lavtutor.models.user import Role, User
from lavtutor.services.change_feed import get_data_sync
from lavtutor.services.lifecycle import now_local
from lavtutor.services.notifications import get_notification_service

logger = logging.getLogger(__name__)

EVENT_REQUIRED = ("event_title", "event_date", "event_time", "event_location")
EVENT_TEXT_FIELDS = ("event_title", "event_description", "event_location")


def serialize_announcement(announcement: Announcement) -> Dict[str, Any]:
    return {
        "announcement_id": str(announcement.announcement_id),
        "user_id": str(announcement.user_id) if announcement.user_id else None,
        "content": announcement.announcement_content,
        "created_at": announcement.created_at.isoformat() if announcement.created_at else None,
        "updated_at": announcement.updated_at.isoformat() if announcement.updated_at else None,
    }


def serialize_event(event: Event) -> Dict[str, Any]:
    return {
        "event_id": str(event.event_id),
        "title": event.event_title,
        "description": event.event_description,
        "date": event.event_date.isoformat(),
        "time": event.event_time.strftime("%H:%M"),
        "location": event.event_location,
    }


def clean_event_fields(changes: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate event fields.

    With partial=True only the submitted keys are checked, but a submitted
    required field still may not be blank.
    """
    cleaned = {}
    for field in EVENT_TEXT_FIELDS:
        if field in changes:
            cleaned[field] = (changes[field] or "").strip() or None
    for field, kind in (("event_date", date), ("event_time", time)):
        if field in changes:
            value = changes[field]
            if value is not None and not isinstance(value, kind):
                raise ValidationFailed(f"Invalid {field.replace('_', ' ')}.", details={"field": field})
            cleaned[field] = value

    keys = [field for field in EVENT_REQUIRED if field in changes] if partial else EVENT_REQUIRED
    missing = [field for field in keys if cleaned.get(field) is None]
    if missing:
        raise ValidationFailed("Please fill in all required event fields.", details={"missing": missing})
    return cleaned


def _require_admin(user: User):
    if user.role != Role.ADMIN.value:
        raise PermissionDenied("Only administrators can manage announcements and events")


class BulletinService:

    def __init__(self, session_factory=AsyncSessionLocal, data_sync=None, notifier=None, clock=now_local):
        self.session_factory = session_factory
        self.data_sync = data_sync or get_data_sync()
        self.notifier = notifier or get_notification_service()
        self.clock = clock

    # Announcements

    async def _load_announcement(self, session, announcement_id: uuid.UUID) -> Announcement:
        announcement = await session.get(Announcement, announcement_id)
        if announcement is None:
            raise NotFound("Announcement not found", details={"announcement_id": str(announcement_id)})
        return announcement

    async def list_announcements(self, limit: int = 20) -> List[Dict[str, Any]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Announcement).order_by(Announcement.created_at.desc()).limit(limit)
            )
            return [serialize_announcement(a) for a in result.scalars().all()]

    async def latest_announcement(self) -> Optional[Dict[str, Any]]:
        """Newest announcement, or None when there is none"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Announcement).order_by(Announcement.created_at.desc()).limit(1)
            )
            announcement = result.scalars().first()
        return serialize_announcement(announcement) if announcement else None

    async def create_announcement(
        self,
        admin: User,
        content: str,
        notify: bool = False,
        role: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Publish an announcement.

        With notify=True every user (or every user of `role`) also gets an
        announcement notification; that delivery is best effort.
        """
        _require_admin(admin)
        content = (content or "").strip()
        if not content:
            raise ValidationFailed("Announcement text is required.", details={"field": "content"})

        async with self.session_factory() as session:
            announcement = Announcement(
                announcement_id=uuid.uuid4(),
                user_id=admin.user_id,
                announcement_content=content,
            )
            session.add(announcement)
            await session.commit()

        logger.info(f"Announcement {announcement.announcement_id} published by {admin.user_id}")
        tables = ["announcement"]
        if notify and await self.notifier.announce(content, role):
            tables.append("notification")
        await self.data_sync.record_change(*tables)
        return serialize_announcement(announcement)

    async def update_announcement(self, admin: User, announcement_id: uuid.UUID, content: str) -> Dict[str, Any]:
        _require_admin(admin)
        content = (content or "").strip()
        if not content:
            raise ValidationFailed("Announcement text is required.", details={"field": "content"})

        async with self.session_factory() as session:
            announcement = await self._load_announcement(session, announcement_id)
            announcement.announcement_content = content
            await session.commit()

        logger.info(f"Announcement {announcement_id} updated by {admin.user_id}")
        await self.data_sync.record_change("announcement")
        return serialize_announcement(announcement)

    async def delete_announcement(self, admin: User, announcement_id: uuid.UUID) -> None:
        _require_admin(admin)
        async with self.session_factory() as session:
            announcement = await self._load_announcement(session, announcement_id)
            await session.delete(announcement)
            await session.commit()

        logger.info(f"Announcement {announcement_id} deleted by {admin.user_id}")
        await self.data_sync.record_change("announcement")

    # Events

    async def _load_event(self, session, event_id: uuid.UUID) -> Event:
        event = await session.get(Event, event_id)
        if event is None:
            raise NotFound("Event not found", details={"event_id": str(event_id)})
        return event

    async def list_events(self, upcoming_only: bool = False) -> List[Dict[str, Any]]:
        """Events in date and time order; upcoming_only drops days before today"""
        async with self.session_factory() as session:
            stmt = select(Event)
            if upcoming_only:
                stmt = stmt.where(Event.event_date >= self.clock().date())
            result = await session.execute(stmt.order_by(Event.event_date, Event.event_time))
            events = sorted(result.scalars().all(), key=lambda e: (e.event_date, e.event_time))
        return [serialize_event(e) for e in events]

    async def create_event(self, admin: User, fields: Mapping[str, Any]) -> Dict[str, Any]:
        _require_admin(admin)
        cleaned = clean_event_fields(fields)

        async with self.session_factory() as session:
            event = Event(event_id=uuid.uuid4(), user_id=admin.user_id, **cleaned)
            session.add(event)
            await session.commit()

        logger.info(f"Event {event.event_id} '{event.event_title}' created for {event.event_date}")
        await self.data_sync.record_change("event")
        return serialize_event(event)

    async def update_event(self, admin: User, event_id: uuid.UUID, changes: Mapping[str, Any]) -> Dict[str, Any]:
        _require_admin(admin)
        cleaned = clean_event_fields(changes, partial=True)

        async with self.session_factory() as session:
            event = await self._load_event(session, event_id)
            for field, value in cleaned.items():
                setattr(event, field, value)
            await session.commit()

        logger.info(f"Event {event_id} updated by {admin.user_id}")
        await self.data_sync.record_change("event")
        return serialize_event(event)

    async def delete_event(self, admin: User, event_id: uuid.UUID) -> None:
        _require_admin(admin)
        async with self.session_factory() as session:
            event = await self._load_event(session, event_id)
            await session.delete(event)
            await session.commit()

        logger.info(f"Event {event_id} deleted by {admin.user_id}")
        await self.data_sync.record_change("event")


_bulletin_service: Optional[BulletinService] = None


def get_bulletin_service() -> BulletinService:
    """Get or create global BulletinService instance"""
    global _bulletin_service
    if _bulletin_service is None:
        _bulletin_service = BulletinService()
    return _bulletin_service
