"""Tutor weekly availability: list, publish and remove slots"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from lavtutor.database import AsyncSessionLocal
from lavtutor.errors import NotFound, PermissionDenied, ValidationFailed
from lavtutor.models.schedule import Schedule
from lavtutor.models.user import Role, User
from lavtutor.services.availability import WEEKDAY_NAMES, normalize_day, validate_schedule_slot
from lavtutor.services.change_feed import get_data_sync

logger = logging.getLogger(__name__)


def serialize_slot(slot: Schedule) -> Dict[str, Any]:
    return {
        "schedule_id": str(slot.schedule_id),
        "tutor_id": str(slot.tutor_id),
        "day": slot.day,
        "start_time": slot.start_time.strftime("%H:%M"),
        "end_time": slot.end_time.strftime("%H:%M"),
    }


def _slot_order(slot: Schedule):
    return (WEEKDAY_NAMES.index(normalize_day(slot.day)), slot.start_time)


class ScheduleService:

    def __init__(self, session_factory=AsyncSessionLocal, data_sync=None):
        self.session_factory = session_factory
        self.data_sync = data_sync or get_data_sync()

    async def list_slots(self, tutor_id: uuid.UUID) -> List[Dict[str, Any]]:
        async with self.session_factory() as session:
            result = await session.execute(select(Schedule).where(Schedule.tutor_id == tutor_id))
            slots = sorted(result.scalars().all(), key=_slot_order)
        return [serialize_slot(slot) for slot in slots]

    async def add_slot(self, tutor: User, day: str, start_time, end_time) -> Dict[str, Any]:
        """
        Publish a weekly slot. It must fit one daily block and may not
        overlap the tutor's other slots on the same day.
        """
        if tutor.role != Role.TUTOR.value:
            raise PermissionDenied("Only tutors can publish availability")
        day = normalize_day(day)
        validate_schedule_slot(start_time, end_time)

        async with self.session_factory() as session:
            result = await session.execute(select(Schedule).where(Schedule.tutor_id == tutor.user_id))
            for existing in result.scalars().all():
                if normalize_day(existing.day) != day:
                    continue
                if start_time < existing.end_time and existing.start_time < end_time:
                    raise ValidationFailed(
                        f"This slot overlaps your {day} slot "
                        f"{existing.start_time.strftime('%H:%M')}-{existing.end_time.strftime('%H:%M')}.",
                        details={"field": "time", "schedule_id": str(existing.schedule_id)},
                    )

            slot = Schedule(
                schedule_id=uuid.uuid4(),
                tutor_id=tutor.user_id,
                day=day,
                start_time=start_time,
                end_time=end_time,
            )
            session.add(slot)
            await session.commit()

        logger.info(f"Tutor {tutor.user_id} published slot {day} {start_time}-{end_time}")
        await self.data_sync.record_change("schedule")
        return serialize_slot(slot)

    async def delete_slot(self, tutor: User, schedule_id: uuid.UUID) -> None:
        async with self.session_factory() as session:
            slot = await session.get(Schedule, schedule_id)
            if slot is None:
                raise NotFound("Schedule slot not found", details={"schedule_id": str(schedule_id)})
            if slot.tutor_id != tutor.user_id:
                raise PermissionDenied("You can only remove your own schedule slots")
            await session.delete(slot)
            await session.commit()

        logger.info(f"Tutor {tutor.user_id} removed slot {schedule_id}")
        await self.data_sync.record_change("schedule")


_schedule_service: Optional[ScheduleService] = None


def get_schedule_service() -> ScheduleService:
    """Get or create global ScheduleService instance"""
    global _schedule_service
    if _schedule_service is None:
        _schedule_service = ScheduleService()
    return _schedule_service
