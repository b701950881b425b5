"""
Unit tests for role changes and tutor availability slots
"""

import pytest
import uuid
from datetime import time
from unittest.mock import Mock

from lavtutor.errors import NotFound, PermissionDenied, ValidationFailed
from lavtutor.models.schedule import Schedule
from lavtutor.models.user import Role
from lavtutor.services.events import RoleChanged
from lavtutor.services.schedule_service import ScheduleService
from lavtutor.services.user_service import UserService, parse_role


@pytest.fixture
def user_service(session_factory, bus):
    return UserService(session_factory=session_factory, events=bus)


@pytest.fixture
def schedule_service(session_factory, data_sync):
    return ScheduleService(session_factory=session_factory, data_sync=data_sync)


class TestRoles:

    def test_parse_role(self):
        assert parse_role(" Tutor ") == Role.TUTOR
        with pytest.raises(ValidationFailed):
            parse_role("parent")

    @pytest.mark.asyncio
    async def test_admin_promotes_tutee(self, user_service, bus, admin, tutee):
        handler = Mock()
        bus.subscribe(RoleChanged, handler)

        data = await user_service.change_role(admin, tutee.user_id, "tutor")

        assert data["role"] == "tutor"
        assert tutee.role == "tutor"
        handler.assert_called_once_with(RoleChanged(user_id=tutee.user_id, old_role="tutee", new_role="tutor"))

    @pytest.mark.asyncio
    async def test_same_role_publishes_nothing(self, user_service, bus, store, admin, tutor):
        handler = Mock()
        bus.subscribe(RoleChanged, handler)

        await user_service.change_role(admin, tutor.user_id, "TUTOR")

        handler.assert_not_called()
        assert store.commits == 0

    @pytest.mark.asyncio
    async def test_only_admins(self, user_service, tutor, tutee):
        with pytest.raises(PermissionDenied):
            await user_service.change_role(tutor, tutee.user_id, "admin")

    @pytest.mark.asyncio
    async def test_admin_cannot_demote_self(self, user_service, admin):
        with pytest.raises(ValidationFailed):
            await user_service.change_role(admin, admin.user_id, "tutee")

    @pytest.mark.asyncio
    async def test_unknown_user(self, user_service, admin):
        with pytest.raises(NotFound):
            await user_service.change_role(admin, uuid.uuid4(), "tutor")

    @pytest.mark.asyncio
    async def test_list_by_role(self, user_service, admin, tutor, tutee):
        tutors = await user_service.list_users("tutor")
        assert [u["name"] for u in tutors] == ["Ana Reyes"]
        assert len(await user_service.list_users()) == 3


class TestScheduleSlots:

    @pytest.mark.asyncio
    async def test_add_and_list_in_week_order(self, schedule_service, data_sync, tutor):
        await schedule_service.add_slot(tutor, "wed", time(8, 0), time(10, 0))
        await schedule_service.add_slot(tutor, "Monday", time(13, 0), time(15, 0))
        await schedule_service.add_slot(tutor, "monday", time(8, 0), time(9, 0))

        slots = await schedule_service.list_slots(tutor.user_id)

        assert [(s["day"], s["start_time"]) for s in slots] == [
            ("Monday", "08:00"), ("Monday", "13:00"), ("Wednesday", "08:00"),
        ]
        assert data_sync.table_versions["schedule"] == 3

    @pytest.mark.asyncio
    async def test_slot_outside_daily_blocks(self, schedule_service, tutor):
        with pytest.raises(ValidationFailed):
            await schedule_service.add_slot(tutor, "Monday", time(11, 0), time(13, 0))

    @pytest.mark.asyncio
    async def test_overlapping_slot(self, schedule_service, store, tutor, make_slot):
        make_slot(tutor, "Monday", time(8, 0), time(10, 0))
        with pytest.raises(ValidationFailed, match="overlaps"):
            await schedule_service.add_slot(tutor, "Monday", time(9, 0), time(11, 0))
        assert len(store.all(Schedule)) == 1

    @pytest.mark.asyncio
    async def test_adjacent_slot_allowed(self, schedule_service, tutor, make_slot):
        make_slot(tutor, "Monday", time(8, 0), time(10, 0))
        data = await schedule_service.add_slot(tutor, "Monday", time(10, 0), time(12, 0))
        assert data["start_time"] == "10:00"

    @pytest.mark.asyncio
    async def test_only_tutors_publish(self, schedule_service, tutee):
        with pytest.raises(PermissionDenied):
            await schedule_service.add_slot(tutee, "Monday", time(8, 0), time(9, 0))

    @pytest.mark.asyncio
    async def test_delete_own_slot_only(self, schedule_service, store, tutor, make_user, make_slot):
        slot = make_slot(tutor)
        other_tutor = make_user(Role.TUTOR)

        with pytest.raises(PermissionDenied):
            await schedule_service.delete_slot(other_tutor, slot.schedule_id)

        await schedule_service.delete_slot(tutor, slot.schedule_id)
        assert store.all(Schedule) == []

        with pytest.raises(NotFound):
            await schedule_service.delete_slot(tutor, slot.schedule_id)
