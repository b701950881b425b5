"""
Unit tests for ProfileService and BulletinService

Tests tutor profile edits and their effect on appointment links, and the
announcement and event records administrators manage.
"""

import pytest
import uuid
from datetime import date, time

from conftest import notifications_for
from lavtutor.errors import NotFound, PermissionDenied, ValidationFailed
from lavtutor.models.announcement import Announcement, Event
from lavtutor.models.user import Profile, Role
from lavtutor.services.profile_service import clean_profile_fields


class TestProfileFields:

    def test_blank_text_clears_field(self):
        assert clean_profile_fields({"subject": "  ", "college": " CCS "}) == {"subject": None, "college": "CCS"}

    def test_links_need_a_scheme(self):
        with pytest.raises(ValidationFailed) as exc_info:
            clean_profile_fields({"online_link": "meet.example/ana"})
        assert exc_info.value.details == {"field": "online_link"}

    @pytest.mark.parametrize("value", ["zero", 0, 9])
    def test_year_level_range(self, value):
        with pytest.raises(ValidationFailed):
            clean_profile_fields({"year_level": value})

    def test_unknown_keys_ignored(self):
        assert clean_profile_fields({"role": "admin", "year_level": "3"}) == {"year_level": 3}


class TestProfileService:

    @pytest.mark.asyncio
    async def test_empty_profile(self, profile_service, tutor):
        data = await profile_service.get_profile(tutor)
        assert data["profile_id"] is None
        assert data["name"] == "Ana Reyes"
        assert data["online_link"] is None

    @pytest.mark.asyncio
    async def test_first_save_creates_then_updates(self, profile_service, store, data_sync, tutor):
        created = await profile_service.update_profile(tutor, {"subject": "Calculus", "online_link": "https://meet.example/ana"})
        updated = await profile_service.update_profile(tutor, {"file_link": "https://drive.example/calc"})

        assert created["profile_id"] == updated["profile_id"]
        assert updated["subject"] == "Calculus"
        assert updated["file_link"] == "https://drive.example/calc"
        assert len(store.all(Profile)) == 1
        assert data_sync.table_versions["profile"] == 2

    @pytest.mark.asyncio
    async def test_only_tutors(self, profile_service, tutee):
        with pytest.raises(PermissionDenied):
            await profile_service.update_profile(tutee, {"subject": "Calculus"})

    @pytest.mark.asyncio
    async def test_bad_link_writes_nothing(self, profile_service, store, tutor):
        with pytest.raises(ValidationFailed):
            await profile_service.update_profile(tutor, {"subject": "Calculus", "file_link": "ftp://files"})
        assert store.all(Profile) == []
        assert store.commits == 0

    @pytest.mark.asyncio
    async def test_appointments_inherit_new_links(self, profile_service, appointment_service, tutor, tutee, make_appointment):
        make_appointment(tutor, tutee, status="confirmed")
        make_appointment(tutor, tutee, status="pending", online_link="https://meet.example/special")

        await profile_service.update_profile(tutor, {"online_link": "https://meet.example/ana"})
        listed = await appointment_service.list_for_user(tutee)

        assert sorted(a["online_link"] for a in listed) == [
            "https://meet.example/ana",
            "https://meet.example/special",
        ]


class TestAnnouncements:

    @pytest.mark.asyncio
    async def test_create_edit_delete(self, bulletin, store, data_sync, admin):
        created = await bulletin.create_announcement(admin, "  LAV opens at 9 on Monday ")
        assert created["content"] == "LAV opens at 9 on Monday"

        announcement_id = uuid.UUID(created["announcement_id"])
        edited = await bulletin.update_announcement(admin, announcement_id, "LAV opens at 10 on Monday")
        assert edited["content"] == "LAV opens at 10 on Monday"
        assert (await bulletin.latest_announcement())["content"] == "LAV opens at 10 on Monday"

        await bulletin.delete_announcement(admin, announcement_id)
        assert store.all(Announcement) == []
        assert await bulletin.latest_announcement() is None
        assert data_sync.table_versions["announcement"] == 3

    @pytest.mark.asyncio
    async def test_publish_can_notify_a_role(self, bulletin, store, admin, tutor, tutee):
        await bulletin.create_announcement(admin, "Midterm review week", notify=True, role="tutee")

        assert [n.type for n in notifications_for(store, tutee)] == ["announcement"]
        assert notifications_for(store, tutor) == []

    @pytest.mark.asyncio
    async def test_without_notify_no_notifications(self, bulletin, store, admin, tutee):
        await bulletin.create_announcement(admin, "Quiet hours")
        assert notifications_for(store, tutee) == []

    @pytest.mark.asyncio
    async def test_admin_only(self, bulletin, tutor):
        with pytest.raises(PermissionDenied):
            await bulletin.create_announcement(tutor, "Hello")

    @pytest.mark.asyncio
    async def test_blank_text(self, bulletin, store, admin):
        with pytest.raises(ValidationFailed):
            await bulletin.create_announcement(admin, "   ")
        assert store.commits == 0

    @pytest.mark.asyncio
    async def test_unknown_announcement(self, bulletin, admin):
        with pytest.raises(NotFound):
            await bulletin.update_announcement(admin, uuid.uuid4(), "text")


def orientation(**overrides):
    fields = {
        "event_title": "Tutor Orientation",
        "event_description": "Start of term briefing",
        "event_date": date(2026, 3, 12),
        "event_time": time(14, 0),
        "event_location": "LAV Room 1",
    }
    fields.update(overrides)
    return fields


class TestEvents:

    @pytest.mark.asyncio
    async def test_create_and_list_in_date_order(self, bulletin, admin):
        await bulletin.create_event(admin, orientation(event_title="Study Skills", event_date=date(2026, 3, 20)))
        await bulletin.create_event(admin, orientation())
        await bulletin.create_event(admin, orientation(event_title="Welcome Fair", event_date=date(2026, 2, 10)))

        titles = [e["title"] for e in await bulletin.list_events()]
        upcoming = [e["title"] for e in await bulletin.list_events(upcoming_only=True)]

        assert titles == ["Welcome Fair", "Tutor Orientation", "Study Skills"]
        assert upcoming == ["Tutor Orientation", "Study Skills"]

    @pytest.mark.asyncio
    async def test_required_fields(self, bulletin, store, admin):
        with pytest.raises(ValidationFailed) as exc_info:
            await bulletin.create_event(admin, orientation(event_location="  ", event_time=None))
        assert exc_info.value.details["missing"] == ["event_time", "event_location"]
        assert store.all(Event) == []

    @pytest.mark.asyncio
    async def test_partial_update(self, bulletin, admin):
        created = await bulletin.create_event(admin, orientation())

        updated = await bulletin.update_event(admin, uuid.UUID(created["event_id"]), {"event_time": time(15, 30)})

        assert updated["time"] == "15:30"
        assert updated["title"] == "Tutor Orientation"

    @pytest.mark.asyncio
    async def test_update_cannot_blank_title(self, bulletin, admin):
        created = await bulletin.create_event(admin, orientation())
        with pytest.raises(ValidationFailed):
            await bulletin.update_event(admin, uuid.UUID(created["event_id"]), {"event_title": ""})

    @pytest.mark.asyncio
    async def test_delete(self, bulletin, store, admin):
        created = await bulletin.create_event(admin, orientation())
        await bulletin.delete_event(admin, uuid.UUID(created["event_id"]))
        assert store.all(Event) == []

    @pytest.mark.asyncio
    async def test_tutee_cannot_manage(self, bulletin, make_user):
        with pytest.raises(PermissionDenied):
            await bulletin.create_event(make_user(Role.TUTEE), orientation())
