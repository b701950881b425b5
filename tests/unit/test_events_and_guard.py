"""
Unit tests for the event bus and the in-flight action guard
"""

import asyncio
import pytest
import uuid
from unittest.mock import AsyncMock, Mock

from lavtutor.errors import ActionInProgress
from lavtutor.services.action_guard import ActionGuard
from lavtutor.services.events import AppointmentStatusChanged, EventBus, RoleChanged, register_subscribers


class TestEventBus:

    @pytest.mark.asyncio
    async def test_handlers_receive_typed_events(self):
        bus = EventBus()
        sync_handler = Mock()
        async_handler = AsyncMock()
        bus.subscribe(RoleChanged, sync_handler)
        bus.subscribe(RoleChanged, async_handler)

        event = RoleChanged(user_id=uuid.uuid4(), old_role="tutee", new_role="tutor")
        assert await bus.publish(event) == 2

        sync_handler.assert_called_once_with(event)
        async_handler.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_other_event_types_not_delivered(self):
        bus = EventBus()
        handler = Mock()
        bus.subscribe(RoleChanged, handler)

        await bus.publish(AppointmentStatusChanged(uuid.uuid4(), "pending", "confirmed", "tutor"))

        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        later = Mock()
        bus.subscribe(RoleChanged, Mock(side_effect=RuntimeError("boom")))
        bus.subscribe(RoleChanged, later)

        delivered = await bus.publish(RoleChanged(uuid.uuid4(), "tutee", "admin"))

        assert delivered == 1
        later.assert_called_once()

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        handler = Mock()
        unsubscribe = bus.subscribe(RoleChanged, handler)
        unsubscribe()

        await bus.publish(RoleChanged(uuid.uuid4(), "tutee", "tutor"))

        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_role_change_subscriber_records_users_change(self, data_sync):
        bus = EventBus()
        register_subscribers(bus, data_sync)

        await bus.publish(RoleChanged(uuid.uuid4(), "tutee", "tutor"))

        assert data_sync.table_versions["users"] == 1


class TestActionGuard:

    @pytest.mark.asyncio
    async def test_second_submit_rejected_while_first_in_flight(self):
        guard = ActionGuard()
        release = asyncio.Event()

        async def first():
            async with guard.hold("appointment:1"):
                await release.wait()

        task = asyncio.create_task(first())
        await asyncio.sleep(0)
        assert guard.is_busy("appointment:1")

        with pytest.raises(ActionInProgress):
            async with guard.hold("appointment:1"):
                pass

        release.set()
        await task
        assert not guard.is_busy("appointment:1")

    @pytest.mark.asyncio
    async def test_different_areas_do_not_block(self):
        guard = ActionGuard()
        async with guard.hold("appointment:1"):
            async with guard.hold("appointment:2"):
                assert guard.is_busy("appointment:2")

    @pytest.mark.asyncio
    async def test_released_after_error(self):
        guard = ActionGuard()
        with pytest.raises(ValueError):
            async with guard.hold("resources:1"):
                raise ValueError("failed")
        assert not guard.is_busy("resources:1")
