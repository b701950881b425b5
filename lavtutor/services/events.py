"""
Application Event Bus

Typed in-process events with explicitly registered subscribers. Handlers run
in subscription order; a failing handler is logged and does not stop the
others or the publisher.
"""
import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, DefaultDict, List, Optional, Type, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleChanged:
    """A user's role was changed by an administrator"""
    user_id: uuid.UUID
    old_role: Optional[str]
    new_role: str


@dataclass(frozen=True)
class AppointmentStatusChanged:
    """An appointment moved along the lifecycle graph"""
    appointment_id: uuid.UUID
    old_status: str
    new_status: str
    actor: str


Handler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBus:
    """Publish/subscribe keyed by event class"""

    def __init__(self):
        self._handlers: DefaultDict[Type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for an event type.

        Returns:
            Callable that removes the subscription
        """
        self._handlers[event_type].append(handler)

        def unsubscribe():
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

        return unsubscribe

    async def publish(self, event: Any) -> int:
        """
        Deliver an event to every handler of its type.

        Returns:
            Number of handlers that completed without error
        """
        delivered = 0
        for handler in list(self._handlers.get(type(event), [])):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(f"Event handler {handler!r} failed for {event!r}: {e}", exc_info=True)
        return delivered

    def clear(self):
        self._handlers.clear()


_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get or create global EventBus instance"""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def register_subscribers(bus: EventBus, data_sync) -> None:
    """Wire the application's event handlers; called once at startup"""

    async def on_role_changed(event: RoleChanged):
        logger.info(f"User {event.user_id} role changed: {event.old_role} -> {event.new_role}")
        await data_sync.record_change("users")

    def on_status_changed(event: AppointmentStatusChanged):
        logger.info(
            f"Appointment {event.appointment_id} status {event.old_status} -> "
            f"{event.new_status} ({event.actor})"
        )

    bus.subscribe(RoleChanged, on_role_changed)
    bus.subscribe(AppointmentStatusChanged, on_status_changed)
    logger.info("Event subscribers registered")
