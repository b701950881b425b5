"""
Appointment Service

Applies the lifecycle rules to stored appointments:
- booking, rescheduling and deleting pending requests
- tutor and tutee status transitions with their notifications
- auto-expiry on every load plus the periodic sweep
- per-session auto-end and warning timers for started sessions
- tutee resource sharing
"""
import logging
import time as clock_time
import uuid
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_, select

from lavtutor import config
from lavtutor.database import AsyncSessionLocal
from lavtutor.errors import InvalidTransition, NotFound, PermissionDenied, ValidationFailed
from lavtutor.models.appointment import Appointment, AppointmentStatus
from lavtutor.models.schedule import Schedule
from lavtutor.models.user import Profile, Role, User
from lavtutor.services.action_guard import get_action_guard
from lavtutor.services.availability import (
    validate_against_availability,
    validate_booking_date,
    validate_time_range,
)
from lavtutor.services.change_feed import get_data_sync
from lavtutor.services.events import AppointmentStatusChanged, get_event_bus
from lavtutor.services.lifecycle import (
    AUTO_CANCEL_REASON,
    Actor,
    Requirement,
    allowed_targets,
    can_delete,
    effective_status,
    find_transition,
    now_local,
    validate_transition,
)
from lavtutor.services.notifications import (
    assessment_requested_notice,
    cancelled_by_tutee_notice,
    cancelled_by_tutor_notice,
    confirmed_notice,
    declined_notice,
    ending_soon_notice,
    feedback_requested_notice,
    get_notification_service,
)
from lavtutor.services.scheduler import get_session_timers

logger = logging.getLogger(__name__)

SESSION_MODES = ("Online", "Face-to-Face")

RESOURCE_STATUSES = frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.STARTED})

S = AppointmentStatus


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationFailed(f"Invalid date '{value}'. Use YYYY-MM-DD.", details={"field": "date"})


def parse_time(value: Any, field: str = "time") -> Optional[time]:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        raise ValidationFailed(f"Invalid time '{value}'. Use HH:MM.", details={"field": field})


def normalize_mode(value: Any) -> str:
    text = (value or "").strip().lower().replace(" ", "-")
    for mode in SESSION_MODES:
        if mode.lower() == text:
            return mode
    raise ValidationFailed(
        f"Mode of session must be one of: {', '.join(SESSION_MODES)}.",
        details={"field": "mode_of_session"},
    )


def serialize_appointment(
    appointment: Appointment,
    profile: Optional[Profile] = None,
    names: Optional[Dict[uuid.UUID, str]] = None,
    viewer: Optional[Actor] = None,
) -> Dict[str, Any]:
    """
    Read view of an appointment.

    Meeting and file links fall back to the tutor's profile defaults.
    """
    names = names or {}
    status = AppointmentStatus.parse(appointment.status)
    data = {
        "appointment_id": str(appointment.appointment_id),
        "tutor_id": str(appointment.tutor_id),
        "tutor_name": names.get(appointment.tutor_id),
        "user_id": str(appointment.user_id),
        "tutee_name": names.get(appointment.user_id),
        "date": appointment.date.isoformat(),
        "start_time": appointment.start_time.strftime("%H:%M"),
        "end_time": appointment.end_time.strftime("%H:%M"),
        "subject": appointment.subject,
        "topic": appointment.topic,
        "mode_of_session": appointment.mode_of_session,
        "session_location": appointment.session_location,
        "number_of_tutees": appointment.number_of_tutees or 1,
        "status": status.value,
        "tutor_decline_reason": appointment.tutor_decline_reason,
        "tutee_decline_reason": appointment.tutee_decline_reason,
        "resource_link": appointment.resource_link,
        "resource_note": appointment.resource_note,
        "online_link": appointment.online_link or (profile.online_link if profile else None),
        "file_link": appointment.file_link or (profile.file_link if profile else None),
    }
    if viewer is not None:
        data["allowed_actions"] = [target.value for target in allowed_targets(status, viewer)]
        data["can_delete"] = can_delete(status)
    return data


class AppointmentService:
    """Lifecycle operations on stored appointments"""

    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        notifier=None,
        data_sync=None,
        timers=None,
        guard=None,
        events=None,
        clock=now_local,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or get_notification_service()
        self.data_sync = data_sync or get_data_sync()
        self.timers = timers or get_session_timers()
        self.guard = guard or get_action_guard()
        self.events = events or get_event_bus()
        self.clock = clock

    # Loading helpers

    async def _load(self, session, appointment_id: uuid.UUID) -> Appointment:
        appointment = await session.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound("Appointment not found", details={"appointment_id": str(appointment_id)})
        return appointment

    @staticmethod
    def actor_for(appointment: Appointment, user: User) -> Actor:
        """Which side of the appointment the user is on"""
        if user.user_id == appointment.tutor_id:
            return Actor.TUTOR
        if user.user_id == appointment.user_id:
            return Actor.TUTEE
        raise PermissionDenied(
            "You are not a participant in this appointment",
            details={"appointment_id": str(appointment.appointment_id)},
        )

    def _viewer(self, appointment: Appointment, user: User) -> Optional[Actor]:
        if user.role == Role.ADMIN.value and user.user_id not in (appointment.tutor_id, appointment.user_id):
            return None
        return self.actor_for(appointment, user)

    async def _tutor_slots(self, session, tutor_id: uuid.UUID) -> List[Schedule]:
        result = await session.execute(select(Schedule).where(Schedule.tutor_id == tutor_id))
        return list(result.scalars().all())

    async def _profiles(self, session, tutor_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Profile]:
        tutor_ids = list(set(tutor_ids))
        if not tutor_ids:
            return {}
        result = await session.execute(select(Profile).where(Profile.user_id.in_(tutor_ids)))
        return {profile.user_id: profile for profile in result.scalars().all()}

    async def _names(self, session, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, str]:
        user_ids = list(set(user_ids))
        if not user_ids:
            return {}
        result = await session.execute(select(User).where(User.user_id.in_(user_ids)))
        return {user.user_id: user.name for user in result.scalars().all()}

    async def _serialize_many(self, session, appointments: List[Appointment], user: User) -> List[Dict[str, Any]]:
        profiles = await self._profiles(session, (a.tutor_id for a in appointments))
        names = await self._names(
            session,
            [a.tutor_id for a in appointments] + [a.user_id for a in appointments],
        )
        return [
            serialize_appointment(a, profiles.get(a.tutor_id), names, self._viewer(a, user))
            for a in appointments
        ]

    # Auto-expiry

    def _apply_expiry(self, appointment: Appointment, now: datetime) -> Optional[AppointmentStatus]:
        """
        Move the appointment to its effective status if the clock says so.

        Returns:
            The new status, or None if nothing changed
        """
        current = AppointmentStatus.parse(appointment.status)
        target = effective_status(appointment, now)
        if target == current:
            return None

        find_transition(current, target, Actor.SYSTEM)
        appointment.status = target.value
        if target == S.CANCELLED:
            appointment.tutor_decline_reason = AUTO_CANCEL_REASON
        if current == S.STARTED:
            self.timers.clear(appointment.appointment_id)

        logger.info(
            f"Auto-expired appointment {appointment.appointment_id}: {current.value} -> {target.value}"
        )
        return target

    def _expire_all(self, appointments: Iterable[Appointment], now: datetime) -> Dict[str, List[Appointment]]:
        changed = {"cancelled": [], "ended": []}
        for appointment in appointments:
            new_status = self._apply_expiry(appointment, now)
            if new_status == S.CANCELLED:
                changed["cancelled"].append(appointment)
            elif new_status == S.AWAITING_FEEDBACK:
                changed["ended"].append(appointment)
        return changed

    async def _after_expiry(self, changed: Dict[str, List[Appointment]]):
        ended = changed["ended"]
        if ended:
            drafts = []
            for appointment in ended:
                drafts.extend(self._ended_prompts(appointment))
            await self.notifier.deliver(*drafts)
        if ended or changed["cancelled"]:
            await self.data_sync.record_change("appointment")

    async def expire_loaded(self, session, appointment: Appointment, now: Optional[datetime] = None):
        """
        Apply auto-expiry to an appointment loaded in `session`.

        A lapsed status is committed and its follow-ups are sent before the
        caller checks the next transition against it.
        """
        changed = self._expire_all([appointment], now or self.clock())
        if changed["cancelled"] or changed["ended"]:
            await session.commit()
            await self._after_expiry(changed)
        return changed

    @staticmethod
    def _ended_prompts(appointment: Appointment) -> list:
        return [assessment_requested_notice(appointment), feedback_requested_notice(appointment)]

    async def sweep_expired(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Persist auto-expiry for every confirmed or started appointment.

        Returns:
            Summary with counts and duration
        """
        start = clock_time.time()
        now = now or self.clock()

        async with self.session_factory() as session:
            result = await session.execute(
                select(Appointment).where(
                    Appointment.status.in_([S.CONFIRMED.value, S.STARTED.value])
                )
            )
            appointments = list(result.scalars().all())
            changed = self._expire_all(appointments, now)
            if changed["cancelled"] or changed["ended"]:
                await session.commit()

        await self._after_expiry(changed)

        return {
            "checked": len(appointments),
            "cancelled": len(changed["cancelled"]),
            "ended": len(changed["ended"]),
            "duration_ms": (clock_time.time() - start) * 1000,
        }

    # Reads

    async def list_for_user(self, user: User, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Appointments where the user is tutor or tutee (all for admins).

        Loading the list applies auto-expiry and re-arms the timers of every
        started session from the current wall clock.

        Raises:
            ValidationFailed: unknown status filter
        """
        wanted = None
        if status:
            try:
                wanted = AppointmentStatus.parse(status)
            except ValueError:
                raise ValidationFailed(
                    f"Unknown status '{status}'. Use one of: {', '.join(s.value for s in AppointmentStatus)}.",
                    details={"field": "status"},
                )

        now = self.clock()
        async with self.session_factory() as session:
            stmt = select(Appointment)
            if user.role != Role.ADMIN.value:
                stmt = stmt.where(or_(Appointment.tutor_id == user.user_id, Appointment.user_id == user.user_id))
            stmt = stmt.order_by(Appointment.date.desc(), Appointment.start_time.desc())
            result = await session.execute(stmt)
            appointments = list(result.scalars().all())

            changed = self._expire_all(appointments, now)
            if changed["cancelled"] or changed["ended"]:
                await session.commit()

            if wanted is not None:
                appointments = [a for a in appointments if AppointmentStatus.parse(a.status) == wanted]

            data = await self._serialize_many(session, appointments, user)

        for appointment in appointments:
            if AppointmentStatus.parse(appointment.status) == S.STARTED:
                self.timers.arm(appointment, now)

        await self._after_expiry(changed)
        return data

    async def get(self, user: User, appointment_id: uuid.UUID) -> Dict[str, Any]:
        now = self.clock()
        async with self.session_factory() as session:
            appointment = await self._load(session, appointment_id)
            viewer = self._viewer(appointment, user)
            changed = self._expire_all([appointment], now)
            if changed["cancelled"] or changed["ended"]:
                await session.commit()
            profiles = await self._profiles(session, [appointment.tutor_id])
            names = await self._names(session, [appointment.tutor_id, appointment.user_id])

        await self._after_expiry(changed)
        return serialize_appointment(appointment, profiles.get(appointment.tutor_id), names, viewer)

    # Booking

    async def book(self, tutee: User, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a pending appointment request.

        Raises:
            PermissionDenied: caller is not a tutee
            ValidationFailed: missing fields, bad date or time, or outside
                the tutor's availability
        """
        if tutee.role != Role.TUTEE.value:
            raise PermissionDenied("Only tutees can book appointments")

        required = ("tutor_id", "subject", "mode_of_session", "date", "start_time", "end_time")
        payload = {
            key: value.strip() if isinstance(value, str) else value
            for key, value in payload.items()
        }
        missing = [key for key in required if not payload.get(key)]
        if missing:
            raise ValidationFailed("Please fill in all required fields", details={"missing": missing})

        session_date = parse_date(payload["date"])
        start = parse_time(payload["start_time"], "start_time")
        end = parse_time(payload["end_time"], "end_time")
        mode = normalize_mode(payload["mode_of_session"])
        number_of_tutees = int(payload.get("number_of_tutees") or 1)
        if number_of_tutees < 1:
            raise ValidationFailed("Number of tutees must be at least 1.", details={"field": "number_of_tutees"})

        validate_booking_date(session_date, self.clock().date())
        validate_time_range(start, end)

        tutor_id = payload["tutor_id"]
        if not isinstance(tutor_id, uuid.UUID):
            try:
                tutor_id = uuid.UUID(str(tutor_id))
            except ValueError:
                raise ValidationFailed("Invalid tutor id.", details={"field": "tutor_id"})

        async with self.session_factory() as session:
            tutor = await session.get(User, tutor_id)
            if tutor is None or tutor.role != Role.TUTOR.value:
                raise NotFound("Tutor not found", details={"tutor_id": str(tutor_id)})

            slots = await self._tutor_slots(session, tutor_id)
            validate_against_availability(session_date, start, end, slots)

            appointment = Appointment(
                appointment_id=uuid.uuid4(),
                tutor_id=tutor_id,
                user_id=tutee.user_id,
                date=session_date,
                start_time=start,
                end_time=end,
                subject=payload["subject"].strip(),
                topic=(payload.get("topic") or "").strip() or None,
                mode_of_session=mode,
                number_of_tutees=number_of_tutees,
                status=S.PENDING.value,
            )
            session.add(appointment)
            await session.commit()

            profiles = await self._profiles(session, [tutor_id])
            names = {tutor.user_id: tutor.name, tutee.user_id: tutee.name}

        logger.info(f"Appointment {appointment.appointment_id} booked with tutor {tutor_id}")
        await self.data_sync.record_change("appointment")
        return serialize_appointment(appointment, profiles.get(tutor_id), names, Actor.TUTEE)

    async def reschedule(self, user: User, appointment_id: uuid.UUID, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Change date, time or mode of a pending request (tutee only).

        The new slot is checked against the tutor's published availability.
        """
        async with self.guard.hold(f"appointment:{appointment_id}"):
            async with self.session_factory() as session:
                appointment = await self._load(session, appointment_id)
                if self.actor_for(appointment, user) != Actor.TUTEE:
                    raise PermissionDenied("Only the tutee can reschedule an appointment request")
                if AppointmentStatus.parse(appointment.status) != S.PENDING:
                    raise InvalidTransition(
                        "Only pending appointments can be rescheduled",
                        details={"status": appointment.status},
                    )

                session_date = parse_date(changes.get("date", appointment.date))
                start = parse_time(changes.get("start_time", appointment.start_time), "start_time")
                end = parse_time(changes.get("end_time", appointment.end_time), "end_time")
                if session_date is None:
                    raise ValidationFailed("Please complete the date and time fields.", details={"field": "date"})
                validate_time_range(start, end)
                mode = appointment.mode_of_session
                if changes.get("mode_of_session"):
                    mode = normalize_mode(changes["mode_of_session"])

                slots = await self._tutor_slots(session, appointment.tutor_id)
                validate_against_availability(session_date, start, end, slots)

                appointment.date = session_date
                appointment.start_time = start
                appointment.end_time = end
                appointment.mode_of_session = mode
                await session.commit()

                profiles = await self._profiles(session, [appointment.tutor_id])
                names = await self._names(session, [appointment.tutor_id, appointment.user_id])

        logger.info(f"Appointment {appointment_id} rescheduled to {session_date} {start}-{end}")
        await self.data_sync.record_change("appointment")
        return serialize_appointment(appointment, profiles.get(appointment.tutor_id), names, Actor.TUTEE)

    async def delete(self, user: User, appointment_id: uuid.UUID) -> None:
        """Remove a pending request (either participant); no notification"""
        async with self.guard.hold(f"appointment:{appointment_id}"):
            async with self.session_factory() as session:
                appointment = await self._load(session, appointment_id)
                self.actor_for(appointment, user)
                if not can_delete(appointment.status):
                    raise InvalidTransition(
                        "Only pending appointments can be deleted",
                        details={"status": AppointmentStatus.parse(appointment.status).value},
                    )
                await session.delete(appointment)
                await session.commit()

        logger.info(f"Appointment {appointment_id} deleted by {user.user_id}")
        await self.data_sync.record_change("appointment")

    # Transitions

    async def transition(
        self,
        user: User,
        appointment_id: uuid.UUID,
        target,
        location: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Move an appointment along the lifecycle graph.

        Auto-expiry is applied first, so acting on a session that has
        already lapsed is rejected against its real status. Every check runs
        before the write; notifications are sent after the commit and their
        failure does not undo the change.
        """
        target = AppointmentStatus.parse(target)
        now = self.clock()

        async with self.guard.hold(f"appointment:{appointment_id}"):
            async with self.session_factory() as session:
                appointment = await self._load(session, appointment_id)
                actor = self.actor_for(appointment, user)
                await self.expire_loaded(session, appointment, now)

                current = AppointmentStatus.parse(appointment.status)
                transition = validate_transition(current, target, actor, location=location, reason=reason)
                if transition.requires == Requirement.SURVEY:
                    raise ValidationFailed(
                        "Please answer all evaluation questions before submitting.",
                        details={"field": "survey"},
                    )

                if target == S.CONFIRMED:
                    appointment.session_location = location.strip()
                elif target == S.DECLINED:
                    appointment.tutor_decline_reason = reason.strip()
                elif target == S.CANCELLED and actor == Actor.TUTOR:
                    appointment.tutor_decline_reason = reason.strip()
                elif target == S.CANCELLED and actor == Actor.TUTEE:
                    appointment.tutee_decline_reason = reason.strip()

                appointment.status = target.value
                await session.commit()

                names = await self._names(session, [appointment.tutor_id, appointment.user_id])
                profiles = await self._profiles(session, [appointment.tutor_id])

        logger.info(f"Appointment {appointment_id}: {current.value} -> {target.value} by {actor.value}")

        if target == S.STARTED:
            if not self.timers.arm(appointment, now):
                logger.info(f"Appointment {appointment_id} started after its end time; the next sweep ends it")
        elif current == S.STARTED:
            self.timers.clear(appointment.appointment_id)

        drafts = self._transition_notices(appointment, target, actor, names)
        delivered = await self.notifier.deliver(*drafts) if drafts else 0

        await self.events.publish(AppointmentStatusChanged(
            appointment_id=appointment.appointment_id,
            old_status=current.value,
            new_status=target.value,
            actor=actor.value,
        ))
        tables = ("appointment", "notification") if delivered else ("appointment",)
        await self.data_sync.record_change(*tables)

        return serialize_appointment(appointment, profiles.get(appointment.tutor_id), names, actor)

    def _transition_notices(self, appointment, target, actor, names) -> list:
        if target == S.CONFIRMED:
            return [confirmed_notice(appointment, appointment.session_location)]
        if target == S.DECLINED:
            return [declined_notice(appointment, appointment.tutor_decline_reason)]
        if target == S.CANCELLED and actor == Actor.TUTOR:
            return [cancelled_by_tutor_notice(appointment, appointment.tutor_decline_reason)]
        if target == S.CANCELLED and actor == Actor.TUTEE:
            tutee_name = names.get(appointment.user_id) or "Your tutee"
            return [cancelled_by_tutee_notice(appointment, tutee_name, appointment.tutee_decline_reason)]
        if target == S.AWAITING_FEEDBACK:
            return self._ended_prompts(appointment)
        return []

    async def confirm(self, user: User, appointment_id: uuid.UUID, location: Optional[str]) -> Dict[str, Any]:
        return await self.transition(user, appointment_id, S.CONFIRMED, location=location)

    async def decline(self, user: User, appointment_id: uuid.UUID, reason: Optional[str]) -> Dict[str, Any]:
        return await self.transition(user, appointment_id, S.DECLINED, reason=reason)

    async def start(self, user: User, appointment_id: uuid.UUID) -> Dict[str, Any]:
        return await self.transition(user, appointment_id, S.STARTED)

    async def cancel(self, user: User, appointment_id: uuid.UUID, reason: Optional[str]) -> Dict[str, Any]:
        return await self.transition(user, appointment_id, S.CANCELLED, reason=reason)

    async def end(self, user: User, appointment_id: uuid.UUID) -> Dict[str, Any]:
        return await self.transition(user, appointment_id, S.AWAITING_FEEDBACK)

    # Timer callbacks

    async def auto_end(self, appointment_id: uuid.UUID) -> bool:
        """
        End a started session when its timer fires.

        Returns:
            False if the session is no longer started (ended by the tutor,
            or already handled by a sweep)
        """
        async with self.session_factory() as session:
            appointment = await session.get(Appointment, appointment_id)
            if appointment is None or AppointmentStatus.parse(appointment.status) != S.STARTED:
                self.timers.clear(appointment_id)
                return False
            find_transition(S.STARTED, S.AWAITING_FEEDBACK, Actor.SYSTEM)
            appointment.status = S.AWAITING_FEEDBACK.value
            await session.commit()

        self.timers.clear(appointment_id)
        logger.info(f"Appointment {appointment_id} ended automatically at its scheduled end")

        await self.notifier.deliver(*self._ended_prompts(appointment))
        await self.events.publish(AppointmentStatusChanged(
            appointment_id=appointment_id,
            old_status=S.STARTED.value,
            new_status=S.AWAITING_FEEDBACK.value,
            actor=Actor.SYSTEM.value,
        ))
        await self.data_sync.record_change("appointment", "notification")
        return True

    async def warn_ending(self, appointment_id: uuid.UUID) -> bool:
        async with self.session_factory() as session:
            appointment = await session.get(Appointment, appointment_id)
        if appointment is None or AppointmentStatus.parse(appointment.status) != S.STARTED:
            return False
        delivered = await self.notifier.deliver(
            ending_soon_notice(appointment, config.AUTO_END_WARNING_MINUTES)
        )
        if delivered:
            await self.data_sync.record_change("notification")
        return True

    # Resources

    async def share_resources(
        self,
        user: User,
        appointment_id: uuid.UUID,
        resource_link: Optional[str],
        resource_note: Optional[str],
    ) -> Dict[str, Any]:
        """Attach a link and note to a confirmed or started session (tutee only)"""
        resource_link = (resource_link or "").strip() or None
        resource_note = (resource_note or "").strip() or None
        if resource_link is None and resource_note is None:
            raise ValidationFailed("Please add a resource link or a note.", details={"field": "resource_link"})

        now = self.clock()
        async with self.guard.hold(f"resources:{appointment_id}"):
            async with self.session_factory() as session:
                appointment = await self._load(session, appointment_id)
                if self.actor_for(appointment, user) != Actor.TUTEE:
                    raise PermissionDenied("Only the tutee can share resources for this appointment")
                await self.expire_loaded(session, appointment, now)

                if AppointmentStatus.parse(appointment.status) not in RESOURCE_STATUSES:
                    raise InvalidTransition(
                        "Resources can only be shared for confirmed or started appointments",
                        details={"status": AppointmentStatus.parse(appointment.status).value},
                    )

                appointment.resource_link = resource_link
                appointment.resource_note = resource_note
                await session.commit()

                names = await self._names(session, [appointment.tutor_id, appointment.user_id])
                profiles = await self._profiles(session, [appointment.tutor_id])

        logger.info(f"Resources shared for appointment {appointment_id}")
        await self.data_sync.record_change("appointment")
        return serialize_appointment(appointment, profiles.get(appointment.tutor_id), names, Actor.TUTEE)


_appointment_service: Optional[AppointmentService] = None


def get_appointment_service() -> AppointmentService:
    """Get or create global AppointmentService instance"""
    global _appointment_service
    if _appointment_service is None:
        _appointment_service = AppointmentService()
    return _appointment_service
