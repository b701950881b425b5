"""
Appointment Lifecycle Rules

Pure rules for the appointment state machine:
- Transition table: which actor may move a session between which statuses,
  and which side data each move requires
- Auto-expiry policies derived from wall-clock time (stale confirmed sessions,
  started sessions past their end time)

Nothing here touches the database; AppointmentService applies the results.
"""
import enum
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, FrozenSet, Optional, Tuple

from lavtutor import config
from lavtutor.errors import InvalidTransition, PermissionDenied, ValidationFailed
from lavtutor.models.appointment import AppointmentStatus, TERMINAL_STATUSES

AUTO_CANCEL_REASON = (
    "Automatically cancelled: the session was not started within "
    f"{config.AUTO_CANCEL_GRACE_DAYS} days of its scheduled date."
)


class Actor(str, enum.Enum):
    TUTOR = "tutor"
    TUTEE = "tutee"
    SYSTEM = "system"


class Requirement(str, enum.Enum):
    NONE = "none"
    LOCATION = "location"
    REASON = "reason"
    SURVEY = "survey"


@dataclass(frozen=True)
class Transition:
    """One edge of the lifecycle graph"""
    source: AppointmentStatus
    target: AppointmentStatus
    actors: FrozenSet[Actor]
    requires: Requirement = Requirement.NONE


S = AppointmentStatus

TRANSITIONS: Tuple[Transition, ...] = (
    Transition(S.PENDING, S.CONFIRMED, frozenset({Actor.TUTOR}), Requirement.LOCATION),
    Transition(S.PENDING, S.DECLINED, frozenset({Actor.TUTOR}), Requirement.REASON),
    Transition(S.CONFIRMED, S.STARTED, frozenset({Actor.TUTOR})),
    Transition(S.CONFIRMED, S.CANCELLED, frozenset({Actor.TUTOR, Actor.TUTEE}), Requirement.REASON),
    Transition(S.STARTED, S.AWAITING_FEEDBACK, frozenset({Actor.TUTOR, Actor.SYSTEM})),
    Transition(S.AWAITING_FEEDBACK, S.COMPLETED, frozenset({Actor.TUTEE}), Requirement.SURVEY),
)

# Auto-expiry cancels confirmed sessions without user input
_SYSTEM_CANCEL = Transition(S.CONFIRMED, S.CANCELLED, frozenset({Actor.SYSTEM}))

_EDGES: Dict[Tuple[AppointmentStatus, AppointmentStatus], Transition] = {
    (t.source, t.target): t for t in TRANSITIONS
}


def allowed_targets(current: AppointmentStatus, actor: Actor) -> Tuple[AppointmentStatus, ...]:
    """Statuses the actor may move a session to from its current status"""
    current = AppointmentStatus.parse(current)
    return tuple(
        t.target for t in TRANSITIONS
        if t.source == current and actor in t.actors
    )


def find_transition(current, target, actor: Actor) -> Transition:
    """
    Look up the edge current -> target for the given actor.

    Raises:
        InvalidTransition: edge is not on the graph (includes moves out of
            terminal statuses)
        PermissionDenied: edge exists but this actor may not take it
    """
    current = AppointmentStatus.parse(current)
    target = AppointmentStatus.parse(target)

    if actor == Actor.SYSTEM and (current, target) == (S.CONFIRMED, S.CANCELLED):
        return _SYSTEM_CANCEL

    if current in TERMINAL_STATUSES:
        raise InvalidTransition(
            f"Appointment is already {current.value}; no further changes are allowed",
            details={"from": current.value, "to": target.value},
        )

    transition = _EDGES.get((current, target))
    if transition is None:
        raise InvalidTransition(
            f"Cannot move an appointment from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )

    if actor not in transition.actors:
        raise PermissionDenied(
            f"A {actor.value} cannot move an appointment from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value, "actor": actor.value},
        )

    return transition


def validate_transition(
    current,
    target,
    actor: Actor,
    location: Optional[str] = None,
    reason: Optional[str] = None,
) -> Transition:
    """
    Check the edge and its required side data before any write.

    The survey requirement is checked by the evaluation rules, which own
    the rating fields.
    """
    transition = find_transition(current, target, actor)

    if transition.requires == Requirement.LOCATION and not (location or "").strip():
        raise ValidationFailed(
            "Please provide the session location before confirming.",
            details={"field": "location"},
        )
    if transition.requires == Requirement.REASON and not (reason or "").strip():
        raise ValidationFailed(
            "Please share a brief reason.",
            details={"field": "reason"},
        )

    return transition


def can_delete(status) -> bool:
    """Only a pending request may be removed outright"""
    return AppointmentStatus.parse(status) == S.PENDING


# Wall-clock helpers


def local_tz() -> timezone:
    return timezone(timedelta(hours=config.LOCAL_UTC_OFFSET_HOURS))


def now_local() -> datetime:
    """Current wall-clock time in the fixed local offset, as a naive datetime"""
    return datetime.now(local_tz()).replace(tzinfo=None)


def session_start(appointment) -> datetime:
    return datetime.combine(appointment.date, appointment.start_time)


def session_end(appointment) -> datetime:
    return datetime.combine(appointment.date, appointment.end_time)


def auto_cancel_cutoff(session_date: date) -> datetime:
    """End of the session day plus the grace period"""
    return datetime.combine(session_date, time.max) + timedelta(days=config.AUTO_CANCEL_GRACE_DAYS)


def is_stale_confirmed(appointment, now: datetime) -> bool:
    return (
        AppointmentStatus.parse(appointment.status) == S.CONFIRMED
        and now > auto_cancel_cutoff(appointment.date)
    )


def is_overrun(appointment, now: datetime) -> bool:
    return (
        AppointmentStatus.parse(appointment.status) == S.STARTED
        and now >= session_end(appointment)
    )


def effective_status(appointment, now: datetime) -> AppointmentStatus:
    """
    Status the appointment should have at `now`.

    Derived from the stored status and the session timestamps, so a reader
    gets the right answer whether or not an expiry job has run yet.
    """
    if is_stale_confirmed(appointment, now):
        return S.CANCELLED
    if is_overrun(appointment, now):
        return S.AWAITING_FEEDBACK
    return AppointmentStatus.parse(appointment.status)


def warning_time(appointment) -> datetime:
    """When the 'session ending soon' warning is due"""
    return session_end(appointment) - timedelta(minutes=config.AUTO_END_WARNING_MINUTES)


def as_aware(local_dt: datetime) -> datetime:
    """Attach the fixed local offset to a naive wall-clock datetime"""
    return local_dt.replace(tzinfo=local_tz())
