"""
Availability Rules

Validates requested session times against:
- the two fixed daily blocks (08:00-12:00, 13:00-17:00)
- the tutor's published weekly slots
- the booking lead time and weekday-only rule

Each failing rule raises ValidationFailed with its own message so the
client can show it next to the right control.
"""
from datetime import date, time, timedelta
from typing import Iterable, List, Optional, Tuple

from lavtutor import config
from lavtutor.errors import ValidationFailed

DAILY_BLOCKS: Tuple[Tuple[time, time], ...] = (
    (time(8, 0), time(12, 0)),
    (time(13, 0), time(17, 0)),
)

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

BLOCK_MESSAGE = (
    "Schedules can only be between 8:00 AM - 12:00 PM or 1:00 PM - 5:00 PM "
    "(no bookings during 12:00-1:00 PM)."
)


def day_name(value: date) -> str:
    return WEEKDAY_NAMES[value.weekday()]


def normalize_day(value: str) -> str:
    """'monday' / 'MON' -> 'Monday'"""
    text = (value or "").strip().lower()
    for name in WEEKDAY_NAMES:
        if name.lower() == text or name.lower()[:3] == text:
            return name
    raise ValidationFailed(f"Unknown day '{value}'.", details={"field": "day"})


def within_daily_block(start: time, end: time) -> bool:
    """True when [start, end] fits entirely inside one fixed block"""
    return any(block_start <= start and end <= block_end for block_start, block_end in DAILY_BLOCKS)


def validate_time_range(start: Optional[time], end: Optional[time]) -> None:
    if start is None or end is None:
        raise ValidationFailed("Please complete the date and time fields.", details={"field": "time"})
    if start >= end:
        raise ValidationFailed("End time must be later than start time.", details={"field": "end_time"})


def validate_schedule_slot(start: time, end: time) -> None:
    """A tutor's published slot must itself sit inside one daily block"""
    validate_time_range(start, end)
    if not within_daily_block(start, end):
        raise ValidationFailed(BLOCK_MESSAGE, details={"field": "time"})


def earliest_booking_date(today: date) -> date:
    return today + timedelta(days=config.BOOKING_LEAD_DAYS)


def validate_booking_date(requested: Optional[date], today: date) -> None:
    """
    Enforce the lead time (today and the next two days are blocked by
    default) and weekday-only sessions.
    """
    if requested is None:
        raise ValidationFailed("Please fill in all required fields", details={"field": "date"})

    earliest = earliest_booking_date(today)
    if requested < earliest:
        raise ValidationFailed(
            f"Selected date is too soon. Earliest available is {earliest.strftime('%B')} {earliest.day}, {earliest.year}.",
            details={"field": "date", "earliest": earliest.isoformat()},
        )
    if requested.weekday() >= 5:
        raise ValidationFailed(
            "Selected date falls on a weekend. Please choose a weekday.",
            details={"field": "date"},
        )


def validate_against_availability(
    requested: date,
    start: time,
    end: time,
    slots: Iterable,
) -> None:
    """
    Check a requested session against the tutor's weekly slots.

    Args:
        requested: Session date
        start: Session start time
        end: Session end time
        slots: Schedule rows (anything with day/start_time/end_time)

    Raises:
        ValidationFailed: with a distinct message for missing schedule data,
            wrong weekday, outside the daily blocks, or outside every slot
    """
    validate_time_range(start, end)

    slots = list(slots)
    if not slots:
        raise ValidationFailed(
            "This tutor has not published a schedule yet.",
            details={"rule": "no_schedule"},
        )

    weekday = day_name(requested)
    day_slots: List = [slot for slot in slots if normalize_day(slot.day) == weekday]
    if not day_slots:
        available_days = sorted({normalize_day(slot.day) for slot in slots}, key=WEEKDAY_NAMES.index)
        raise ValidationFailed(
            f"The tutor is not available on {weekday}. Available days: {', '.join(available_days)}.",
            details={"rule": "wrong_weekday", "available_days": available_days},
        )

    if not within_daily_block(start, end):
        raise ValidationFailed(BLOCK_MESSAGE, details={"rule": "outside_block"})

    if not any(slot.start_time <= start and end <= slot.end_time for slot in day_slots):
        windows = [
            f"{slot.start_time.strftime('%H:%M')}-{slot.end_time.strftime('%H:%M')}"
            for slot in sorted(day_slots, key=lambda s: s.start_time)
        ]
        raise ValidationFailed(
            f"The selected time is outside the tutor's available slots on {weekday}: {', '.join(windows)}.",
            details={"rule": "outside_tutor_slot", "slots": windows},
        )
