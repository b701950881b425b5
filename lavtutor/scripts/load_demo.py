"""
Demo Data Loader

Seeds users, tutor profiles, weekly schedules, appointments in every status
evaluations, announcements and events for demos.
Usage: python -m lavtutor.scripts.load_demo --scenario semester
"""
import asyncio
import argparse
import random
import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List

from faker import Faker
from sqlalchemy import text

from lavtutor.database import AsyncSessionLocal
from lavtutor.models.announcement import Announcement, Event
from lavtutor.models.appointment import Appointment, AppointmentStatus
from lavtutor.models.evaluation import Evaluation, LAV_RATING_FIELDS, TUTOR_RATING_FIELDS
from lavtutor.models.schedule import Schedule
from lavtutor.models.user import Profile, Role, User
from lavtutor.services.lifecycle import AUTO_CANCEL_REASON, now_local

SUBJECTS = {
    "Mathematics": ["Algebra", "Trigonometry", "Calculus", "Statistics"],
    "Physics": ["Kinematics", "Forces", "Energy"],
    "Chemistry": ["Stoichiometry", "Gas Laws", "Organic Chemistry"],
    "English": ["Essay Writing", "Grammar", "Reading Comprehension"],
}

SLOT_PATTERNS = [
    ("Monday", time(8, 0), time(12, 0)),
    ("Tuesday", time(13, 0), time(17, 0)),
    ("Wednesday", time(8, 0), time(10, 0)),
    ("Thursday", time(13, 0), time(15, 0)),
    ("Friday", time(9, 0), time(12, 0)),
]

# Clear order respects foreign keys
TABLES = ["notification", "evaluation", "appointment", "schedule", "profile", "announcement", "event", "users"]


def _weekday_on_or_before(day: date) -> date:
    while day.weekday() >= 5:
        day -= timedelta(days=1)
    return day


def generate_demo_data(seed: int = 42, tutors: int = 4, tutees: int = 12, today: date = None) -> Dict[str, List[Any]]:
    """
    Build demo rows without touching the database.

    Past sessions are finished, cancelled or declined; upcoming ones are
    pending or confirmed.
    """
    fake = Faker()
    Faker.seed(seed)
    rng = random.Random(seed)
    today = today or now_local().date()

    admin = User(
        user_id=uuid.uuid4(), name="LAV Administrator", email="admin@lav.example",
        role=Role.ADMIN.value, access_token="demo-admin-token",
    )
    users = [admin]
    profiles, schedules, appointments, evaluations = [], [], [], []

    tutor_rows = []
    for i in range(tutors):
        subject = list(SUBJECTS)[i % len(SUBJECTS)]
        tutor = User(
            user_id=uuid.uuid4(), name=fake.name(), email=f"tutor{i + 1}@lav.example",
            role=Role.TUTOR.value, access_token=f"demo-tutor-{i + 1}",
        )
        tutor_rows.append((tutor, subject))
        users.append(tutor)
        profiles.append(Profile(
            profile_id=uuid.uuid4(), user_id=tutor.user_id, subject=subject,
            specialization=rng.choice(SUBJECTS[subject]), college=fake.company(),
            program=f"BS {subject}", year_level=rng.randint(2, 4),
            online_link=f"https://meet.example.com/{fake.lexify('???-????-???')}",
        ))
        for day, start, end in SLOT_PATTERNS:
            schedules.append(Schedule(
                schedule_id=uuid.uuid4(), tutor_id=tutor.user_id, day=day, start_time=start, end_time=end,
            ))

    tutee_rows = []
    for i in range(tutees):
        tutee = User(
            user_id=uuid.uuid4(), name=fake.name(), email=f"tutee{i + 1}@lav.example",
            role=Role.TUTEE.value, access_token=f"demo-tutee-{i + 1}",
        )
        tutee_rows.append(tutee)
        users.append(tutee)

    def make_appointment(tutor, subject, tutee, session_date, start_hour, status):
        appointment = Appointment(
            appointment_id=uuid.uuid4(), tutor_id=tutor.user_id, user_id=tutee.user_id,
            date=session_date, start_time=time(start_hour, 0), end_time=time(start_hour + 1, 0),
            subject=subject, topic=rng.choice(SUBJECTS[subject]),
            mode_of_session=rng.choice(["Online", "Face-to-Face"]),
            number_of_tutees=rng.choice([1, 1, 1, 2, 3]), status=status.value,
        )
        if status in (AppointmentStatus.CONFIRMED, AppointmentStatus.STARTED,
                      AppointmentStatus.AWAITING_FEEDBACK, AppointmentStatus.COMPLETED):
            appointment.session_location = rng.choice(["LAV Room 1", "LAV Room 2", "Online"])
        if status == AppointmentStatus.DECLINED:
            appointment.tutor_decline_reason = "Schedule conflict with a department meeting."
        if status == AppointmentStatus.CANCELLED:
            appointment.tutee_decline_reason = "Class was rescheduled."
        appointments.append(appointment)
        return appointment

    for tutor, subject in tutor_rows:
        # Finished history over the last twelve weeks
        for week in range(1, 13):
            session_date = _weekday_on_or_before(today - timedelta(weeks=week))
            tutee = rng.choice(tutee_rows)
            status = rng.choices(
                [AppointmentStatus.COMPLETED, AppointmentStatus.AWAITING_FEEDBACK,
                 AppointmentStatus.CANCELLED, AppointmentStatus.DECLINED],
                weights=[70, 10, 10, 10],
            )[0]
            appointment = make_appointment(tutor, subject, tutee, session_date, rng.choice([8, 9, 10, 13, 14]), status)
            if status in (AppointmentStatus.COMPLETED, AppointmentStatus.AWAITING_FEEDBACK):
                pre = rng.randint(2, 7)
                evaluation = Evaluation(
                    evaluation_id=uuid.uuid4(), appointment_id=appointment.appointment_id,
                    tutor_id=tutor.user_id, user_id=tutee.user_id,
                    pre_test_score=float(pre), post_test_score=float(min(10, pre + rng.randint(0, 4))),
                    pre_test_total=10.0, post_test_total=10.0,
                )
                if status == AppointmentStatus.COMPLETED:
                    for field in TUTOR_RATING_FIELDS + LAV_RATING_FIELDS:
                        setattr(evaluation, field, rng.choice(["5", "5", "4", "4", "3", "N/A"]))
                    evaluation.tutor_comment = fake.sentence()
                evaluations.append(evaluation)

        # Upcoming requests
        for offset in (4, 7):
            session_date = today + timedelta(days=offset)
            while session_date.weekday() >= 5:
                session_date += timedelta(days=1)
            make_appointment(tutor, subject, rng.choice(tutee_rows), session_date, 13,
                             rng.choice([AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED]))

    announcements = [Announcement(
        announcement_id=uuid.uuid4(), user_id=admin.user_id,
        announcement_content=f"LAV is open {fake.day_of_week()}s until 5 PM for walk-in review sessions.",
    )]
    events = []
    for offset, title in ((10, "Tutor Orientation"), (24, "Study Skills Workshop")):
        events.append(Event(
            event_id=uuid.uuid4(), user_id=admin.user_id, event_title=title,
            event_description=fake.sentence(nb_words=10), event_date=today + timedelta(days=offset),
            event_time=time(14, 0), event_location=f"LAV Room {rng.randint(1, 3)}",
        ))

    return {
        "users": users,
        "profiles": profiles,
        "schedules": schedules,
        "appointments": appointments,
        "evaluations": evaluations,
        "announcements": announcements,
        "events": events,
    }


def add_expiry_cases(data: Dict[str, List[Any]], now: datetime) -> Dict[str, List[Any]]:
    """
    Add one stale confirmed session and one overrunning started session
    per tutor, for demonstrating the expiry sweep.
    """
    tutors = [u for u in data["users"] if u.role == Role.TUTOR.value]
    tutees = [u for u in data["users"] if u.role == Role.TUTEE.value]
    for i, tutor in enumerate(tutors):
        tutee = tutees[i % len(tutees)]
        stale_date = _weekday_on_or_before(now.date() - timedelta(days=5))
        data["appointments"].append(Appointment(
            appointment_id=uuid.uuid4(), tutor_id=tutor.user_id, user_id=tutee.user_id,
            date=stale_date, start_time=time(9, 0), end_time=time(10, 0),
            subject="Mathematics", topic="Algebra", mode_of_session="Online",
            session_location="Online", status=AppointmentStatus.CONFIRMED.value,
        ))
        overrun_end = (now - timedelta(minutes=30)).time().replace(second=0, microsecond=0)
        overrun_start = (now - timedelta(minutes=90)).time().replace(second=0, microsecond=0)
        if overrun_start < overrun_end:
            data["appointments"].append(Appointment(
                appointment_id=uuid.uuid4(), tutor_id=tutor.user_id, user_id=tutee.user_id,
                date=now.date(), start_time=overrun_start, end_time=overrun_end,
                subject="Physics", topic="Forces", mode_of_session="Face-to-Face",
                session_location="LAV Room 1", status=AppointmentStatus.STARTED.value,
            ))
    return data


async def clear_demo_data():
    """Clear all existing data"""
    async with AsyncSessionLocal() as session:
        for table in TABLES:
            await session.execute(text(f"DELETE FROM {table}"))
        await session.commit()
    print("✓ Cleared existing data")


async def save_demo_data(data: Dict[str, List[Any]]):
    async with AsyncSessionLocal() as session:
        # Parents before children
        for key in ("users", "profiles", "schedules", "appointments", "evaluations", "announcements", "events"):
            session.add_all(data[key])
            await session.flush()
        await session.commit()

    for key, rows in data.items():
        print(f"  Created {len(rows)} {key}")


async def load_scenario(scenario_name: str, seed: int):
    """
    Load a demo scenario.

    Args:
        scenario_name: 'semester' or 'expiry'
        seed: Random seed for reproducible demo data
    """
    data = generate_demo_data(seed=seed)
    if scenario_name == "expiry":
        add_expiry_cases(data, now_local())
        print(f"  Stale confirmed sessions will be cancelled with: {AUTO_CANCEL_REASON}")

    await clear_demo_data()
    await save_demo_data(data)

    print(f"\n✅ Scenario '{scenario_name}' loaded successfully!")
    print("Demo tokens: demo-admin-token, demo-tutor-1, demo-tutee-1")


def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Load demo data")
    parser.add_argument(
        "--scenario",
        "-s",
        choices=["semester", "expiry"],
        default="semester",
        help="Scenario to load"
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed")

    args = parser.parse_args()
    asyncio.run(load_scenario(args.scenario, args.seed))


if __name__ == "__main__":
    main()
