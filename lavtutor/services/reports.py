"""
Report Service

Aggregates for the admin and tutor report screens:
- tutor activity (finished sessions, tutees served, hours, per-month counts)
- satisfaction rating averages per tutor and for the organization
- improvement leaderboards per tutor and per tutee
- status breakdown over a date range

Session counts use the effective status, so lapsed confirmed or started
rows are reported as cancelled or ended before any sweep has run.

Aggregation happens in Python over the loaded rows; the builders below are
pure so they can be tested without a database.
"""
import logging
from collections import Counter, defaultdict
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select

from lavtutor.database import AsyncSessionLocal
from lavtutor.errors import ValidationFailed
from lavtutor.models.appointment import Appointment, AppointmentStatus, FINISHED_STATUSES
from lavtutor.models.evaluation import Evaluation
from lavtutor.models.user import Role, User
from lavtutor.services.lifecycle import effective_status, now_local
from lavtutor.services.scoring import average_improvement, lav_rating_averages, tutor_rating_averages

logger = logging.getLogger(__name__)


def session_hours(appointment) -> float:
    start = datetime.combine(appointment.date, appointment.start_time)
    end = datetime.combine(appointment.date, appointment.end_time)
    return max((end - start).total_seconds() / 3600, 0.0)


def status_at(appointment, now: Optional[datetime] = None) -> AppointmentStatus:
    """Effective status at `now`; the stored status when no clock is given"""
    if now is None:
        return AppointmentStatus.parse(appointment.status)
    return effective_status(appointment, now)


def build_tutor_activity(appointments: Iterable, names: Dict[Any, str], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Finished-session totals per tutor, busiest first"""
    activity: Dict[Any, Dict[str, Any]] = {}
    for appointment in appointments:
        if status_at(appointment, now) not in FINISHED_STATUSES:
            continue
        entry = activity.setdefault(appointment.tutor_id, {
            "tutor_id": str(appointment.tutor_id),
            "tutor_name": names.get(appointment.tutor_id),
            "sessions": 0,
            "tutees": 0,
            "hours": 0.0,
            "sessions_per_month": defaultdict(int),
        })
        entry["sessions"] += 1
        entry["tutees"] += appointment.number_of_tutees or 1
        entry["hours"] += session_hours(appointment)
        entry["sessions_per_month"][appointment.date.strftime("%Y-%m")] += 1

    rows = []
    for entry in activity.values():
        entry["hours"] = round(entry["hours"], 2)
        entry["sessions_per_month"] = dict(sorted(entry["sessions_per_month"].items()))
        rows.append(entry)
    return sorted(rows, key=lambda row: (-row["sessions"], row["tutor_name"] or ""))


def build_rating_summary(evaluations: List, names: Dict[Any, str]) -> Dict[str, Any]:
    by_tutor = defaultdict(list)
    for evaluation in evaluations:
        by_tutor[evaluation.tutor_id].append(evaluation)

    tutors = []
    for tutor_id, rows in by_tutor.items():
        summary = tutor_rating_averages(rows)
        tutors.append({
            "tutor_id": str(tutor_id) if tutor_id else None,
            "tutor_name": names.get(tutor_id),
            **summary,
        })
    tutors.sort(key=lambda row: (row["overall_average"] is None, -(row["overall_average"] or 0)))

    return {
        "tutors": tutors,
        "organization": lav_rating_averages(evaluations),
    }


def _score_row(evaluation) -> Dict[str, Any]:
    return {
        "pre_test_score": evaluation.pre_test_score,
        "post_test_score": evaluation.post_test_score,
        "pre_test_total": evaluation.pre_test_total,
    }


def build_improvement_leaderboard(evaluations: Iterable, names: Dict[Any, str], group_by: str) -> List[Dict[str, Any]]:
    """
    Average improvement per tutor or per tutee.

    Sessions without both scores are skipped; entries with no scored
    session sort last.
    """
    if group_by not in ("tutor", "tutee"):
        raise ValidationFailed("group_by must be 'tutor' or 'tutee'.", details={"field": "group_by"})
    key_attr = "tutor_id" if group_by == "tutor" else "user_id"

    groups = defaultdict(list)
    for evaluation in evaluations:
        groups[getattr(evaluation, key_attr)].append(_score_row(evaluation))

    board = []
    for key, rows in groups.items():
        scored = [
            row for row in rows
            if row["pre_test_score"] is not None and row["post_test_score"] is not None
        ]
        board.append({
            f"{group_by}_id": str(key) if key else None,
            "name": names.get(key),
            "sessions": len(rows),
            "scored_sessions": len(scored),
            "average_improvement": average_improvement(rows),
        })
    board.sort(key=lambda row: (row["average_improvement"] is None, -(row["average_improvement"] or 0)))
    return board


def build_status_breakdown(appointments: Iterable, now: Optional[datetime] = None) -> Dict[str, Any]:
    counts = Counter(status_at(a, now).value for a in appointments)
    breakdown = {status.value: counts.get(status.value, 0) for status in AppointmentStatus}
    return {"counts": breakdown, "total": sum(breakdown.values())}


class ReportService:
    """Loads rows for a date range and hands them to the builders"""

    def __init__(self, session_factory=AsyncSessionLocal, clock=now_local):
        self.session_factory = session_factory
        self.clock = clock

    @staticmethod
    def _check_range(start_date: Optional[date], end_date: Optional[date]):
        if start_date and end_date and start_date > end_date:
            raise ValidationFailed("Start date must be on or before end date.", details={"field": "start_date"})

    async def _appointments(self, session, start_date, end_date, tutor_id=None) -> List[Appointment]:
        conditions = []
        if start_date:
            conditions.append(Appointment.date >= start_date)
        if end_date:
            conditions.append(Appointment.date <= end_date)
        if tutor_id:
            conditions.append(Appointment.tutor_id == tutor_id)
        stmt = select(Appointment)
        if conditions:
            stmt = stmt.where(*conditions)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def _evaluations(self, session, start_date, end_date, tutor_id=None) -> List[Evaluation]:
        appointments = await self._appointments(session, start_date, end_date, tutor_id)
        ids = [a.appointment_id for a in appointments]
        if not ids:
            return []
        result = await session.execute(select(Evaluation).where(Evaluation.appointment_id.in_(ids)))
        return list(result.scalars().all())

    async def _names(self, session, role: Optional[str] = None) -> Dict[Any, str]:
        stmt = select(User)
        if role:
            stmt = stmt.where(User.role == role)
        result = await session.execute(stmt)
        return {user.user_id: user.name for user in result.scalars().all()}

    async def tutor_activity(self, start_date=None, end_date=None, tutor_id=None) -> List[Dict[str, Any]]:
        self._check_range(start_date, end_date)
        async with self.session_factory() as session:
            appointments = await self._appointments(session, start_date, end_date, tutor_id)
            names = await self._names(session, Role.TUTOR.value)
        return build_tutor_activity(appointments, names, self.clock())

    async def rating_summary(self, start_date=None, end_date=None, tutor_id=None) -> Dict[str, Any]:
        self._check_range(start_date, end_date)
        async with self.session_factory() as session:
            evaluations = await self._evaluations(session, start_date, end_date, tutor_id)
            names = await self._names(session, Role.TUTOR.value)
        return build_rating_summary(evaluations, names)

    async def improvement_leaderboard(self, group_by: str = "tutor", start_date=None, end_date=None) -> List[Dict[str, Any]]:
        self._check_range(start_date, end_date)
        async with self.session_factory() as session:
            evaluations = await self._evaluations(session, start_date, end_date)
            names = await self._names(session)
        return build_improvement_leaderboard(evaluations, names, group_by)

    async def status_breakdown(self, start_date=None, end_date=None, tutor_id=None) -> Dict[str, Any]:
        self._check_range(start_date, end_date)
        async with self.session_factory() as session:
            appointments = await self._appointments(session, start_date, end_date, tutor_id)
        return build_status_breakdown(appointments, self.clock())


_report_service: Optional[ReportService] = None


def get_report_service() -> ReportService:
    """Get or create global ReportService instance"""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
