"""
Evaluation Service

Stores the tutor's pre/post test scores and the tutee's satisfaction survey.
One evaluation row per appointment, found by lookup before insert.

Submitting the survey completes the appointment: the survey upsert and the
status change commit together or not at all. Both writes first bring a
lapsed session to its effective status, so a started session whose end has
passed can be scored and surveyed without waiting for its timer.
"""
import logging
import uuid
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import select

from lavtutor.database import AsyncSessionLocal
from lavtutor.errors import InvalidTransition, NotFound, PermissionDenied
from lavtutor.models.appointment import Appointment, AppointmentStatus, FINISHED_STATUSES
from lavtutor.models.evaluation import Evaluation, LAV_RATING_FIELDS, TUTOR_RATING_FIELDS
from lavtutor.models.user import Role, User
from lavtutor.services.action_guard import get_action_guard
from lavtutor.services.appointment_service import get_appointment_service
from lavtutor.services.change_feed import get_data_sync
from lavtutor.services.events import AppointmentStatusChanged, get_event_bus
from lavtutor.services.lifecycle import Actor, validate_transition
from lavtutor.services.scoring import compute_improvement, format_improvement, validate_scores, validate_survey

logger = logging.getLogger(__name__)


def serialize_evaluation(evaluation: Optional[Evaluation], appointment: Appointment) -> Dict[str, Any]:
    data = {
        "appointment_id": str(appointment.appointment_id),
        "appointment_status": AppointmentStatus.parse(appointment.status).value,
        "evaluation_id": None,
        "pre_test_score": None,
        "post_test_score": None,
        "pre_test_total": None,
        "post_test_total": None,
        "tutor_notes": None,
        "tutor_comment": None,
        "improvement": None,
        "improvement_display": format_improvement(None),
        "ratings": {field: None for field in TUTOR_RATING_FIELDS + LAV_RATING_FIELDS},
    }
    if evaluation is None:
        return data

    improvement = compute_improvement(
        evaluation.pre_test_score,
        evaluation.post_test_score,
        evaluation.pre_test_total,
    )
    data.update({
        "evaluation_id": str(evaluation.evaluation_id),
        "pre_test_score": evaluation.pre_test_score,
        "post_test_score": evaluation.post_test_score,
        "pre_test_total": evaluation.pre_test_total,
        "post_test_total": evaluation.post_test_total,
        "tutor_notes": evaluation.tutor_notes,
        "tutor_comment": evaluation.tutor_comment,
        "improvement": round(improvement, 2) if improvement is not None else None,
        "improvement_display": format_improvement(improvement),
        "ratings": {field: getattr(evaluation, field) for field in TUTOR_RATING_FIELDS + LAV_RATING_FIELDS},
    })
    return data


class EvaluationService:
    """Score entry, survey submission and evaluation reads"""

    def __init__(self, session_factory=AsyncSessionLocal, data_sync=None, guard=None, events=None, appointments=None):
        self.session_factory = session_factory
        self.data_sync = data_sync or get_data_sync()
        self.guard = guard or get_action_guard()
        self.events = events or get_event_bus()
        self.appointments = appointments or get_appointment_service()

    async def _load_appointment(self, session, appointment_id: uuid.UUID) -> Appointment:
        appointment = await session.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound("Appointment not found", details={"appointment_id": str(appointment_id)})
        return appointment

    async def _find_evaluation(self, session, appointment_id: uuid.UUID) -> Optional[Evaluation]:
        result = await session.execute(
            select(Evaluation).where(Evaluation.appointment_id == appointment_id)
        )
        return result.scalars().first()

    def _new_evaluation(self, appointment: Appointment) -> Evaluation:
        return Evaluation(
            evaluation_id=uuid.uuid4(),
            appointment_id=appointment.appointment_id,
            tutor_id=appointment.tutor_id,
            user_id=appointment.user_id,
        )

    async def get(self, user: User, appointment_id: uuid.UUID) -> Dict[str, Any]:
        async with self.session_factory() as session:
            appointment = await self._load_appointment(session, appointment_id)
            if user.role != Role.ADMIN.value and user.user_id not in (appointment.tutor_id, appointment.user_id):
                raise PermissionDenied("You are not a participant in this appointment")
            evaluation = await self._find_evaluation(session, appointment_id)
        return serialize_evaluation(evaluation, appointment)

    async def save_scores(self, user: User, appointment_id: uuid.UUID, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Record pre/post test scores (tutor only, once the session has ended).

        Raises:
            PermissionDenied: caller is not the appointment's tutor
            InvalidTransition: session has not ended yet
            ValidationFailed: missing, negative or out-of-range scores
        """
        scores = validate_scores(
            payload.get("pre_test_score"),
            payload.get("post_test_score"),
            payload.get("pre_test_total"),
            payload.get("post_test_total"),
        )

        async with self.guard.hold(f"evaluation:{appointment_id}"):
            async with self.session_factory() as session:
                appointment = await self._load_appointment(session, appointment_id)
                if user.user_id != appointment.tutor_id:
                    raise PermissionDenied("Only the tutor can record assessment scores")
                await self.appointments.expire_loaded(session, appointment)
                if AppointmentStatus.parse(appointment.status) not in FINISHED_STATUSES:
                    raise InvalidTransition(
                        "Scores can only be recorded after the session has ended",
                        details={"status": AppointmentStatus.parse(appointment.status).value},
                    )

                evaluation = await self._find_evaluation(session, appointment_id)
                if evaluation is None:
                    evaluation = self._new_evaluation(appointment)
                    session.add(evaluation)

                for field, value in scores.items():
                    setattr(evaluation, field, value)
                if "tutor_notes" in payload:
                    evaluation.tutor_notes = (payload.get("tutor_notes") or "").strip() or None

                await session.commit()

        logger.info(f"Scores saved for appointment {appointment_id}")
        await self.data_sync.record_change("evaluation")
        return serialize_evaluation(evaluation, appointment)

    async def submit_survey(
        self,
        user: User,
        appointment_id: uuid.UUID,
        answers: Mapping[str, Any],
        tutor_comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Save the tutee's survey and complete the appointment.

        The transition and the completion gate are both checked before any
        write; the evaluation upsert and the status flip share one commit.
        """
        async with self.guard.hold(f"appointment:{appointment_id}"):
            async with self.session_factory() as session:
                appointment = await self._load_appointment(session, appointment_id)
                if user.user_id == appointment.tutor_id:
                    actor = Actor.TUTOR
                elif user.user_id == appointment.user_id:
                    actor = Actor.TUTEE
                else:
                    raise PermissionDenied("You are not a participant in this appointment")

                await self.appointments.expire_loaded(session, appointment)
                current = AppointmentStatus.parse(appointment.status)
                validate_transition(current, AppointmentStatus.COMPLETED, actor)
                ratings = validate_survey(answers)

                try:
                    evaluation = await self._find_evaluation(session, appointment_id)
                    if evaluation is None:
                        evaluation = self._new_evaluation(appointment)
                        session.add(evaluation)
                    for field, rating in ratings.items():
                        setattr(evaluation, field, rating)
                    evaluation.tutor_comment = (tutor_comment or "").strip() or None
                    appointment.status = AppointmentStatus.COMPLETED.value
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        logger.info(f"Appointment {appointment_id} completed with survey")
        await self.events.publish(AppointmentStatusChanged(
            appointment_id=appointment.appointment_id,
            old_status=current.value,
            new_status=AppointmentStatus.COMPLETED.value,
            actor=actor.value,
        ))
        await self.data_sync.record_change("evaluation", "appointment")
        return serialize_evaluation(evaluation, appointment)


_evaluation_service: Optional[EvaluationService] = None


def get_evaluation_service() -> EvaluationService:
    """Get or create global EvaluationService instance"""
    global _evaluation_service
    if _evaluation_service is None:
        _evaluation_service = EvaluationService()
    return _evaluation_service
