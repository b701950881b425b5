"""
Unit tests for EvaluationService

Tests score entry, one-evaluation-per-appointment and the survey gate that
completes an appointment.
"""

import pytest
from datetime import date, time
from unittest.mock import Mock

from conftest import evaluations_for, notifications_for
from lavtutor.errors import InvalidTransition, PermissionDenied, ValidationFailed
from lavtutor.models.evaluation import LAV_RATING_FIELDS, TUTOR_RATING_FIELDS
from lavtutor.models.user import Role
from lavtutor.services.events import AppointmentStatusChanged


def full_survey(value="5"):
    return {field: value for field in TUTOR_RATING_FIELDS + LAV_RATING_FIELDS}


class TestScores:

    @pytest.mark.asyncio
    async def test_save_scores_after_session(self, evaluation_service, store, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="awaiting_feedback")

        data = await evaluation_service.save_scores(tutor, appt.appointment_id, {
            "pre_test_score": 4,
            "post_test_score": 7,
            "pre_test_total": 10,
            "post_test_total": 10,
            "tutor_notes": " Needs drills on limits ",
        })

        assert data["improvement"] == 30.0
        assert data["improvement_display"] == "↑ 30.0%"
        assert data["tutor_notes"] == "Needs drills on limits"
        assert len(evaluations_for(store, appt)) == 1

    @pytest.mark.asyncio
    async def test_second_save_updates_same_row(self, evaluation_service, store, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="completed")

        first = await evaluation_service.save_scores(tutor, appt.appointment_id, {"pre_test_score": 2, "post_test_score": 4})
        second = await evaluation_service.save_scores(tutor, appt.appointment_id, {"pre_test_score": 2, "post_test_score": 5})

        assert first["evaluation_id"] == second["evaluation_id"]
        assert second["improvement"] == 150.0
        assert len(evaluations_for(store, appt)) == 1

    @pytest.mark.asyncio
    async def test_zero_pre_score(self, evaluation_service, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="completed")
        data = await evaluation_service.save_scores(tutor, appt.appointment_id, {"pre_test_score": 0, "post_test_score": 3})
        assert data["improvement"] == 100.0

    @pytest.mark.asyncio
    async def test_not_before_session_ends(self, evaluation_service, store, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="started")
        with pytest.raises(InvalidTransition):
            await evaluation_service.save_scores(tutor, appt.appointment_id, {"pre_test_score": 1, "post_test_score": 2})
        assert evaluations_for(store, appt) == []

    @pytest.mark.asyncio
    async def test_overrun_session_accepts_scores(self, evaluation_service, tutor, tutee, make_appointment):
        # Ended at 09:30, clock at 10:00, timer never fired
        appt = make_appointment(tutor, tutee, status="started", on=date(2026, 3, 4), start=time(8, 30), end=time(9, 30))

        data = await evaluation_service.save_scores(tutor, appt.appointment_id, {"pre_test_score": 2, "post_test_score": 4})

        assert appt.status == "awaiting_feedback"
        assert data["appointment_status"] == "awaiting_feedback"
        assert data["improvement"] == 100.0

    @pytest.mark.asyncio
    async def test_only_the_tutor(self, evaluation_service, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="awaiting_feedback")
        with pytest.raises(PermissionDenied):
            await evaluation_service.save_scores(tutee, appt.appointment_id, {"pre_test_score": 1, "post_test_score": 2})

    @pytest.mark.asyncio
    async def test_invalid_scores_rejected_first(self, evaluation_service, store, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="awaiting_feedback")
        with pytest.raises(ValidationFailed):
            await evaluation_service.save_scores(tutor, appt.appointment_id, {"pre_test_score": 11, "post_test_score": 5, "pre_test_total": 10})
        assert store.commits == 0


class TestSurvey:

    @pytest.mark.asyncio
    async def test_survey_completes_appointment(self, evaluation_service, store, bus, data_sync, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="awaiting_feedback")
        handler = Mock()
        bus.subscribe(AppointmentStatusChanged, handler)

        data = await evaluation_service.submit_survey(tutee, appt.appointment_id, full_survey(), " Very clear ")

        assert appt.status == "completed"
        assert data["appointment_status"] == "completed"
        assert data["ratings"]["lav_value"] == "5"
        assert data["tutor_comment"] == "Very clear"
        assert store.commits == 1
        assert handler.call_args.args[0].new_status == "completed"
        assert data_sync.table_versions == {"evaluation": 1, "appointment": 1}

    @pytest.mark.asyncio
    async def test_survey_keeps_existing_scores(self, evaluation_service, store, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="awaiting_feedback")
        await evaluation_service.save_scores(tutor, appt.appointment_id, {"pre_test_score": 5, "post_test_score": 8})

        data = await evaluation_service.submit_survey(tutee, appt.appointment_id, full_survey("N/A"))

        assert data["pre_test_score"] == 5
        assert data["ratings"]["presentation_clarity"] == "N/A"
        assert len(evaluations_for(store, appt)) == 1

    @pytest.mark.asyncio
    async def test_incomplete_survey_blocks_completion(self, evaluation_service, store, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="awaiting_feedback")
        answers = full_survey()
        answers.pop("lav_support")
        answers["positive_impact"] = "7"

        with pytest.raises(ValidationFailed) as exc_info:
            await evaluation_service.submit_survey(tutee, appt.appointment_id, answers)

        assert set(exc_info.value.details["missing"]) == {"lav_support", "positive_impact"}
        assert appt.status == "awaiting_feedback"
        assert evaluations_for(store, appt) == []
        assert store.commits == 0

    @pytest.mark.asyncio
    async def test_tutor_cannot_submit_survey(self, evaluation_service, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="awaiting_feedback")
        with pytest.raises(PermissionDenied):
            await evaluation_service.submit_survey(tutor, appt.appointment_id, full_survey())

    @pytest.mark.asyncio
    async def test_survey_only_after_session(self, evaluation_service, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="confirmed")
        with pytest.raises(InvalidTransition):
            await evaluation_service.submit_survey(tutee, appt.appointment_id, full_survey())

    @pytest.mark.asyncio
    async def test_survey_completes_overrun_session(self, evaluation_service, store, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="started", on=date(2026, 3, 4), start=time(8, 30), end=time(9, 30))

        data = await evaluation_service.submit_survey(tutee, appt.appointment_id, full_survey())

        assert appt.status == "completed"
        assert data["appointment_status"] == "completed"
        assert {n.type for n in notifications_for(store, tutee)} == {"feedback_requested"}

    @pytest.mark.asyncio
    async def test_stale_confirmed_is_cancelled_not_completed(self, evaluation_service, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="confirmed", on=date(2026, 2, 26))

        with pytest.raises(InvalidTransition):
            await evaluation_service.submit_survey(tutee, appt.appointment_id, full_survey())

        assert appt.status == "cancelled"


class TestReads:

    @pytest.mark.asyncio
    async def test_empty_evaluation(self, evaluation_service, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="awaiting_feedback")
        data = await evaluation_service.get(tutee, appt.appointment_id)
        assert data["evaluation_id"] is None
        assert data["improvement_display"] == "-"

    @pytest.mark.asyncio
    async def test_admin_can_read(self, evaluation_service, admin, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="completed")
        assert (await evaluation_service.get(admin, appt.appointment_id))["appointment_status"] == "completed"

    @pytest.mark.asyncio
    async def test_outsider_cannot_read(self, evaluation_service, make_user, tutor, tutee, make_appointment):
        appt = make_appointment(tutor, tutee, status="completed")
        with pytest.raises(PermissionDenied):
            await evaluation_service.get(make_user(Role.TUTEE), appt.appointment_id)
