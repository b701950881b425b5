"""
Unit tests for the appointment lifecycle rules

Tests the transition table, required side data, deletion rule and the
wall-clock auto-expiry policies.
"""

import pytest
from datetime import date, datetime, time, timedelta
from types import SimpleNamespace

from lavtutor.errors import InvalidTransition, PermissionDenied, ValidationFailed
from lavtutor.models.appointment import AppointmentStatus
from lavtutor.services.lifecycle import (
    AUTO_CANCEL_REASON,
    TRANSITIONS,
    Actor,
    Requirement,
    allowed_targets,
    auto_cancel_cutoff,
    can_delete,
    effective_status,
    find_transition,
    validate_transition,
    warning_time,
)

S = AppointmentStatus


def appointment(status, on=date(2026, 3, 2), start=time(9, 0), end=time(10, 0)):
    return SimpleNamespace(status=status, date=on, start_time=start, end_time=end)


class TestTransitionTable:
    """Only the documented edges are allowed"""

    @pytest.mark.parametrize("source,target,actor", [
        (S.PENDING, S.CONFIRMED, Actor.TUTOR),
        (S.PENDING, S.DECLINED, Actor.TUTOR),
        (S.CONFIRMED, S.STARTED, Actor.TUTOR),
        (S.CONFIRMED, S.CANCELLED, Actor.TUTOR),
        (S.CONFIRMED, S.CANCELLED, Actor.TUTEE),
        (S.STARTED, S.AWAITING_FEEDBACK, Actor.TUTOR),
        (S.STARTED, S.AWAITING_FEEDBACK, Actor.SYSTEM),
        (S.AWAITING_FEEDBACK, S.COMPLETED, Actor.TUTEE),
        (S.CONFIRMED, S.CANCELLED, Actor.SYSTEM),
    ])
    def test_allowed_edges(self, source, target, actor):
        transition = find_transition(source, target, actor)
        assert transition.target == target

    @pytest.mark.parametrize("source,target", [
        (S.PENDING, S.STARTED),
        (S.PENDING, S.COMPLETED),
        (S.CONFIRMED, S.COMPLETED),
        (S.STARTED, S.CANCELLED),
        (S.AWAITING_FEEDBACK, S.CANCELLED),
        (S.CONFIRMED, S.PENDING),
    ])
    def test_edges_not_on_graph_rejected(self, source, target):
        with pytest.raises(InvalidTransition):
            find_transition(source, target, Actor.TUTOR)

    @pytest.mark.parametrize("terminal", [S.COMPLETED, S.DECLINED, S.CANCELLED])
    def test_terminal_statuses_have_no_exits(self, terminal):
        for target in AppointmentStatus:
            for actor in (Actor.TUTOR, Actor.TUTEE):
                with pytest.raises(InvalidTransition):
                    find_transition(terminal, target, actor)
        assert allowed_targets(terminal, Actor.TUTOR) == ()

    def test_wrong_actor_is_permission_error(self):
        with pytest.raises(PermissionDenied):
            find_transition(S.PENDING, S.CONFIRMED, Actor.TUTEE)
        with pytest.raises(PermissionDenied):
            find_transition(S.CONFIRMED, S.STARTED, Actor.TUTEE)
        with pytest.raises(PermissionDenied):
            find_transition(S.AWAITING_FEEDBACK, S.COMPLETED, Actor.TUTOR)

    def test_status_input_is_case_normalized(self):
        transition = find_transition("Pending", "CONFIRMED", Actor.TUTOR)
        assert transition.source == S.PENDING

    def test_allowed_targets_per_actor(self):
        assert set(allowed_targets(S.PENDING, Actor.TUTOR)) == {S.CONFIRMED, S.DECLINED}
        assert allowed_targets(S.PENDING, Actor.TUTEE) == ()
        assert allowed_targets(S.CONFIRMED, Actor.TUTEE) == (S.CANCELLED,)
        assert allowed_targets(S.AWAITING_FEEDBACK, Actor.TUTEE) == (S.COMPLETED,)

    def test_completion_requires_survey(self):
        completion = [t for t in TRANSITIONS if t.target == S.COMPLETED]
        assert len(completion) == 1
        assert completion[0].requires == Requirement.SURVEY


class TestRequiredSideData:
    """Location and reason are required before any write"""

    @pytest.mark.parametrize("location", [None, "", "   "])
    def test_confirm_without_location(self, location):
        with pytest.raises(ValidationFailed, match="location"):
            validate_transition(S.PENDING, S.CONFIRMED, Actor.TUTOR, location=location)

    def test_confirm_with_location(self):
        transition = validate_transition(S.PENDING, S.CONFIRMED, Actor.TUTOR, location="LAV Room 2")
        assert transition.requires == Requirement.LOCATION

    @pytest.mark.parametrize("target,actor", [
        (S.DECLINED, Actor.TUTOR),
    ])
    def test_decline_without_reason(self, target, actor):
        with pytest.raises(ValidationFailed, match="reason"):
            validate_transition(S.PENDING, target, actor, reason="  ")

    @pytest.mark.parametrize("actor", [Actor.TUTOR, Actor.TUTEE])
    def test_cancel_without_reason(self, actor):
        with pytest.raises(ValidationFailed):
            validate_transition(S.CONFIRMED, S.CANCELLED, actor, reason=None)

    def test_system_cancel_needs_no_reason(self):
        transition = validate_transition(S.CONFIRMED, S.CANCELLED, Actor.SYSTEM)
        assert transition.requires == Requirement.NONE

    def test_graph_checked_before_side_data(self):
        # Terminal status wins over a missing reason
        with pytest.raises(InvalidTransition):
            validate_transition(S.DECLINED, S.CANCELLED, Actor.TUTOR, reason=None)


class TestDeletion:

    def test_only_pending_can_be_deleted(self):
        assert can_delete("pending") is True
        assert can_delete("Pending") is True
        for status in AppointmentStatus:
            if status != S.PENDING:
                assert can_delete(status) is False


class TestAutoExpiry:
    """Stale confirmed and overrunning started sessions"""

    def test_cutoff_is_end_of_day_plus_three_days(self):
        cutoff = auto_cancel_cutoff(date(2026, 3, 2))
        assert cutoff.date() == date(2026, 3, 5)
        assert cutoff.time() == time.max

    def test_confirmed_within_grace_period_stays_confirmed(self):
        appt = appointment("confirmed", on=date(2026, 3, 2))
        assert effective_status(appt, datetime(2026, 3, 5, 23, 59)) == S.CONFIRMED

    def test_confirmed_past_grace_period_is_cancelled(self):
        appt = appointment("confirmed", on=date(2026, 3, 2))
        assert effective_status(appt, datetime(2026, 3, 6, 0, 0)) == S.CANCELLED

    def test_started_before_end_stays_started(self):
        appt = appointment("started", on=date(2026, 3, 2), end=time(10, 0))
        assert effective_status(appt, datetime(2026, 3, 2, 9, 59)) == S.STARTED

    def test_started_at_end_time_awaits_feedback(self):
        appt = appointment("started", on=date(2026, 3, 2), end=time(10, 0))
        assert effective_status(appt, datetime(2026, 3, 2, 10, 0)) == S.AWAITING_FEEDBACK

    @pytest.mark.parametrize("status", ["pending", "awaiting_feedback", "completed", "declined", "cancelled"])
    def test_other_statuses_never_expire(self, status):
        appt = appointment(status, on=date(2025, 1, 1))
        assert effective_status(appt, datetime(2026, 3, 2)) == AppointmentStatus.parse(status)

    def test_warning_is_ten_minutes_before_end(self):
        appt = appointment("started", on=date(2026, 3, 2), end=time(10, 0))
        assert warning_time(appt) == datetime(2026, 3, 2, 10, 0) - timedelta(minutes=10)

    def test_auto_cancel_reason_text(self):
        assert AUTO_CANCEL_REASON == (
            "Automatically cancelled: the session was not started within 3 days of its scheduled date."
        )
