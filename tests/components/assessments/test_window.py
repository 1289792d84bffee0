from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from exam_sessions.components.assessments.window import (
    WindowStatus,
    allotted_deadline,
    describe_window,
    evaluate_window,
    window_bounds,
)

OPENS = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _assessment(**overrides):
    values = {
        "is_active": True,
        "master_enabled": True,
        "exam_duration_minutes": 90,
        "window_opens_at": OPENS,
        "window_duration_minutes": 100,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _at(hour, minute, second=0):
    return datetime(2026, 3, 2, hour, minute, second, tzinfo=timezone.utc)


class TestUnscheduled:
    def test_full_duration_at_any_time(self):
        assessment = _assessment(window_opens_at=None, window_duration_minutes=None)
        for now in (_at(0, 0), _at(10, 0), _at(23, 59)):
            evaluation = evaluate_window(assessment, now)
            assert evaluation.is_available is True
            assert evaluation.remaining_seconds == 5400
            assert evaluation.status == WindowStatus.ACTIVE
            assert evaluation.window_closes_at is None

    def test_inactive_is_closed(self):
        evaluation = evaluate_window(_assessment(window_opens_at=None, is_active=False), _at(10, 0))
        assert evaluation.is_available is False
        assert evaluation.status == WindowStatus.CLOSED
        assert evaluation.remaining_seconds == 0

    def test_master_switch_off_is_closed(self):
        evaluation = evaluate_window(_assessment(master_enabled=False), _at(10, 30))
        assert evaluation.is_available is False
        assert evaluation.status == WindowStatus.CLOSED


class TestScheduled:
    def test_latecomer_still_gets_full_duration(self):
        evaluation = evaluate_window(_assessment(), _at(10, 5))
        assert evaluation.is_available is True
        assert evaluation.remaining_seconds == 90 * 60
        assert evaluation.status == WindowStatus.ACTIVE

    def test_allotment_capped_by_window_close(self):
        evaluation = evaluate_window(_assessment(), _at(11, 30))
        assert evaluation.is_available is True
        assert evaluation.remaining_seconds == 10 * 60
        assert evaluation.status == WindowStatus.CLOSING_SOON

    def test_after_close(self):
        evaluation = evaluate_window(_assessment(), _at(11, 41))
        assert evaluation.is_available is False
        assert evaluation.status == WindowStatus.CLOSED

    def test_boundaries(self):
        assessment = _assessment()
        before = evaluate_window(assessment, OPENS - timedelta(seconds=1))
        at_open = evaluate_window(assessment, OPENS)
        at_close = evaluate_window(assessment, OPENS + timedelta(minutes=100))
        assert before.is_available is False
        assert before.status == WindowStatus.NOT_STARTED
        assert at_open.is_available is True
        assert at_close.is_available is False
        assert at_close.status == WindowStatus.CLOSED

    def test_remaining_decreases_once_window_binds(self):
        assessment = _assessment()
        previous = None
        for minute in range(11, 100, 7):
            now = OPENS + timedelta(minutes=minute, seconds=13)
            remaining = evaluate_window(assessment, now).remaining_seconds
            if previous is not None:
                assert remaining < previous
            previous = remaining

    def test_equal_window_and_duration_at_open(self):
        assessment = _assessment(window_duration_minutes=90)
        assert evaluate_window(assessment, OPENS).remaining_seconds == 90 * 60

    def test_five_minutes_left_yields_five_minutes(self):
        assessment = _assessment(window_duration_minutes=90, exam_duration_minutes=120)
        now = OPENS + timedelta(minutes=85)
        assert evaluate_window(assessment, now).remaining_seconds == 5 * 60

    def test_closing_soon_threshold_is_inclusive(self):
        now = OPENS + timedelta(minutes=85)
        evaluation = evaluate_window(_assessment(), now, closing_soon_threshold_seconds=15 * 60)
        assert evaluation.status == WindowStatus.CLOSING_SOON
        just_before = evaluate_window(_assessment(), now - timedelta(seconds=1), closing_soon_threshold_seconds=15 * 60)
        assert just_before.status == WindowStatus.ACTIVE

    def test_naive_datetimes_are_treated_as_utc(self):
        assessment = _assessment(window_opens_at=OPENS.replace(tzinfo=None))
        evaluation = evaluate_window(assessment, _at(10, 5).replace(tzinfo=None))
        assert evaluation.is_available is True
        assert evaluation.window_opens_at == OPENS


def test_window_bounds_uses_default_window_length():
    opens, closes = window_bounds(_assessment(window_duration_minutes=None))
    assert opens == OPENS
    assert closes == OPENS + timedelta(minutes=100)


def test_allotted_deadline_adds_remaining_seconds():
    now = _at(11, 30)
    evaluation = evaluate_window(_assessment(), now)
    assert allotted_deadline(evaluation, now) == _at(11, 40)


def test_describe_window_labels():
    closing = describe_window(evaluate_window(_assessment(), _at(11, 30)))
    assert closing["status_label"] == "Closing Soon"
    assert closing["can_start"] is True
    assert closing["available_minutes"] == 10

    not_started = describe_window(evaluate_window(_assessment(), _at(9, 0)))
    assert not_started["status_label"] == "Not Started"
    assert not_started["can_start"] is False
