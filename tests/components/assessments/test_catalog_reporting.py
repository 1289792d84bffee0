from datetime import timedelta

import pytest

from exam_sessions.components.assessments import catalog, reporting
from exam_sessions.components.assessments.errors import InvalidAssessment, NotFound
from exam_sessions.models.assessment import AssessmentKind
from tests.conftest import T0, correct_answers, make_assessment, sample_questions


class TestCatalog:
    def test_create_defaults(self, db):
        assessment = catalog.create_assessment(db, title="Week 12 Practice", questions=sample_questions(5))
        assert assessment.id.startswith("week-12-practice-")
        assert assessment.total_questions == 5
        assert assessment.exam_duration_minutes == 90
        assert assessment.is_active is False
        assert assessment.master_enabled is True
        assert assessment.requires_entitlement is False
        assert assessment.passing_percentage == 70

    def test_paid_exam_requires_entitlement_by_default(self, db):
        assessment = catalog.create_assessment(
            db, title="Paid", kind=AssessmentKind.PAID_EXAM, questions=sample_questions(3)
        )
        assert assessment.requires_entitlement is True

    def test_keeps_full_pool_and_draw_size(self, db):
        assessment = catalog.create_assessment(
            db, title="Short", questions=sample_questions(20), total_questions=8, shuffle_questions=True
        )
        assert len(assessment.questions) == 20
        assert assessment.total_questions == 8
        assert assessment.shuffle_questions is True

    def test_rejects_duplicate_question_ids(self, db):
        questions = sample_questions(3)
        questions[2]["id"] = "q1"
        with pytest.raises(InvalidAssessment):
            catalog.create_assessment(db, title="Dupes", questions=questions)

    def test_caps_at_max_questions(self, db, monkeypatch):
        monkeypatch.setattr(catalog.settings, "MAX_QUESTIONS_PER_ASSESSMENT", 4)
        assessment = catalog.create_assessment(db, title="Capped", questions=sample_questions(6))
        assert assessment.total_questions == 4
        assert len(assessment.questions) == 6

    @pytest.mark.parametrize(
        "question",
        [
            {"text": "", "options": ["a", "b"], "correct_option_index": 0},
            {"text": "Q", "options": ["a"], "correct_option_index": 0},
            {"text": "Q", "options": ["a", "b"], "correct_option_index": 2},
            {"text": "Q", "options": ["a", "b"]},
        ],
    )
    def test_rejects_malformed_questions(self, db, question):
        with pytest.raises(InvalidAssessment):
            catalog.create_assessment(db, title="Bad", questions=[question])

    def test_window_shorter_than_exam_rejected(self, db):
        with pytest.raises(InvalidAssessment):
            catalog.create_assessment(
                db,
                title="Tight",
                questions=sample_questions(2),
                window_opens_at=T0,
                window_duration_minutes=60,
            )

    def test_activation_is_exclusive_per_kind(self, db):
        old_weekly = make_assessment(db)
        paid = make_assessment(db, kind=AssessmentKind.PAID_EXAM)
        new_weekly = catalog.create_assessment(
            db, title="New", questions=sample_questions(2), activate=True
        )
        db.refresh(old_weekly)
        db.refresh(paid)
        assert new_weekly.is_active is True
        assert old_weekly.is_active is False
        assert paid.is_active is True

        catalog.activate_assessment(db, old_weekly.id)
        db.refresh(new_weekly)
        assert new_weekly.is_active is False

    def test_master_switch(self, db):
        assessment = make_assessment(db)
        assert catalog.set_master_enabled(db, assessment.id, False).master_enabled is False

    def test_update_schedule(self, db):
        assessment = make_assessment(db)
        updated = catalog.update_schedule(db, assessment.id, T0, window_duration_minutes=120)
        assert updated.window_duration_minutes == 120
        assert updated.is_scheduled is True

        with pytest.raises(InvalidAssessment):
            catalog.update_schedule(db, assessment.id, T0, window_duration_minutes=30)

        cleared = catalog.update_schedule(db, assessment.id, None)
        assert cleared.is_scheduled is False
        assert cleared.window_duration_minutes is None

    def test_unknown_assessment(self, db):
        with pytest.raises(NotFound):
            catalog.activate_assessment(db, "missing")


class TestReporting:
    def _complete(self, service, assessment_id, user_id, answers, spent):
        attempt_id = service.start_or_resume(user_id, assessment_id, user_name=user_id.title()).attempt.id
        return service.submit(attempt_id, user_id, answers, [], spent)

    def test_leaderboard_orders_by_score_then_time(self, db, service):
        assessment = make_assessment(db)
        perfect = correct_answers()
        half = correct_answers()[:5] + [None] * 5
        self._complete(service, assessment.id, "slow", perfect, 900)
        self._complete(service, assessment.id, "fast", perfect, 300)
        self._complete(service, assessment.id, "half", half, 100)
        service.start_or_resume("pending", assessment.id)

        board = reporting.leaderboard(db, assessment.id)
        assert [row["user_id"] for row in board] == ["fast", "slow", "half"]
        assert [row["rank"] for row in board] == [1, 2, 3]
        assert board[0]["percentage"] == 100
        assert reporting.leaderboard(db, assessment.id, limit=1)[0]["user_id"] == "fast"

    def test_statistics(self, db, service):
        assessment = make_assessment(db)
        self._complete(service, assessment.id, "a", correct_answers(), 600)
        self._complete(service, assessment.id, "b", correct_answers()[:4] + [None] * 6, 1200)
        service.start_or_resume("c", assessment.id)

        stats = reporting.assessment_statistics(db, assessment.id)
        assert stats["total_attempts"] == 3
        assert stats["completed_attempts"] == 2
        assert stats["average_percentage"] == 70.0
        assert stats["average_time_minutes"] == 15.0
        assert stats["top_percentage"] == 100
        assert stats["pass_rate"] == 50.0

    def test_statistics_without_attempts(self, db):
        assessment = make_assessment(db)
        stats = reporting.assessment_statistics(db, assessment.id)
        assert stats["completed_attempts"] == 0
        assert stats["pass_rate"] == 0.0

    def test_user_history(self, db, service, clock):
        assessment = make_assessment(db)
        self._complete(service, assessment.id, "a", correct_answers(), 60)
        clock.advance(timedelta(hours=1).total_seconds())
        service.start_or_resume("a", assessment.id)
        history = reporting.user_history(db, "a")
        assert len(history) == 2
        assert history[0].is_completed is False
