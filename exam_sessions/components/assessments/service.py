"""Attempt lifecycle: start/resume, answer recording, auto-save, submission and scoring.

One open attempt per (user, assessment). An attempt is Open until it is
sealed by ``submit`` or ``force_submit``; a sealed attempt is never written
again. The deadline stored at start is authoritative: actions arriving after
``deadline_at + SUBMIT_GRACE_SECONDS`` seal the attempt from its last stored
snapshot instead of accepting new answers.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from ...models.attempt import Attempt
from ...platform.clock import Clock, SystemClock, ensure_utc
from ...platform.config import SessionTimings, settings
from .entitlements import EntitlementCheck, MaxAttemptsPolicy, RetakePolicy
from .errors import (
    AccessDenied,
    AttemptSealed,
    DeadlinePassed,
    IneligibleReason,
    InvalidIndex,
    NotEligible,
    NotFound,
    PersistenceError,
    ReviewUnavailable,
    StaleWrite,
)
from .repository import AttemptStore, QuestionSource, SqlAssessmentRepository
from .scoring import ScoreResult, is_passing, score_answers
from .window import WindowEvaluation, WindowStatus, allotted_deadline, evaluate_window

logger = logging.getLogger(__name__)

_WRITE_RETRIES = 2


@dataclass(frozen=True)
class SessionStart:
    attempt: Attempt
    remaining_seconds: int
    resumed: bool
    window: Optional[WindowEvaluation] = None
    entitlement_expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScoredAttempt:
    attempt: Attempt
    result: Optional[ScoreResult]


def result_from_attempt(attempt: Attempt) -> Optional[ScoreResult]:
    if not attempt.is_completed:
        return None
    return ScoreResult(
        correct_count=attempt.correct_count or 0,
        wrong_count=attempt.wrong_count or 0,
        unanswered_count=attempt.unanswered_count or 0,
        percentage=attempt.percentage or 0,
        missed_questions=list(attempt.missed_questions or []),
    )


class AssessmentSessionService:
    def __init__(
        self,
        store: AttemptStore,
        assessments: SqlAssessmentRepository,
        questions: QuestionSource,
        entitlement: EntitlementCheck,
        clock: Optional[Clock] = None,
        retake_policy: Optional[RetakePolicy] = None,
        timings: Optional[SessionTimings] = None,
    ):
        self.store = store
        self.assessments = assessments
        self.questions = questions
        self.entitlement = entitlement
        self.clock = clock or SystemClock()
        self.retake_policy = retake_policy or MaxAttemptsPolicy(settings.MAX_ATTEMPTS_PER_ASSESSMENT)
        self.timings = timings or settings.session_timings

    # ------------------------------------------------------------------
    # Window
    # ------------------------------------------------------------------

    def evaluate_window(self, assessment_id: str, now: Optional[datetime] = None) -> WindowEvaluation:
        assessment = self.assessments.require(assessment_id)
        return evaluate_window(
            assessment,
            now or self.clock.now(),
            closing_soon_threshold_seconds=self.timings.closing_soon_threshold_seconds,
        )

    def time_remaining(self, attempt: Attempt, now: Optional[datetime] = None) -> int:
        if attempt.is_completed:
            return 0
        now = ensure_utc(now or self.clock.now())
        return max(0, int((ensure_utc(attempt.deadline_at) - now).total_seconds()))

    def _is_overdue(self, attempt: Attempt, now: datetime) -> bool:
        grace = timedelta(seconds=self.timings.submit_grace_seconds)
        return ensure_utc(now) > ensure_utc(attempt.deadline_at) + grace

    # ------------------------------------------------------------------
    # Start / resume
    # ------------------------------------------------------------------

    def start_or_resume(
        self,
        user_id: str,
        assessment_id: str,
        user_email: str = "",
        user_name: str = "",
    ) -> SessionStart:
        now = self.clock.now()
        assessment = self.assessments.require(assessment_id)
        if not (assessment.is_active and assessment.master_enabled):
            raise NotEligible(IneligibleReason.INACTIVE)

        existing = self.store.get_open_attempt(user_id, assessment_id)
        if existing is not None:
            if self._is_overdue(existing, now):
                sealed = self._seal(existing, now, auto_submitted=True)
                raise DeadlinePassed(existing.id, attempt=sealed)
            logger.info(
                "Resuming attempt %s for user=%s", existing.id, user_id,
                extra={"attempt_id": existing.id, "assessment_id": assessment_id},
            )
            return SessionStart(
                attempt=existing,
                remaining_seconds=self.time_remaining(existing, now),
                resumed=True,
            )

        evaluation = evaluate_window(
            assessment, now, closing_soon_threshold_seconds=self.timings.closing_soon_threshold_seconds,
        )
        if not evaluation.is_available:
            if evaluation.status == WindowStatus.NOT_STARTED:
                raise NotEligible(IneligibleReason.NOT_YET_OPEN)
            raise NotEligible(IneligibleReason.CLOSED)

        if not self.entitlement.is_entitled(user_id, assessment_id):
            raise NotEligible(IneligibleReason.UNENTITLED)
        expires_at = ensure_utc(self.entitlement.expires_at(user_id, assessment_id))
        if expires_at is not None and expires_at <= ensure_utc(now):
            raise NotEligible(IneligibleReason.ENTITLEMENT_EXPIRED)

        completed = self.store.count_completed(user_id, assessment_id)
        if not self.retake_policy.allows_new_attempt(user_id, assessment_id, completed):
            raise NotEligible(IneligibleReason.ATTEMPTS_EXHAUSTED)

        questions = self.questions.draw(assessment_id)
        attempt = Attempt(
            id=uuid.uuid4().hex,
            user_id=user_id,
            assessment_id=assessment_id,
            user_email=user_email,
            user_name=user_name,
            started_at=now,
            deadline_at=allotted_deadline(evaluation, now),
            time_spent_seconds=0,
            question_ids=[str(question.get("id")) for question in questions],
            answers=[None] * len(questions),
            flagged=[],
            is_completed=False,
            auto_submitted=False,
            reviewed_questions=[],
            version=1,
        )
        attempt = self.store.create(attempt)
        logger.info(
            "Started attempt %s for user=%s allotted=%ds status=%s",
            attempt.id, user_id, evaluation.remaining_seconds, evaluation.status.value,
            extra={"attempt_id": attempt.id, "assessment_id": assessment_id},
        )
        return SessionStart(
            attempt=attempt,
            remaining_seconds=evaluation.remaining_seconds,
            resumed=False,
            window=evaluation,
            entitlement_expires_at=expires_at,
        )

    # ------------------------------------------------------------------
    # In-progress mutations
    # ------------------------------------------------------------------

    def record_answer(
        self,
        attempt_id: str,
        user_id: str,
        question_index: int,
        option_index: Optional[int],
    ) -> Attempt:
        """Overwrite one answer slot; ``None`` clears it."""

        def apply(attempt: Attempt) -> Dict[str, Any]:
            answers = list(attempt.answers or [])
            _check_question_index(question_index, len(answers))
            if option_index is not None:
                self._check_option_index(attempt, question_index, option_index)
            answers[question_index] = option_index
            return {"answers": answers}

        return self._mutate(attempt_id, user_id, apply)

    def toggle_flag(self, attempt_id: str, user_id: str, question_index: int) -> Attempt:
        def apply(attempt: Attempt) -> Dict[str, Any]:
            _check_question_index(question_index, len(attempt.answers or []))
            flagged = set(attempt.flagged or [])
            flagged ^= {question_index}
            return {"flagged": sorted(flagged)}

        return self._mutate(attempt_id, user_id, apply)

    def heartbeat(
        self,
        attempt_id: str,
        user_id: str,
        time_spent_seconds: int,
        answers: Sequence[Optional[int]],
        flagged: Iterable[int],
    ) -> bool:
        """Best-effort auto-save of the whole client snapshot.

        Returns False instead of raising when the write could not be applied;
        the client simply tries again on its next tick.
        """
        try:
            attempt = self._load(attempt_id, user_id)
        except PersistenceError:
            logger.warning("Heartbeat skipped: store unavailable", extra={"attempt_id": attempt_id})
            return False
        if attempt.is_completed:
            logger.info("Heartbeat ignored for sealed attempt", extra={"attempt_id": attempt_id})
            return False

        answers = self._validated_answers(attempt, answers)
        flags = self._validated_flags(attempt, flagged)
        now = self.clock.now()
        if self._is_overdue(attempt, now):
            logger.warning("Heartbeat after deadline ignored", extra={"attempt_id": attempt_id})
            return False

        fields = {
            "answers": answers,
            "flagged": flags,
            "time_spent_seconds": max(attempt.time_spent_seconds or 0, int(time_spent_seconds or 0)),
        }
        try:
            self.store.update(attempt.id, fields, expected_version=attempt.version)
        except (PersistenceError, StaleWrite, AttemptSealed) as exc:
            logger.warning(
                "Heartbeat not persisted (%s); will retry on next tick", exc.code,
                extra={"attempt_id": attempt_id},
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        attempt_id: str,
        user_id: str,
        answers: Sequence[Optional[int]],
        flagged: Iterable[int],
        time_spent_seconds: int,
    ) -> Attempt:
        attempt = self._load(attempt_id, user_id)
        if attempt.is_completed:
            return attempt

        now = self.clock.now()
        if self._is_overdue(attempt, now):
            sealed = self._seal(attempt, now, auto_submitted=True)
            logger.warning("Late submit rejected; sealed stored snapshot", extra={"attempt_id": attempt_id})
            raise DeadlinePassed(attempt_id, attempt=sealed)

        return self._seal(
            attempt,
            now,
            answers=self._validated_answers(attempt, answers),
            flagged=self._validated_flags(attempt, flagged),
            time_spent_seconds=time_spent_seconds,
            auto_submitted=False,
        )

    def force_submit(self, attempt_id: str, user_id: Optional[str] = None) -> Attempt:
        """Seal from the last stored snapshot; used when the allotted time runs out."""
        attempt = self._load(attempt_id, user_id)
        if attempt.is_completed:
            return attempt
        return self._seal(attempt, self.clock.now(), auto_submitted=True)

    def _seal(
        self,
        attempt: Attempt,
        now: datetime,
        answers: Optional[List[Optional[int]]] = None,
        flagged: Optional[List[int]] = None,
        time_spent_seconds: Optional[int] = None,
        auto_submitted: bool = False,
    ) -> Attempt:
        questions = self.questions_for(attempt)
        assessment = self.assessments.get(attempt.assessment_id)
        passing_percentage = (
            assessment.passing_percentage if assessment is not None else settings.DEFAULT_PASSING_PERCENTAGE
        )

        for _ in range(_WRITE_RETRIES):
            final_answers = list(answers if answers is not None else (attempt.answers or []))
            final_flags = list(flagged if flagged is not None else (attempt.flagged or []))
            if time_spent_seconds is None:
                spent = self._elapsed_seconds(attempt, now)
            else:
                spent = int(time_spent_seconds)
            result = score_answers(questions, final_answers)
            fields = {
                "answers": final_answers,
                "flagged": final_flags,
                "time_spent_seconds": max(attempt.time_spent_seconds or 0, spent),
                "completed_at": now,
                "is_completed": True,
                "auto_submitted": auto_submitted,
                "correct_count": result.correct_count,
                "wrong_count": result.wrong_count,
                "unanswered_count": result.unanswered_count,
                "percentage": result.percentage,
                "missed_questions": result.missed_questions,
                "passed": is_passing(result, passing_percentage),
            }
            try:
                sealed = self.store.update(attempt.id, fields, expected_version=attempt.version)
            except AttemptSealed:
                # Someone else sealed it first; the existing record wins.
                return self._load(attempt.id)
            except StaleWrite:
                attempt = self._load(attempt.id)
                if attempt.is_completed:
                    return attempt
                continue
            logger.info(
                "Sealed attempt %s correct=%d wrong=%d unanswered=%d percentage=%d auto=%s",
                sealed.id, result.correct_count, result.wrong_count, result.unanswered_count,
                result.percentage, auto_submitted,
                extra={"attempt_id": sealed.id, "assessment_id": sealed.assessment_id},
            )
            return sealed
        raise StaleWrite(f"Attempt {attempt.id} kept changing during submission; retry")

    def _elapsed_seconds(self, attempt: Attempt, now: datetime) -> int:
        end = min(ensure_utc(now), ensure_utc(attempt.deadline_at))
        return max(0, int((end - ensure_utc(attempt.started_at)).total_seconds()))

    # ------------------------------------------------------------------
    # Results and review
    # ------------------------------------------------------------------

    def get_result(self, attempt_id: str, requesting_user_id: str) -> ScoredAttempt:
        attempt = self._load(attempt_id, requesting_user_id)
        return ScoredAttempt(attempt=attempt, result=result_from_attempt(attempt))

    def mark_reviewed(self, attempt_id: str, user_id: str, question_index: int) -> Attempt:
        attempt = self._load(attempt_id, user_id)
        if not attempt.is_completed:
            raise ReviewUnavailable("Review is available once the attempt is submitted")
        _check_question_index(question_index, len(attempt.answers or []))
        reviewed = set(attempt.reviewed_questions or [])
        if question_index in reviewed:
            return attempt
        reviewed.add(question_index)
        return self.store.update(attempt.id, {"reviewed_questions": sorted(reviewed)})

    def history(self, user_id: str) -> List[Attempt]:
        return self.store.list_for_user(user_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self, attempt_id: str, user_id: Optional[str] = None) -> Attempt:
        attempt = self.store.get_by_id(attempt_id)
        if attempt is None:
            raise NotFound(f"Attempt {attempt_id} not found")
        if user_id is not None and attempt.user_id != user_id:
            logger.warning(
                "Cross-user attempt access denied for user=%s", user_id,
                extra={"attempt_id": attempt_id},
            )
            raise AccessDenied("This attempt belongs to another user")
        return attempt

    def _mutate(
        self,
        attempt_id: str,
        user_id: str,
        apply: Callable[[Attempt], Mapping[str, Any]],
    ) -> Attempt:
        for _ in range(_WRITE_RETRIES):
            attempt = self._load(attempt_id, user_id)
            if attempt.is_completed:
                logger.info("Write to sealed attempt ignored", extra={"attempt_id": attempt_id})
                return attempt
            now = self.clock.now()
            if self._is_overdue(attempt, now):
                sealed = self._seal(attempt, now, auto_submitted=True)
                raise DeadlinePassed(attempt_id, attempt=sealed)
            fields = apply(attempt)
            try:
                return self.store.update(attempt.id, fields, expected_version=attempt.version)
            except AttemptSealed:
                return self._load(attempt_id)
            except StaleWrite:
                continue
        raise StaleWrite(f"Attempt {attempt_id} kept changing; retry")

    def questions_for(self, attempt: Attempt) -> List[Dict[str, Any]]:
        """The questions drawn into ``attempt``, in the order they were shown."""
        return self.questions.for_attempt(attempt)

    def _check_option_index(self, attempt: Attempt, question_index: int, option_index: int) -> None:
        questions = self.questions_for(attempt)
        options = questions[question_index].get("options") or [] if question_index < len(questions) else []
        if not isinstance(option_index, int) or not 0 <= option_index < len(options):
            raise InvalidIndex(
                f"Option {option_index} is out of range for question {question_index} "
                f"({len(options)} options)"
            )

    def _validated_answers(self, attempt: Attempt, answers: Sequence[Optional[int]]) -> List[Optional[int]]:
        expected = len(attempt.answers or [])
        answers = list(answers)
        if len(answers) != expected:
            raise InvalidIndex(f"Expected {expected} answers, got {len(answers)}")
        questions = self.questions_for(attempt)
        for index, option in enumerate(answers):
            if option is None:
                continue
            options = questions[index].get("options") or [] if index < len(questions) else []
            if not isinstance(option, int) or not 0 <= option < len(options):
                raise InvalidIndex(f"Option {option} is out of range for question {index}")
        return answers

    def _validated_flags(self, attempt: Attempt, flagged: Iterable[int]) -> List[int]:
        total = len(attempt.answers or [])
        flags = set()
        for index in flagged or []:
            _check_question_index(index, total)
            flags.add(index)
        return sorted(flags)


def _check_question_index(question_index: int, total: int) -> None:
    if not isinstance(question_index, int) or isinstance(question_index, bool) or not 0 <= question_index < total:
        raise InvalidIndex(f"Question index {question_index} is out of range (0..{total - 1})")
