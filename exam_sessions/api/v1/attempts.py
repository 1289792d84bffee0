"""Attempt routes: answer recording, auto-save, submission and results."""

from typing import List

from fastapi import APIRouter, Depends

from ...components.assessments.errors import PersistenceError
from ...components.assessments.scoring import correct_option_index
from ...components.assessments.service import AssessmentSessionService, ScoredAttempt
from ...deps import CurrentUser, get_current_user, get_session_service
from ...schemas.attempt import (
    AnswerRequest,
    AttemptResponse,
    FlagRequest,
    HeartbeatResponse,
    HistoryEntry,
    ResultResponse,
    ReviewedRequest,
    ReviewQuestion,
    ScoreResponse,
    SnapshotRequest,
)

router = APIRouter(prefix="/attempts", tags=["Attempts"])
me_router = APIRouter(prefix="/me", tags=["Attempts"])


def _result_response(service: AssessmentSessionService, scored: ScoredAttempt) -> ResultResponse:
    attempt = scored.attempt
    response = ResultResponse(
        attempt=AttemptResponse.model_validate(attempt),
        remaining_seconds=service.time_remaining(attempt),
        reviewed_questions=list(attempt.reviewed_questions or []),
    )
    if scored.result is not None:
        response.result = ScoreResponse(**scored.result.to_dict(), passed=attempt.passed)
        response.questions = [
            ReviewQuestion(
                id=str(q.get("id", index)),
                text=q.get("text", ""),
                options=list(q.get("options") or []),
                correct_option_index=correct_option_index(q),
                explanation=q.get("explanation"),
            )
            for index, q in enumerate(service.questions_for(attempt))
        ]
    return response


@router.post("/{attempt_id}/answers", response_model=AttemptResponse)
def record_answer(
    attempt_id: str,
    data: AnswerRequest,
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.record_answer(attempt_id, current_user.id, data.question_index, data.option_index)


@router.post("/{attempt_id}/flags", response_model=AttemptResponse)
def toggle_flag(
    attempt_id: str,
    data: FlagRequest,
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.toggle_flag(attempt_id, current_user.id, data.question_index)


@router.post("/{attempt_id}/heartbeat", response_model=HeartbeatResponse)
def heartbeat(
    attempt_id: str,
    data: SnapshotRequest,
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Auto-save the client snapshot. ``saved=false`` means try again next tick."""
    saved = service.heartbeat(attempt_id, current_user.id, data.time_spent_seconds, data.answers, data.flagged)
    try:
        remaining = service.time_remaining(service.get_result(attempt_id, current_user.id).attempt)
    except PersistenceError:
        remaining = None
    return HeartbeatResponse(saved=saved, remaining_seconds=remaining)


@router.post("/{attempt_id}/submit", response_model=ResultResponse)
def submit_attempt(
    attempt_id: str,
    data: SnapshotRequest,
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    service.submit(attempt_id, current_user.id, data.answers, data.flagged, data.time_spent_seconds)
    return _result_response(service, service.get_result(attempt_id, current_user.id))


@router.post("/{attempt_id}/force-submit", response_model=ResultResponse)
def force_submit_attempt(
    attempt_id: str,
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Seal the attempt from its last auto-saved snapshot (timer expiry)."""
    service.force_submit(attempt_id, current_user.id)
    return _result_response(service, service.get_result(attempt_id, current_user.id))


@router.get("/{attempt_id}/result", response_model=ResultResponse)
def get_result(
    attempt_id: str,
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return _result_response(service, service.get_result(attempt_id, current_user.id))


@router.post("/{attempt_id}/reviewed", response_model=ResultResponse)
def mark_reviewed(
    attempt_id: str,
    data: ReviewedRequest,
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    service.mark_reviewed(attempt_id, current_user.id, data.question_index)
    return _result_response(service, service.get_result(attempt_id, current_user.id))


@me_router.get("/attempts", response_model=List[HistoryEntry])
def my_attempts(
    service: AssessmentSessionService = Depends(get_session_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.history(current_user.id)
