from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict


class AnswerRequest(BaseModel):
    question_index: int
    # null clears the answer
    option_index: Optional[int] = None


class FlagRequest(BaseModel):
    question_index: int


class SnapshotRequest(BaseModel):
    time_spent_seconds: int = Field(default=0, ge=0)
    answers: List[Optional[int]]
    flagged: List[int] = Field(default_factory=list)


class ReviewedRequest(BaseModel):
    question_index: int


class HeartbeatResponse(BaseModel):
    saved: bool
    remaining_seconds: Optional[int] = None


class QuestionView(BaseModel):
    """A question as shown to a candidate: no answer key."""

    id: str
    text: str
    options: List[str]


class ReviewQuestion(QuestionView):
    correct_option_index: Optional[int] = None
    explanation: Optional[str] = None


class AttemptResponse(BaseModel):
    id: str
    user_id: str
    assessment_id: str
    started_at: datetime
    deadline_at: datetime
    completed_at: Optional[datetime] = None
    time_spent_seconds: int
    answers: List[Optional[int]]
    flagged: List[int]
    question_ids: Optional[List[str]] = None
    is_completed: bool
    auto_submitted: bool
    version: int

    model_config = ConfigDict(from_attributes=True)


class StartResponse(BaseModel):
    attempt: AttemptResponse
    remaining_seconds: int
    resumed: bool
    questions: List[QuestionView]
    window: Optional[Dict[str, Any]] = None
    entitlement_expires_at: Optional[datetime] = None


class ScoreResponse(BaseModel):
    correct_count: int
    wrong_count: int
    unanswered_count: int
    percentage: int
    missed_questions: List[int]
    passed: Optional[bool] = None


class ResultResponse(BaseModel):
    attempt: AttemptResponse
    result: Optional[ScoreResponse] = None
    remaining_seconds: int = 0
    reviewed_questions: List[int] = Field(default_factory=list)
    # Answer key, only once the attempt is sealed
    questions: Optional[List[ReviewQuestion]] = None


class HistoryEntry(BaseModel):
    id: str
    assessment_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    is_completed: bool
    auto_submitted: bool
    percentage: Optional[int] = None
    passed: Optional[bool] = None
    time_spent_seconds: int

    model_config = ConfigDict(from_attributes=True)
