from .assessment import (
    AssessmentCreate,
    AssessmentResponse,
    AccessGrantCreate,
    AccessGrantResponse,
    AssessmentStats,
    LeaderboardEntry,
    MasterSwitchUpdate,
    QuestionIn,
    ScheduleUpdate,
    WindowResponse,
)
from .attempt import (
    AnswerRequest,
    AttemptResponse,
    FlagRequest,
    HeartbeatResponse,
    HistoryEntry,
    QuestionView,
    ResultResponse,
    ReviewedRequest,
    ReviewQuestion,
    ScoreResponse,
    SnapshotRequest,
    StartResponse,
)

__all__ = [
    "AssessmentCreate",
    "AssessmentResponse",
    "AccessGrantCreate",
    "AccessGrantResponse",
    "AssessmentStats",
    "LeaderboardEntry",
    "MasterSwitchUpdate",
    "QuestionIn",
    "ScheduleUpdate",
    "WindowResponse",
    "AnswerRequest",
    "AttemptResponse",
    "FlagRequest",
    "HeartbeatResponse",
    "HistoryEntry",
    "QuestionView",
    "ResultResponse",
    "ReviewedRequest",
    "ReviewQuestion",
    "ScoreResponse",
    "SnapshotRequest",
    "StartResponse",
]
