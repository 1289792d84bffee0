from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from ..models.assessment import AssessmentKind


class QuestionIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=64)
    text: str = Field(min_length=1)
    options: List[str] = Field(min_length=2)
    correct_option_index: int = Field(ge=0)
    explanation: Optional[str] = None


class AssessmentCreate(BaseModel):
    id: Optional[str] = Field(default=None, max_length=64)
    kind: AssessmentKind = AssessmentKind.WEEKLY
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    questions: List[QuestionIn] = Field(min_length=1)
    exam_duration_minutes: Optional[int] = Field(default=None, ge=1, le=600)
    total_questions: Optional[int] = Field(default=None, ge=1)
    window_opens_at: Optional[datetime] = None
    window_duration_minutes: Optional[int] = Field(default=None, ge=1)
    requires_entitlement: Optional[bool] = None
    passing_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    shuffle_questions: bool = False
    activate: bool = False


class ScheduleUpdate(BaseModel):
    window_opens_at: Optional[datetime] = None
    window_duration_minutes: Optional[int] = Field(default=None, ge=1)
    exam_duration_minutes: Optional[int] = Field(default=None, ge=1, le=600)


class MasterSwitchUpdate(BaseModel):
    enabled: bool


class AccessGrantCreate(BaseModel):
    user_id: str = Field(min_length=1, max_length=128)
    assessment_id: str = Field(min_length=1, max_length=64)
    payment_reference: str = ""
    expires_at: Optional[datetime] = None


class AccessGrantResponse(BaseModel):
    id: int
    user_id: str
    assessment_id: str
    payment_reference: Optional[str] = None
    granted_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AssessmentResponse(BaseModel):
    id: str
    kind: AssessmentKind
    title: str
    description: Optional[str] = None
    exam_duration_minutes: int
    total_questions: int
    shuffle_questions: bool = False
    window_opens_at: Optional[datetime] = None
    window_duration_minutes: Optional[int] = None
    is_active: bool
    master_enabled: bool
    requires_entitlement: bool
    passing_percentage: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WindowResponse(BaseModel):
    assessment_id: str
    is_available: bool
    remaining_seconds: int
    status: str
    window_opens_at: Optional[datetime] = None
    window_closes_at: Optional[datetime] = None
    # Display copy for the countdown banner
    status_label: str
    time_info: str
    can_start: bool
    available_minutes: int


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    user_name: str
    percentage: int
    correct_count: int
    time_spent_seconds: int
    completed_at: Optional[datetime] = None


class AssessmentStats(BaseModel):
    assessment_id: str
    total_attempts: int
    completed_attempts: int
    average_percentage: float
    average_time_minutes: float
    top_percentage: int
    pass_rate: float
