from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, Enum, Boolean
from sqlalchemy.sql import func
from ..platform.database import Base
import enum


class AssessmentKind(str, enum.Enum):
    WEEKLY = "weekly"
    PAID_EXAM = "paid_exam"


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(String(64), primary_key=True, index=True)
    kind = Column(Enum(AssessmentKind), nullable=False, default=AssessmentKind.WEEKLY, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, default="")
    # [{"id", "text", "options": [...], "correct_option_index", "explanation"?}]
    questions = Column(JSON, nullable=False, default=list)
    exam_duration_minutes = Column(Integer, nullable=False, default=90)
    total_questions = Column(Integer, nullable=False, default=0)
    # When set, each attempt draws a random subset of the pool instead of the first N.
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    # NULL window_opens_at means unscheduled: enterable whenever the gates are on.
    window_opens_at = Column(DateTime(timezone=True))
    window_duration_minutes = Column(Integer)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    master_enabled = Column(Boolean, nullable=False, default=True)
    requires_entitlement = Column(Boolean, nullable=False, default=False)
    passing_percentage = Column(Integer, nullable=False, default=70)
    created_by = Column(String(128))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_scheduled(self) -> bool:
        return self.window_opens_at is not None
