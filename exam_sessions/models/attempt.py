from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Boolean, Index
from sqlalchemy.sql import func
from ..platform.database import Base


class Attempt(Base):
    __tablename__ = "attempts"
    __table_args__ = (
        Index("ix_attempts_user_assessment_open", "user_id", "assessment_id", "is_completed"),
    )

    id = Column(String(32), primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    assessment_id = Column(String(64), ForeignKey("assessments.id"), nullable=False, index=True)
    user_email = Column(String(320), default="")
    user_name = Column(String(200), default="")
    started_at = Column(DateTime(timezone=True), nullable=False)
    deadline_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True))
    time_spent_seconds = Column(Integer, nullable=False, default=0)
    answers = Column(JSON, nullable=False, default=list)
    flagged = Column(JSON, nullable=False, default=list)
    # Ids of the questions drawn at start, in presentation order. NULL for
    # attempts that predate per-attempt draws (first total_questions of the pool).
    question_ids = Column(JSON)
    is_completed = Column(Boolean, nullable=False, default=False, index=True)
    auto_submitted = Column(Boolean, nullable=False, default=False)

    # Written once, when the attempt is sealed
    correct_count = Column(Integer)
    wrong_count = Column(Integer)
    unanswered_count = Column(Integer)
    percentage = Column(Integer)
    missed_questions = Column(JSON)
    passed = Column(Boolean)

    reviewed_questions = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
