from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from ..platform.database import Base


class AccessGrant(Base):
    """Paid access to one assessment, written by the payment subsystem."""

    __tablename__ = "access_grants"
    __table_args__ = (
        Index("ix_access_grants_user_assessment", "user_id", "assessment_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False)
    assessment_id = Column(String(64), ForeignKey("assessments.id"), nullable=False)
    payment_reference = Column(String(200), default="")
    granted_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True))
