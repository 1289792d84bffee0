"""Admin routes: authoring, activation, scheduling, statistics and access grants."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...components.assessments import catalog
from ...components.assessments.entitlements import grant_access
from ...components.assessments.reporting import assessment_statistics
from ...components.assessments.repository import SqlAssessmentRepository
from ...deps import CurrentUser, get_current_admin
from ...models.assessment import AssessmentKind
from ...platform.database import get_db
from ...schemas.assessment import (
    AccessGrantCreate,
    AccessGrantResponse,
    AssessmentCreate,
    AssessmentResponse,
    AssessmentStats,
    MasterSwitchUpdate,
    ScheduleUpdate,
)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/assessments", response_model=List[AssessmentResponse])
def list_assessments(
    kind: Optional[AssessmentKind] = Query(default=None),
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin),
):
    return catalog.list_assessments(db, kind)


@router.post("/assessments", response_model=AssessmentResponse, status_code=status.HTTP_201_CREATED)
def create_assessment(
    data: AssessmentCreate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin),
):
    return catalog.create_assessment(
        db,
        assessment_id=data.id,
        kind=data.kind,
        title=data.title,
        description=data.description,
        questions=[q.model_dump(exclude_none=True) for q in data.questions],
        exam_duration_minutes=data.exam_duration_minutes,
        total_questions=data.total_questions,
        window_opens_at=data.window_opens_at,
        window_duration_minutes=data.window_duration_minutes,
        requires_entitlement=data.requires_entitlement,
        passing_percentage=data.passing_percentage,
        shuffle_questions=data.shuffle_questions,
        activate=data.activate,
        created_by=admin.id,
    )


@router.post("/assessments/{assessment_id}/activate", response_model=AssessmentResponse)
def activate_assessment(
    assessment_id: str,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin),
):
    return catalog.activate_assessment(db, assessment_id)


@router.put("/assessments/{assessment_id}/master", response_model=AssessmentResponse)
def set_master_switch(
    assessment_id: str,
    data: MasterSwitchUpdate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin),
):
    return catalog.set_master_enabled(db, assessment_id, data.enabled)


@router.put("/assessments/{assessment_id}/schedule", response_model=AssessmentResponse)
def update_schedule(
    assessment_id: str,
    data: ScheduleUpdate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin),
):
    return catalog.update_schedule(
        db,
        assessment_id,
        window_opens_at=data.window_opens_at,
        window_duration_minutes=data.window_duration_minutes,
        exam_duration_minutes=data.exam_duration_minutes,
    )


@router.get("/assessments/{assessment_id}/stats", response_model=AssessmentStats)
def get_stats(
    assessment_id: str,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin),
):
    return assessment_statistics(db, assessment_id)


@router.post("/access-grants", response_model=AccessGrantResponse, status_code=status.HTTP_201_CREATED)
def create_access_grant(
    data: AccessGrantCreate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin),
):
    """Record paid access; normally written by the payment webhook."""
    SqlAssessmentRepository(db).require(data.assessment_id)
    return grant_access(
        db,
        data.user_id,
        data.assessment_id,
        payment_reference=data.payment_reference,
        expires_at=data.expires_at,
    )
