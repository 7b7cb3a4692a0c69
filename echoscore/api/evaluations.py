"""API endpoints for study-level evaluations and teacher worklists."""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from echoscore.database import get_db
from echoscore.models.user import User
from echoscore.services.auth.dependencies import get_current_user, require_teacher
from echoscore.services.evaluation_service import (
    STATUS_COMPLETED,
    STATUS_PENDING,
    evaluation_service,
)

router = APIRouter(prefix="/evaluations", tags=["evaluations"])
teachers_router = APIRouter(prefix="/teachers", tags=["teachers"])


class EvaluationRequest(BaseModel):
    score: Any = None  # range checked by the service
    feedback_summary: Optional[str] = None


@router.get("")
async def list_evaluations_by_student(
    student_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Every evaluation on a student's studies."""
    return evaluation_service.list_evaluations_by_student(db, student_id)


@router.get("/by-study/{study_id}")
async def get_study_evaluation(
    study_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Canonical evaluation of a study; has_evaluation is false when none exists."""
    return {"evaluation": evaluation_service.get_study_evaluation(db, study_id).to_dict()}


@router.post("/{study_id}/request", status_code=201)
async def request_evaluation(
    study_id: int,
    user: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    """Open a pending evaluation round for the calling teacher."""
    form = evaluation_service.request_evaluation(db, study_id, user.id)
    return form.to_dict()


@router.post("/{study_id}", status_code=201)
async def create_evaluation(
    study_id: int,
    payload: EvaluationRequest,
    user: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    form = evaluation_service.create_evaluation(
        db, study_id, user.id, payload.score, payload.feedback_summary
    )
    return form.to_dict()


@router.put("/{evaluation_id}")
async def update_evaluation(
    evaluation_id: int,
    payload: EvaluationRequest,
    user: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    form = evaluation_service.update_evaluation(
        db, evaluation_id, user.id, payload.score, payload.feedback_summary
    )
    return form.to_dict()


@teachers_router.get("/{teacher_id}/evaluations/pending")
async def list_pending_evaluations(
    teacher_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"pending": evaluation_service.list_teacher_evaluations(db, teacher_id, STATUS_PENDING)}


@teachers_router.get("/{teacher_id}/evaluations/completed")
async def list_completed_evaluations(
    teacher_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {
        "completed": evaluation_service.list_teacher_evaluations(db, teacher_id, STATUS_COMPLETED)
    }
