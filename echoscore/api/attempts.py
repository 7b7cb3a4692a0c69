"""API endpoints for scored attempts on clips and their item responses."""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from echoscore.database import get_db
from echoscore.models.user import User
from echoscore.services.attempt_service import attempt_service
from echoscore.services.auth.dependencies import get_current_user, require_teacher

router = APIRouter(tags=["attempts"])


# =============================================================================
# Request Models
# =============================================================================

class CreateAttemptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    protocol_key: Optional[str] = Field(default=None, alias="protocolKey")
    responses: Any = None  # shape checked by the service so malformed input is a 400
    comment: Optional[str] = None


class UpsertResponseRequest(BaseModel):
    protocol_item_id: int
    score: float


# =============================================================================
# Attempts
# =============================================================================

@router.post("/clips/{clip_id}/attempts", status_code=201)
async def create_attempt(
    clip_id: int,
    payload: CreateAttemptRequest,
    user: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    """
    Score a clip against a protocol template.

    Returns the attempt id and server timestamp, plus the item keys that
    were accepted and the unknown ones that were skipped.
    """
    result = attempt_service.create_attempt(
        db,
        clip_id=clip_id,
        teacher_id=user.id,
        responses=payload.responses,
        comment=payload.comment,
        protocol_key=payload.protocol_key,
    )
    return {
        "attemptId": result.attempt_id,
        "submitted_at": result.submitted_at.isoformat() if result.submitted_at else None,
        "accepted": result.accepted,
        "skipped": result.skipped,
    }


@router.get("/clips/{clip_id}/attempts")
async def list_attempts(
    clip_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Attempts on a clip, most recent first, with totals computed on read."""
    return {"attempts": attempt_service.list_attempts(db, clip_id)}


# =============================================================================
# Responses
# =============================================================================

@router.post("/attempts/{attempt_id}/responses", status_code=201)
async def upsert_response(
    attempt_id: int,
    payload: UpsertResponseRequest,
    user: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    """Insert or correct one item score within an attempt."""
    attempt_service.upsert_response(db, attempt_id, payload.protocol_item_id, payload.score)
    return {"message": "Response saved"}


@router.get("/attempts/{attempt_id}/responses")
async def list_responses(
    attempt_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return attempt_service.list_responses(db, attempt_id)
