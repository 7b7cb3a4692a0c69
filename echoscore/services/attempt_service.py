"""Business logic for the evaluation attempt/response ledger."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from echoscore.database import upsert_insert
from echoscore.models.evaluation_attempt import EvaluationAttempt
from echoscore.models.evaluation_response import EvaluationResponse
from echoscore.models.user import User
from echoscore.models.video_clip import VideoClip
from echoscore.services.errors import InvalidInputError, NotFoundError
from echoscore.services.evaluation_service import evaluation_service
from echoscore.services.taxonomy_service import taxonomy_service

logger = logging.getLogger(__name__)


def clamp_score(score: float, max_score: float) -> float:
    """Constrain a raw score into [0, max_score]."""
    return max(0, min(max_score, score))


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def validate_responses(responses: Any) -> None:
    """
    Reject malformed response payloads before anything is written.

    Raises:
        InvalidInputError: not a list, or an entry without a numeric score
    """
    if not isinstance(responses, list):
        raise InvalidInputError("responses must be a list")
    for entry in responses:
        if not isinstance(entry, dict) or not _is_number(entry.get("score")):
            raise InvalidInputError("Every response needs a numeric score")


@dataclass
class AttemptResult:
    """Outcome of create_attempt: accepted and skipped item keys are both reported."""

    attempt_id: int
    submitted_at: datetime
    accepted: List[str] = field(default_factory=list)
    skipped: List[Any] = field(default_factory=list)


class AttemptService:
    """Service for recording and reading scored attempts."""

    @staticmethod
    def _upsert_response(db: Session, attempt_id: int, item_id: int, score: float) -> None:
        stmt = upsert_insert(db, EvaluationResponse).values(
            attempt_id=attempt_id, protocol_item_id=item_id, score=score
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["attempt_id", "protocol_item_id"],
            set_={"score": stmt.excluded.score},
        )
        db.execute(stmt)

    @staticmethod
    def create_attempt(
        db: Session,
        clip_id: int,
        teacher_id: int,
        responses: Any,
        comment: Optional[str] = None,
        protocol_key: Optional[str] = None,
    ) -> AttemptResult:
        """
        Record a teacher's scored pass over a clip.

        The header, every response and the study evaluation rollup are
        written in one transaction. Unknown item keys are skipped and
        reported; known ones are clamped to [0, max_score].

        Args:
            db: Database session
            clip_id: Clip being scored
            teacher_id: Scoring teacher
            responses: List of {"itemKey": str, "score": number}
            comment: Free-text comment
            protocol_key: Template the item keys belong to (all templates if None)

        Returns:
            AttemptResult with the attempt id, server timestamp and item keys

        Raises:
            InvalidInputError: malformed responses (nothing is written)
            NotFoundError: unknown clip or protocol
        """
        validate_responses(responses)

        if db.get(VideoClip, clip_id) is None:
            raise NotFoundError(f"Clip {clip_id} not found")

        protocol_id = None
        if protocol_key:
            protocol_id = taxonomy_service.get_protocol_by_key(db, protocol_key).id

        try:
            attempt = EvaluationAttempt(
                clip_id=clip_id,
                teacher_id=teacher_id,
                protocol_id=protocol_id,
                comment=comment,
            )
            db.add(attempt)
            db.flush()
            db.refresh(attempt)

            result = AttemptResult(attempt_id=attempt.id, submitted_at=attempt.submitted_at)
            for entry in responses:
                item_key = entry.get("itemKey")
                resolved = (
                    taxonomy_service.resolve_item(db, item_key, protocol_id)
                    if isinstance(item_key, str)
                    else None
                )
                if resolved is None:
                    result.skipped.append(item_key)
                    continue

                item_id, max_score = resolved
                AttemptService._upsert_response(
                    db, attempt.id, item_id, clamp_score(entry["score"], max_score)
                )
                result.accepted.append(item_key)

            evaluation_service.recompute_study_evaluation(db, clip_id, teacher_id)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error(
                "Failed to record attempt for clip=%s teacher=%s",
                clip_id,
                teacher_id,
                exc_info=True,
            )
            raise

        if result.skipped:
            logger.warning(
                "Attempt %s skipped unknown item keys: %s", result.attempt_id, result.skipped
            )
        logger.info(
            "Recorded attempt %s for clip=%s teacher=%s (%d responses)",
            result.attempt_id,
            clip_id,
            teacher_id,
            len(result.accepted),
        )
        return result

    @staticmethod
    def upsert_response(db: Session, attempt_id: int, item_id: int, score: float) -> None:
        """
        Insert or overwrite the score for (attempt, item).

        No clamping happens here; the study rollup is refreshed in the same
        transaction.

        Raises:
            InvalidInputError: unknown attempt or item
        """
        attempt = db.get(EvaluationAttempt, attempt_id)
        if attempt is None:
            raise InvalidInputError(f"Attempt {attempt_id} does not exist")

        try:
            AttemptService._upsert_response(db, attempt_id, item_id, score)
            evaluation_service.recompute_study_evaluation(
                db, attempt.clip_id, attempt.teacher_id
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            raise InvalidInputError(f"Item {item_id} does not exist")
        except SQLAlchemyError:
            db.rollback()
            logger.error("Failed to save response for attempt=%s", attempt_id, exc_info=True)
            raise

        logger.info("Saved response attempt=%s item=%s score=%s", attempt_id, item_id, score)

    @staticmethod
    def list_attempts(db: Session, clip_id: int) -> List[Dict]:
        """
        List a clip's attempts, most recent first.

        total_score is summed from the responses on every read.
        """
        total_score = func.coalesce(func.sum(EvaluationResponse.score), 0)
        teacher_name = User.first_name + " " + User.last_name

        rows = (
            db.query(
                EvaluationAttempt.id,
                EvaluationAttempt.submitted_at,
                total_score.label("total_score"),
                teacher_name.label("teacher_name"),
                EvaluationAttempt.comment,
            )
            .join(User, User.id == EvaluationAttempt.teacher_id)
            .outerjoin(
                EvaluationResponse, EvaluationResponse.attempt_id == EvaluationAttempt.id
            )
            .filter(EvaluationAttempt.clip_id == clip_id)
            .group_by(
                EvaluationAttempt.id,
                EvaluationAttempt.submitted_at,
                EvaluationAttempt.comment,
                User.first_name,
                User.last_name,
            )
            .order_by(EvaluationAttempt.submitted_at.desc(), EvaluationAttempt.id.desc())
            .all()
        )

        return [
            {
                "id": row.id,
                "submitted_at": row.submitted_at.isoformat() if row.submitted_at else None,
                "total_score": float(row.total_score),
                "teacher_name": row.teacher_name,
                "comment": row.comment,
            }
            for row in rows
        ]

    @staticmethod
    def list_responses(db: Session, attempt_id: int) -> List[Dict]:
        """Raw (item, score) pairs of an attempt ordered by item id."""
        responses = (
            db.query(EvaluationResponse)
            .filter(EvaluationResponse.attempt_id == attempt_id)
            .order_by(EvaluationResponse.protocol_item_id)
            .all()
        )
        return [
            {"protocol_item_id": r.protocol_item_id, "score": r.score} for r in responses
        ]


# Singleton instance
attempt_service = AttemptService()
