"""
Study-level evaluation rollup.

Bridges the per-clip attempt ledger to the EvaluationForm rows that
dashboards and teacher worklists read. A study is in one of three states:

- absent: no EvaluationForm at all
- pending: latest form exists with score NULL
- completed: latest form has a score
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from echoscore.config import settings
from echoscore.models.evaluation_attempt import EvaluationAttempt
from echoscore.models.evaluation_form import EvaluationForm
from echoscore.models.evaluation_response import EvaluationResponse
from echoscore.models.scoring import ScoringItem
from echoscore.models.study import Study
from echoscore.models.user import User
from echoscore.models.video_clip import VideoClip
from echoscore.services.errors import NotFoundError, PermissionDeniedError, ValidationError
from echoscore.services.taxonomy_service import taxonomy_service

logger = logging.getLogger(__name__)

STATUS_ABSENT = "absent"
STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"


@dataclass
class StudyEvaluation:
    """Canonical evaluation of a study as seen by reporting."""

    study_id: int
    has_evaluation: bool
    status: str
    score: Optional[float] = None
    feedback_summary: Optional[str] = None
    submitted_at: Optional[datetime] = None
    evaluation_id: Optional[int] = None
    teacher_id: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "study_id": self.study_id,
            "has_evaluation": self.has_evaluation,
            "status": self.status,
            "score": self.score,
            "feedback_summary": self.feedback_summary,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "evaluation_id": self.evaluation_id,
            "teacher_id": self.teacher_id,
        }


def _validate_manual_score(score: Any) -> float:
    if (
        isinstance(score, bool)
        or not isinstance(score, (int, float))
        or not math.isfinite(score)
        or not settings.evaluation_min_manual_score <= score <= settings.evaluation_score_scale
    ):
        raise ValidationError(
            "Score must be a number between %g and %g"
            % (settings.evaluation_min_manual_score, settings.evaluation_score_scale)
        )
    return float(score)


class EvaluationService:
    """Service for study evaluations and teacher worklists."""

    @staticmethod
    def latest_form(
        db: Session, study_id: int, teacher_id: Optional[int] = None
    ) -> Optional[EvaluationForm]:
        """Most recently submitted form of a study, optionally for one teacher."""
        query = db.query(EvaluationForm).filter(EvaluationForm.study_id == study_id)
        if teacher_id is not None:
            query = query.filter(EvaluationForm.teacher_id == teacher_id)
        return query.order_by(
            EvaluationForm.submitted_at.desc(), EvaluationForm.id.desc()
        ).first()

    @staticmethod
    def derive_study_score(db: Session, study_id: int, teacher_id: int) -> Optional[float]:
        """
        Score a teacher's latest attempts on a study on the evaluation scale.

        Takes the teacher's most recent attempt on every clip of the study
        and returns scale * sum(totals) / sum(max possible), rounded to two
        decimals. The max possible of an attempt is its protocol template's
        total, or the max scores of the items it answered when no protocol
        was given. Returns None when nothing is scorable.
        """
        attempts = (
            db.query(EvaluationAttempt)
            .join(VideoClip, VideoClip.id == EvaluationAttempt.clip_id)
            .filter(
                VideoClip.study_id == study_id,
                EvaluationAttempt.teacher_id == teacher_id,
            )
            .order_by(
                EvaluationAttempt.clip_id,
                EvaluationAttempt.submitted_at.desc(),
                EvaluationAttempt.id.desc(),
            )
            .all()
        )

        latest_by_clip = {}
        for attempt in attempts:
            latest_by_clip.setdefault(attempt.clip_id, attempt)
        if not latest_by_clip:
            return None

        attempt_ids = [a.id for a in latest_by_clip.values()]
        sums = dict(
            db.query(
                EvaluationResponse.attempt_id,
                func.sum(EvaluationResponse.score),
            )
            .filter(EvaluationResponse.attempt_id.in_(attempt_ids))
            .group_by(EvaluationResponse.attempt_id)
            .all()
        )

        earned = 0.0
        possible = 0.0
        for attempt in latest_by_clip.values():
            earned += float(sums.get(attempt.id) or 0)
            if attempt.protocol_id is not None:
                possible += taxonomy_service.template_max_score(db, attempt.protocol_id)
            else:
                answered_max = (
                    db.query(func.coalesce(func.sum(ScoringItem.max_score), 0))
                    .join(
                        EvaluationResponse,
                        EvaluationResponse.protocol_item_id == ScoringItem.id,
                    )
                    .filter(EvaluationResponse.attempt_id == attempt.id)
                    .scalar()
                )
                possible += float(answered_max)

        if possible <= 0:
            return None
        return round(settings.evaluation_score_scale * earned / possible, 2)

    @staticmethod
    def recompute_study_evaluation(
        db: Session, clip_id: int, teacher_id: int
    ) -> Optional[EvaluationForm]:
        """
        Refresh the study-level form after a clip's attempt data changed.

        Runs inside the caller's transaction and never commits. The
        teacher's latest form on the study gets the derived score (a pending
        placeholder becomes completed) only when that form is pending or was
        itself derived. A manually scored round is left as it is and a new
        derived form is added after it, as when the teacher has none yet.
        """
        clip = db.get(VideoClip, clip_id)
        if clip is None:
            return None

        db.flush()
        score = EvaluationService.derive_study_score(db, clip.study_id, teacher_id)
        if score is None:
            return None

        form = EvaluationService.latest_form(db, clip.study_id, teacher_id)
        if form is not None and (form.is_pending or form.derived):
            form.score = score
            form.derived = True
        else:
            form = EvaluationForm(
                study_id=clip.study_id, teacher_id=teacher_id, score=score, derived=True
            )
            db.add(form)
        db.flush()

        logger.info(
            "Study %s evaluation by teacher %s recomputed: score=%s",
            clip.study_id,
            teacher_id,
            score,
        )
        return form

    @staticmethod
    def get_study_evaluation(db: Session, study_id: int) -> StudyEvaluation:
        """Canonical evaluation of a study; a study never evaluated is not an error."""
        form = EvaluationService.latest_form(db, study_id)
        if form is None:
            return StudyEvaluation(
                study_id=study_id, has_evaluation=False, status=STATUS_ABSENT
            )

        return StudyEvaluation(
            study_id=study_id,
            has_evaluation=True,
            status=STATUS_PENDING if form.is_pending else STATUS_COMPLETED,
            score=form.score,
            feedback_summary=form.feedback_summary,
            submitted_at=form.submitted_at,
            evaluation_id=form.id,
            teacher_id=form.teacher_id,
        )

    @staticmethod
    def request_evaluation(db: Session, study_id: int, teacher_id: int) -> EvaluationForm:
        """Open a pending (unscored) evaluation round for a study."""
        if db.get(Study, study_id) is None:
            raise NotFoundError(f"Study {study_id} not found")

        form = EvaluationForm(study_id=study_id, teacher_id=teacher_id)
        db.add(form)
        db.commit()
        db.refresh(form)
        logger.info("Opened evaluation %s for study %s", form.id, study_id)
        return form

    @staticmethod
    def create_evaluation(
        db: Session,
        study_id: int,
        teacher_id: int,
        score: Any,
        feedback_summary: Optional[str] = None,
    ) -> EvaluationForm:
        """
        Record a manually scored evaluation round.

        Raises:
            ValidationError: score not a number within the evaluation scale
            NotFoundError: unknown study
        """
        score = _validate_manual_score(score)
        if db.get(Study, study_id) is None:
            raise NotFoundError(f"Study {study_id} not found")

        form = EvaluationForm(
            study_id=study_id,
            teacher_id=teacher_id,
            score=score,
            feedback_summary=feedback_summary,
        )
        db.add(form)
        db.commit()
        db.refresh(form)
        logger.info("Created evaluation %s for study %s", form.id, study_id)
        return form

    @staticmethod
    def update_evaluation(
        db: Session,
        evaluation_id: int,
        teacher_id: int,
        score: Any,
        feedback_summary: Optional[str] = None,
    ) -> EvaluationForm:
        """
        Rescore an evaluation owned by the teacher.

        Raises:
            ValidationError: score not a number within the evaluation scale
            NotFoundError: unknown evaluation
            PermissionDeniedError: evaluation belongs to another teacher
        """
        score = _validate_manual_score(score)

        form = db.get(EvaluationForm, evaluation_id)
        if form is None:
            raise NotFoundError(f"Evaluation {evaluation_id} not found")
        if form.teacher_id != teacher_id:
            raise PermissionDeniedError("You cannot edit this evaluation")

        form.score = score
        form.feedback_summary = feedback_summary
        form.derived = False
        db.commit()
        db.refresh(form)
        logger.info("Updated evaluation %s", evaluation_id)
        return form

    @staticmethod
    def list_teacher_evaluations(db: Session, teacher_id: int, status: str) -> List[Dict]:
        """
        Teacher worklist: pending (score NULL) or completed forms, most recent first.
        """
        if status not in (STATUS_PENDING, STATUS_COMPLETED):
            raise ValidationError("status must be 'pending' or 'completed'")

        videos = (
            select(func.count(VideoClip.id))
            .where(VideoClip.study_id == EvaluationForm.study_id)
            .correlate(EvaluationForm)
            .scalar_subquery()
        )

        query = (
            db.query(EvaluationForm, Study, User, videos.label("videos"))
            .join(Study, Study.id == EvaluationForm.study_id)
            .join(User, User.id == Study.student_id)
            .filter(EvaluationForm.teacher_id == teacher_id)
        )
        if status == STATUS_PENDING:
            query = query.filter(EvaluationForm.score.is_(None))
        else:
            query = query.filter(EvaluationForm.score.isnot(None))

        rows = query.order_by(
            EvaluationForm.submitted_at.desc(), EvaluationForm.id.desc()
        ).all()

        return [
            {
                "id": form.id,
                "study_id": study.id,
                "student_id": student.id,
                "student": student.full_name,
                "protocol": study.protocol,
                "videos": videos_count,
                "score": form.score,
                "submitted_at": form.submitted_at.isoformat() if form.submitted_at else None,
            }
            for form, study, student, videos_count in rows
        ]

    @staticmethod
    def list_evaluations_by_student(db: Session, student_id: int) -> List[Dict]:
        """All evaluation forms on a student's studies, most recent first."""
        forms = (
            db.query(EvaluationForm)
            .join(Study, Study.id == EvaluationForm.study_id)
            .filter(Study.student_id == student_id)
            .order_by(EvaluationForm.submitted_at.desc(), EvaluationForm.id.desc())
            .all()
        )
        return [form.to_dict() for form in forms]


# Singleton instance
evaluation_service = EvaluationService()
