from sqlalchemy import Boolean, Column, Integer, Float, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from echoscore.database import Base


class EvaluationForm(Base):
    """
    Study-level evaluation read by dashboards and teacher worklists.

    A row with score NULL is a pending placeholder; a scored row is
    completed. The most recent row by submitted_at is authoritative.

    derived marks a score computed from the attempt ledger; only those
    rows and pending placeholders are rescored by the rollup, so a
    manually scored round is never overwritten.
    """

    __tablename__ = "evaluation_form"

    id = Column(Integer, primary_key=True)
    study_id = Column(Integer, ForeignKey("study.id"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    submitted_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    score = Column(Float, nullable=True)
    feedback_summary = Column(Text)
    derived = Column(Boolean, nullable=False, default=False)

    # Relationships
    study = relationship("Study", back_populates="evaluations")
    teacher = relationship("User")

    __table_args__ = (
        Index("idx_evaluation_form_study_submitted", "study_id", "submitted_at"),
        Index("idx_evaluation_form_teacher_id", "teacher_id"),
    )

    @property
    def is_pending(self) -> bool:
        return self.score is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "study_id": self.study_id,
            "teacher_id": self.teacher_id,
            "score": self.score,
            "feedback_summary": self.feedback_summary,
            "derived": self.derived,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
