from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from echoscore.database import Base


class EvaluationAttempt(Base):
    """
    One teacher's scored pass over one clip (header only).

    Attempts are append-only; the total score is never stored here and is
    always summed from the responses at read time.
    """

    __tablename__ = "evaluation_attempt"

    id = Column(Integer, primary_key=True)
    clip_id = Column(Integer, ForeignKey("video_clip.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    protocol_id = Column(Integer, ForeignKey("protocol.id"), nullable=True)
    comment = Column(Text)
    submitted_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    clip = relationship("VideoClip", back_populates="attempts")
    teacher = relationship("User")
    responses = relationship(
        "EvaluationResponse",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="EvaluationResponse.protocol_item_id",
    )

    __table_args__ = (
        Index("idx_evaluation_attempt_clip_id", "clip_id"),
        Index("idx_evaluation_attempt_teacher_id", "teacher_id"),
    )

    def __repr__(self):
        return f"<EvaluationAttempt(id={self.id}, clip_id={self.clip_id}, teacher_id={self.teacher_id})>"
