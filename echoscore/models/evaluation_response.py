from sqlalchemy import Column, Integer, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from echoscore.database import Base


class EvaluationResponse(Base):
    """Score for one rubric item within an attempt; unique per (attempt, item)."""

    __tablename__ = "evaluation_response"

    id = Column(Integer, primary_key=True)
    attempt_id = Column(
        Integer, ForeignKey("evaluation_attempt.id", ondelete="CASCADE"), nullable=False
    )
    protocol_item_id = Column(Integer, ForeignKey("protocol_item.id"), nullable=False)
    score = Column(Float, nullable=False)

    # Relationships
    attempt = relationship("EvaluationAttempt", back_populates="responses")
    item = relationship("ScoringItem")

    __table_args__ = (
        UniqueConstraint("attempt_id", "protocol_item_id", name="uq_evaluation_response_attempt_item"),
    )
