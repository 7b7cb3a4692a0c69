from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from echoscore.database import Base


class Study(Base):
    """A student's ultrasound study: a group of clips submitted for evaluation."""

    __tablename__ = "study"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    protocol = Column(Text)  # protocol key the study was recorded under
    status = Column(String(50), nullable=False, default="pendiente")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    student = relationship("User", back_populates="studies")
    clips = relationship(
        "VideoClip", back_populates="study", order_by="VideoClip.order_index"
    )
    evaluations = relationship("EvaluationForm", back_populates="study")

    __table_args__ = (Index("idx_study_student_id", "student_id"),)
