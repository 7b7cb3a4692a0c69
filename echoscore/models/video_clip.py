from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from echoscore.database import Base


class VideoClip(Base):
    """Uploaded ultrasound clip belonging to a study."""

    __tablename__ = "video_clip"

    id = Column(Integer, primary_key=True)
    study_id = Column(Integer, ForeignKey("study.id"), nullable=False)
    object_key = Column(String(512), nullable=False)  # storage key, uploads handled elsewhere
    original_filename = Column(String(255))
    duration_seconds = Column(Integer)
    order_index = Column(Integer, nullable=False, default=0)
    protocol = Column(String(100))
    upload_date = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    study = relationship("Study", back_populates="clips")
    attempts = relationship("EvaluationAttempt", back_populates="clip")

    __table_args__ = (Index("idx_video_clip_study_id", "study_id"),)
