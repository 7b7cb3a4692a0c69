from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from echoscore.database import Base


class ClipSelection(Base):
    """
    Taxonomy path a user currently asserts for a clip.

    One row per (clip, user); resubmissions overwrite the row in place.
    The first four levels are required, deeper levels may be absent.
    """

    __tablename__ = "clip_protocol_selection"

    id = Column(Integer, primary_key=True)
    clip_id = Column(Integer, ForeignKey("video_clip.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    protocol_id = Column(Integer, ForeignKey("protocol.id"), nullable=False)
    window_id = Column(Integer, ForeignKey("protocol_window.id"), nullable=False)
    finding_id = Column(Integer, ForeignKey("finding.id"), nullable=False)
    possible_diagnosis_id = Column(Integer, ForeignKey("possible_diagnosis.id"), nullable=False)
    subdiagnosis_id = Column(Integer, ForeignKey("subdiagnosis.id"), nullable=True)
    sub_subdiagnosis_id = Column(Integer, ForeignKey("sub_subdiagnosis.id"), nullable=True)
    third_order_diagnosis_id = Column(
        Integer, ForeignKey("third_order_diagnosis.id"), nullable=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("clip_id", "user_id", name="uq_clip_protocol_selection_clip_user"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clip_id": self.clip_id,
            "user_id": self.user_id,
            "protocol_id": self.protocol_id,
            "window_id": self.window_id,
            "finding_id": self.finding_id,
            "possible_diagnosis_id": self.possible_diagnosis_id,
            "subdiagnosis_id": self.subdiagnosis_id,
            "sub_subdiagnosis_id": self.sub_subdiagnosis_id,
            "third_order_diagnosis_id": self.third_order_diagnosis_id,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
