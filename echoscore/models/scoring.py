from sqlalchemy import Column, Integer, String, Float, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from echoscore.database import Base


class ScoringSection(Base):
    """Ordered group of rubric items within a protocol (e.g. Image Generation)."""

    __tablename__ = "protocol_section"

    id = Column(Integer, primary_key=True)
    protocol_id = Column(
        Integer, ForeignKey("protocol.id", ondelete="CASCADE"), nullable=False
    )
    key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    # Relationships
    protocol = relationship("Protocol", back_populates="sections")
    items = relationship(
        "ScoringItem", back_populates="section", order_by="ScoringItem.id"
    )

    __table_args__ = (
        UniqueConstraint("protocol_id", "key", name="uq_protocol_section_key"),
    )


class ScoringItem(Base):
    """Single rubric line scored between 0 and max_score."""

    __tablename__ = "protocol_item"

    id = Column(Integer, primary_key=True)
    section_id = Column(
        Integer, ForeignKey("protocol_section.id", ondelete="CASCADE"), nullable=False
    )
    key = Column(String(100), nullable=False)
    label = Column(String(255), nullable=False)
    score_scale = Column(String(50), nullable=False, default="0-5")  # display only
    max_score = Column(Float, nullable=False)

    # Relationships
    section = relationship("ScoringSection", back_populates="items")

    __table_args__ = (
        UniqueConstraint("section_id", "key", name="uq_protocol_item_key"),
        CheckConstraint("max_score > 0", name="ck_protocol_item_max_score"),
    )

    def __repr__(self):
        return f"<ScoringItem(id={self.id}, key={self.key}, max_score={self.max_score})>"
