"""
Clinical decision tree below a protocol.

The tree has a fixed depth, so each level is its own table with a foreign
key to the level above instead of a generic self-referencing node table:

    protocol > window > finding > possible diagnosis > subdiagnosis
             > sub-subdiagnosis > third-order diagnosis
"""

import enum
from typing import Optional

from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from echoscore.database import Base


class TaxonomyLevel(str, enum.Enum):
    """The seven levels of the decision tree, root first."""
    PROTOCOL = "protocol"
    WINDOW = "window"
    FINDING = "finding"
    POSSIBLE_DIAGNOSIS = "possible_diagnosis"
    SUBDIAGNOSIS = "subdiagnosis"
    SUB_SUBDIAGNOSIS = "sub_subdiagnosis"
    THIRD_ORDER_DIAGNOSIS = "third_order_diagnosis"

    @property
    def parent(self) -> Optional["TaxonomyLevel"]:
        levels = list(TaxonomyLevel)
        index = levels.index(self)
        return levels[index - 1] if index > 0 else None


class ProtocolWindow(Base):
    """Acquisition window (probe position) of a protocol."""

    __tablename__ = "protocol_window"

    id = Column(Integer, primary_key=True)
    protocol_id = Column(Integer, ForeignKey("protocol.id"), nullable=False, index=True)
    key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)

    protocol = relationship("Protocol", back_populates="windows")

    __table_args__ = (UniqueConstraint("protocol_id", "key", name="uq_protocol_window_key"),)


class Finding(Base):
    __tablename__ = "finding"

    id = Column(Integer, primary_key=True)
    window_id = Column(Integer, ForeignKey("protocol_window.id"), nullable=False, index=True)
    key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)

    __table_args__ = (UniqueConstraint("window_id", "key", name="uq_finding_key"),)


class PossibleDiagnosis(Base):
    __tablename__ = "possible_diagnosis"

    id = Column(Integer, primary_key=True)
    finding_id = Column(Integer, ForeignKey("finding.id"), nullable=False, index=True)
    key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)

    __table_args__ = (UniqueConstraint("finding_id", "key", name="uq_possible_diagnosis_key"),)


class Subdiagnosis(Base):
    __tablename__ = "subdiagnosis"

    id = Column(Integer, primary_key=True)
    possible_diagnosis_id = Column(
        Integer, ForeignKey("possible_diagnosis.id"), nullable=False, index=True
    )
    key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)

    __table_args__ = (
        UniqueConstraint("possible_diagnosis_id", "key", name="uq_subdiagnosis_key"),
    )


class SubSubdiagnosis(Base):
    __tablename__ = "sub_subdiagnosis"

    id = Column(Integer, primary_key=True)
    subdiagnosis_id = Column(Integer, ForeignKey("subdiagnosis.id"), nullable=False, index=True)
    key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)

    __table_args__ = (UniqueConstraint("subdiagnosis_id", "key", name="uq_sub_subdiagnosis_key"),)


class ThirdOrderDiagnosis(Base):
    __tablename__ = "third_order_diagnosis"

    id = Column(Integer, primary_key=True)
    sub_subdiagnosis_id = Column(
        Integer, ForeignKey("sub_subdiagnosis.id"), nullable=False, index=True
    )
    key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)

    __table_args__ = (
        UniqueConstraint("sub_subdiagnosis_id", "key", name="uq_third_order_diagnosis_key"),
    )


# Node model and parent foreign key column for every level below the protocol
TAXONOMY_NODES = {
    TaxonomyLevel.WINDOW: (ProtocolWindow, "protocol_id"),
    TaxonomyLevel.FINDING: (Finding, "window_id"),
    TaxonomyLevel.POSSIBLE_DIAGNOSIS: (PossibleDiagnosis, "finding_id"),
    TaxonomyLevel.SUBDIAGNOSIS: (Subdiagnosis, "possible_diagnosis_id"),
    TaxonomyLevel.SUB_SUBDIAGNOSIS: (SubSubdiagnosis, "subdiagnosis_id"),
    TaxonomyLevel.THIRD_ORDER_DIAGNOSIS: (ThirdOrderDiagnosis, "sub_subdiagnosis_id"),
}
