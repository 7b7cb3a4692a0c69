from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from echoscore.database import Base


class Protocol(Base):
    """Named clinical examination scheme; root of the taxonomy and owner of a scoring template."""

    __tablename__ = "protocol"

    id = Column(Integer, primary_key=True)
    key = Column(String(100), unique=True, nullable=False)  # derived from name, see derive_key()
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    sections = relationship(
        "ScoringSection",
        back_populates="protocol",
        order_by="ScoringSection.sort_order",
    )
    windows = relationship("ProtocolWindow", back_populates="protocol")

    def __repr__(self):
        return f"<Protocol(id={self.id}, key={self.key})>"
