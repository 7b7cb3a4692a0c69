"""Flat reference lists shown on the teacher review screen."""

from sqlalchemy import Column, Integer, String

from echoscore.database import Base


class ImageQuality(Base):
    __tablename__ = "image_quality"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)


class FinalDiagnosis(Base):
    __tablename__ = "final_diagnosis"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
