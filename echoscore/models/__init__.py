"""
Database models for echoscore.

Import all models here so Alembic can detect them for migrations.
"""

from echoscore.database import Base
from echoscore.models.user import User
from echoscore.models.session import Session
from echoscore.models.study import Study
from echoscore.models.video_clip import VideoClip
from echoscore.models.protocol import Protocol
from echoscore.models.scoring import ScoringSection, ScoringItem
from echoscore.models.taxonomy import (
    TaxonomyLevel,
    TAXONOMY_NODES,
    ProtocolWindow,
    Finding,
    PossibleDiagnosis,
    Subdiagnosis,
    SubSubdiagnosis,
    ThirdOrderDiagnosis,
)
from echoscore.models.selection import ClipSelection
from echoscore.models.evaluation_attempt import EvaluationAttempt
from echoscore.models.evaluation_response import EvaluationResponse
from echoscore.models.evaluation_form import EvaluationForm
from echoscore.models.reference import ImageQuality, FinalDiagnosis

__all__ = [
    "Base",
    "User",
    "Session",
    "Study",
    "VideoClip",
    "Protocol",
    "ScoringSection",
    "ScoringItem",
    "TaxonomyLevel",
    "TAXONOMY_NODES",
    "ProtocolWindow",
    "Finding",
    "PossibleDiagnosis",
    "Subdiagnosis",
    "SubSubdiagnosis",
    "ThirdOrderDiagnosis",
    "ClipSelection",
    "EvaluationAttempt",
    "EvaluationResponse",
    "EvaluationForm",
    "ImageQuality",
    "FinalDiagnosis",
]
