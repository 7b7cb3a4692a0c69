"""API endpoints for the protocol taxonomy, scoring templates and clip selections."""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from echoscore.database import get_db
from echoscore.models.taxonomy import TaxonomyLevel
from echoscore.models.user import User
from echoscore.services.auth.dependencies import get_current_user, require_admin
from echoscore.services.selection_service import SelectionPath, selection_service
from echoscore.services.taxonomy_service import taxonomy_service

router = APIRouter(prefix="/protocols", tags=["protocols"])


# =============================================================================
# Request Models
# =============================================================================

class CreateProtocolRequest(BaseModel):
    name: Any = None  # validated by the service so bad names answer 400, not 422


class CreateSectionRequest(BaseModel):
    key: str
    name: str
    sort_order: int = 0


class CreateItemRequest(BaseModel):
    key: str
    label: str
    max_score: float
    score_scale: str = "0-5"


class CreateNodeRequest(BaseModel):
    parent_id: int
    key: str
    name: Optional[str] = None


class SelectionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    protocol_id: int = Field(alias="protocolId")
    window_id: int = Field(alias="windowId")
    finding_id: int = Field(alias="findingId")
    possible_diagnosis_id: int = Field(alias="possibleDiagnosisId")
    subdiagnosis_id: Optional[int] = Field(default=None, alias="subdiagnosisId")
    sub_subdiagnosis_id: Optional[int] = Field(default=None, alias="subSubdiagnosisId")
    third_order_id: Optional[int] = Field(default=None, alias="thirdOrderId")


# =============================================================================
# Reference lists (declared before /{key} so they are not read as keys)
# =============================================================================

@router.get("/image-qualities")
async def list_image_qualities(db: Session = Depends(get_db)):
    return taxonomy_service.list_image_qualities(db)


@router.get("/final-diagnoses")
async def list_final_diagnoses(db: Session = Depends(get_db)):
    return taxonomy_service.list_final_diagnoses(db)


# =============================================================================
# Protocols and scoring templates
# =============================================================================

@router.get("")
async def list_protocols(db: Session = Depends(get_db)):
    """List all protocols ordered by name."""
    return taxonomy_service.list_protocols(db)


@router.post("", status_code=201)
async def create_protocol(
    payload: CreateProtocolRequest,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create a protocol; its key is derived from the name."""
    protocol = taxonomy_service.create_protocol(db, payload.name)
    return {"id": protocol.id, "key": protocol.key, "name": protocol.name}


@router.get("/{key}")
async def get_protocol(key: str, db: Session = Depends(get_db)):
    """Protocol detail with its sections and items."""
    return taxonomy_service.get_protocol(db, key)


@router.post("/{key}/sections", status_code=201)
async def create_section(
    key: str,
    payload: CreateSectionRequest,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    section = taxonomy_service.add_section(
        db, key, payload.key, payload.name, payload.sort_order
    )
    return {
        "id": section.id,
        "key": section.key,
        "name": section.name,
        "sort_order": section.sort_order,
    }


@router.post("/{key}/sections/{section_key}/items", status_code=201)
async def create_item(
    key: str,
    section_key: str,
    payload: CreateItemRequest,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    item = taxonomy_service.add_item(
        db,
        key,
        section_key,
        payload.key,
        payload.label,
        payload.max_score,
        score_scale=payload.score_scale,
    )
    return {
        "id": item.id,
        "key": item.key,
        "label": item.label,
        "score_scale": item.score_scale,
        "max_score": item.max_score,
    }


# =============================================================================
# Decision tree lookups
# =============================================================================

@router.get("/{key}/windows")
async def list_windows(key: str, db: Session = Depends(get_db)):
    """Windows of a protocol; 404 when the protocol key is unknown."""
    return taxonomy_service.list_windows(db, key)


@router.get("/windows/{window_id}/findings")
async def list_findings(window_id: int, db: Session = Depends(get_db)):
    return taxonomy_service.list_children(db, TaxonomyLevel.FINDING, window_id)


@router.get("/findings/{finding_id}/possible-diagnoses")
async def list_possible_diagnoses(finding_id: int, db: Session = Depends(get_db)):
    return taxonomy_service.list_children(db, TaxonomyLevel.POSSIBLE_DIAGNOSIS, finding_id)


@router.get("/possible-diagnoses/{diagnosis_id}/subdiagnoses")
async def list_subdiagnoses(diagnosis_id: int, db: Session = Depends(get_db)):
    return taxonomy_service.list_children(db, TaxonomyLevel.SUBDIAGNOSIS, diagnosis_id)


@router.get("/subdiagnoses/{subdiagnosis_id}/sub-subdiagnoses")
async def list_sub_subdiagnoses(subdiagnosis_id: int, db: Session = Depends(get_db)):
    return taxonomy_service.list_children(db, TaxonomyLevel.SUB_SUBDIAGNOSIS, subdiagnosis_id)


@router.get("/sub-subdiagnoses/{sub_subdiagnosis_id}/third-order")
async def list_third_order(sub_subdiagnosis_id: int, db: Session = Depends(get_db)):
    return taxonomy_service.list_children(
        db, TaxonomyLevel.THIRD_ORDER_DIAGNOSIS, sub_subdiagnosis_id
    )


@router.post("/taxonomy/{level}", status_code=201)
async def create_node(
    level: TaxonomyLevel,
    payload: CreateNodeRequest,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create a decision tree node below an existing parent."""
    node = taxonomy_service.add_node(db, level, payload.parent_id, payload.key, payload.name)
    return {"id": node.id, "key": node.key, "name": node.name, "level": level.value}


# =============================================================================
# Clip selections
# =============================================================================

@router.post("/video/{clip_id}/selection", status_code=201)
async def save_selection(
    clip_id: int,
    payload: SelectionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Save (or replace) the caller's taxonomy path for a clip."""
    path = SelectionPath(**payload.model_dump())
    selection = selection_service.save_selection(db, clip_id, user.id, path)
    return selection.to_dict()


@router.get("/video/{clip_id}/selection")
async def get_selection(
    clip_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The caller's current selection for a clip."""
    return selection_service.get_selection(db, clip_id, user.id).to_dict()
