"""Business logic for the protocol taxonomy and scoring templates."""

import logging
import re
import unicodedata
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from echoscore.models.protocol import Protocol
from echoscore.models.reference import FinalDiagnosis, ImageQuality
from echoscore.models.scoring import ScoringItem, ScoringSection
from echoscore.models.taxonomy import TAXONOMY_NODES, TaxonomyLevel
from echoscore.services.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def derive_key(name: str) -> str:
    """
    Derive the machine key for a display name.

    trim -> lowercase -> whitespace runs to "_" -> strip diacritics ->
    drop anything outside [a-z0-9_]. Applying it to its own output is a
    no-op.

    Example:
        "  Évaluation Protócol v2.1 (Revised)!  " -> "evaluation_protocol_v21_revised"
    """
    key = re.sub(r"\s+", "_", name.strip().lower())
    key = unicodedata.normalize("NFKD", key)
    key = "".join(char for char in key if not unicodedata.combining(char))
    return re.sub(r"[^a-z0-9_]", "", key)


def _node_dict(node) -> Dict:
    return {"id": node.id, "key": node.key, "name": node.name}


class TaxonomyService:
    """Service for protocol, scoring template and decision tree operations."""

    # ------------------------------------------------------------------
    # Protocols
    # ------------------------------------------------------------------

    @staticmethod
    def list_protocols(db: Session) -> List[Dict]:
        """List all protocols ordered by display name."""
        protocols = db.query(Protocol).order_by(Protocol.name).all()
        return [_node_dict(p) for p in protocols]

    @staticmethod
    def create_protocol(db: Session, name) -> Protocol:
        """
        Create a protocol from its display name.

        Args:
            db: Database session
            name: Display name; the key is derived from it

        Returns:
            Created Protocol object

        Raises:
            ValidationError: name is not a non-blank string, or yields an empty key
            ConflictError: a protocol with the derived key already exists
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Protocol name is required")

        key = derive_key(name)
        if not key:
            raise ValidationError("Protocol name must contain letters or digits")

        protocol = Protocol(key=key, name=name.strip())
        db.add(protocol)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info("Protocol key already taken: %s", key)
            raise ConflictError(f"Protocol '{key}' already exists")

        db.refresh(protocol)
        logger.info("Created protocol %s (id=%s)", protocol.key, protocol.id)
        return protocol

    @staticmethod
    def get_protocol_by_key(db: Session, key: str) -> Protocol:
        """Get a protocol row by key or raise NotFoundError."""
        protocol = db.query(Protocol).filter(Protocol.key == key).first()
        if not protocol:
            raise NotFoundError(f"Protocol '{key}' not found")
        return protocol

    @staticmethod
    def get_protocol(db: Session, key: str) -> Dict:
        """
        Get protocol metadata with its materialized scoring template.

        Sections come ordered by sort_order and items by id. A protocol
        without sections, or a section without items, yields empty lists.
        """
        protocol = TaxonomyService.get_protocol_by_key(db, key)

        sections = (
            db.query(ScoringSection)
            .filter(ScoringSection.protocol_id == protocol.id)
            .order_by(ScoringSection.sort_order, ScoringSection.id)
            .all()
        )

        result_sections = []
        for section in sections:
            items = (
                db.query(ScoringItem)
                .filter(ScoringItem.section_id == section.id)
                .order_by(ScoringItem.id)
                .all()
            )
            result_sections.append(
                {
                    "key": section.key,
                    "name": section.name,
                    "sort_order": section.sort_order,
                    "items": [
                        {
                            "id": item.id,
                            "key": item.key,
                            "label": item.label,
                            "score_scale": item.score_scale,
                            "max_score": item.max_score,
                        }
                        for item in items
                    ],
                }
            )

        return {
            "id": protocol.id,
            "key": protocol.key,
            "name": protocol.name,
            "sections": result_sections,
        }

    # ------------------------------------------------------------------
    # Scoring template
    # ------------------------------------------------------------------

    @staticmethod
    def add_section(
        db: Session, protocol_key: str, key: str, name: str, sort_order: int = 0
    ) -> ScoringSection:
        """Add a scoring section to a protocol's template."""
        protocol = TaxonomyService.get_protocol_by_key(db, protocol_key)
        if not key or not name:
            raise ValidationError("Section key and name are required")

        section = ScoringSection(
            protocol_id=protocol.id, key=key, name=name, sort_order=sort_order
        )
        db.add(section)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError(f"Section '{key}' already exists in '{protocol_key}'")

        db.refresh(section)
        return section

    @staticmethod
    def add_item(
        db: Session,
        protocol_key: str,
        section_key: str,
        key: str,
        label: str,
        max_score: float,
        score_scale: str = "0-5",
    ) -> ScoringItem:
        """
        Add a rubric item to a section.

        Raises:
            NotFoundError: unknown protocol or section
            ValidationError: missing key/label or non-positive max_score
            ConflictError: item key already used in the section
        """
        protocol = TaxonomyService.get_protocol_by_key(db, protocol_key)
        section = (
            db.query(ScoringSection)
            .filter(
                ScoringSection.protocol_id == protocol.id,
                ScoringSection.key == section_key,
            )
            .first()
        )
        if not section:
            raise NotFoundError(f"Section '{section_key}' not found in '{protocol_key}'")

        if not key or not label:
            raise ValidationError("Item key and label are required")
        if isinstance(max_score, bool) or not isinstance(max_score, (int, float)) or max_score <= 0:
            raise ValidationError("max_score must be a positive number")

        item = ScoringItem(
            section_id=section.id,
            key=key,
            label=label,
            score_scale=score_scale,
            max_score=max_score,
        )
        db.add(item)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError(f"Item '{key}' already exists in section '{section_key}'")

        db.refresh(item)
        return item

    @staticmethod
    def resolve_item(
        db: Session, item_key: str, protocol_id: Optional[int] = None
    ) -> Optional[Tuple[int, float]]:
        """
        Resolve an item key to (item_id, max_score).

        Scoped to one protocol's template when protocol_id is given; otherwise
        the first item with that key wins. Returns None for unknown keys.
        """
        query = db.query(ScoringItem.id, ScoringItem.max_score).filter(
            ScoringItem.key == item_key
        )
        if protocol_id is not None:
            query = query.join(
                ScoringSection, ScoringSection.id == ScoringItem.section_id
            ).filter(ScoringSection.protocol_id == protocol_id)

        row = query.order_by(ScoringItem.id).first()
        if row is None:
            return None
        return row[0], row[1]

    @staticmethod
    def template_max_score(db: Session, protocol_id: int) -> float:
        """Highest total an attempt can reach on a protocol's template."""
        total = (
            db.query(func.coalesce(func.sum(ScoringItem.max_score), 0))
            .join(ScoringSection, ScoringSection.id == ScoringItem.section_id)
            .filter(ScoringSection.protocol_id == protocol_id)
            .scalar()
        )
        return float(total)

    # ------------------------------------------------------------------
    # Decision tree
    # ------------------------------------------------------------------

    @staticmethod
    def list_windows(db: Session, protocol_key: str) -> List[Dict]:
        """Windows of a protocol ordered by key; unknown protocol raises NotFoundError."""
        protocol = TaxonomyService.get_protocol_by_key(db, protocol_key)
        return TaxonomyService.list_children(db, TaxonomyLevel.WINDOW, protocol.id)

    @staticmethod
    def list_children(db: Session, level: TaxonomyLevel, parent_id: int) -> List[Dict]:
        """
        List the nodes of `level` whose parent is `parent_id`, ordered by key.

        A missing parent is not an error: it simply has no children.
        """
        if level not in TAXONOMY_NODES:
            raise ValueError(f"{level.value} has no parent level")

        model, parent_column = TAXONOMY_NODES[level]
        nodes = (
            db.query(model)
            .filter(getattr(model, parent_column) == parent_id)
            .order_by(model.key)
            .all()
        )
        return [_node_dict(node) for node in nodes]

    @staticmethod
    def add_node(
        db: Session,
        level: TaxonomyLevel,
        parent_id: int,
        key: str,
        name: Optional[str] = None,
    ):
        """
        Create a decision tree node under a parent of the preceding level.

        Raises:
            NotFoundError: parent does not exist
            ValidationError: missing key or protocol level requested
            ConflictError: key already used under that parent
        """
        if level not in TAXONOMY_NODES:
            raise ValidationError("Protocols are created from their display name")
        if not key or not str(key).strip():
            raise ValidationError("Node key is required")

        parent_level = level.parent
        if parent_level == TaxonomyLevel.PROTOCOL:
            parent_model = Protocol
        else:
            parent_model = TAXONOMY_NODES[parent_level][0]

        if db.get(parent_model, parent_id) is None:
            raise NotFoundError(f"{parent_level.value} {parent_id} not found")

        model, parent_column = TAXONOMY_NODES[level]
        node = model(**{parent_column: parent_id, "key": key.strip(), "name": name or key.strip()})
        db.add(node)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError(f"{level.value} '{key}' already exists under {parent_id}")

        db.refresh(node)
        return node

    # ------------------------------------------------------------------
    # Reference lists
    # ------------------------------------------------------------------

    @staticmethod
    def list_image_qualities(db: Session) -> List[Dict]:
        rows = db.query(ImageQuality).order_by(ImageQuality.id).all()
        return [{"id": row.id, "name": row.name} for row in rows]

    @staticmethod
    def list_final_diagnoses(db: Session) -> List[Dict]:
        rows = db.query(FinalDiagnosis).order_by(FinalDiagnosis.id).all()
        return [{"id": row.id, "name": row.name} for row in rows]


# Singleton instance
taxonomy_service = TaxonomyService()
