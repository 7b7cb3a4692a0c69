"""Business logic for per-clip taxonomy selections."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from echoscore.database import upsert_insert
from echoscore.models.selection import ClipSelection
from echoscore.services.errors import InvalidPathError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class SelectionPath:
    """Path through the decision tree; deeper levels are optional."""

    protocol_id: int
    window_id: int
    finding_id: int
    possible_diagnosis_id: int
    subdiagnosis_id: Optional[int] = None
    sub_subdiagnosis_id: Optional[int] = None
    third_order_id: Optional[int] = None

    def to_columns(self) -> dict:
        return {
            "protocol_id": self.protocol_id,
            "window_id": self.window_id,
            "finding_id": self.finding_id,
            "possible_diagnosis_id": self.possible_diagnosis_id,
            "subdiagnosis_id": self.subdiagnosis_id,
            "sub_subdiagnosis_id": self.sub_subdiagnosis_id,
            "third_order_diagnosis_id": self.third_order_id,
        }


class SelectionService:
    """Service for recording the path a user chose for a clip."""

    @staticmethod
    def save_selection(
        db: Session, clip_id: int, user_id: int, path: SelectionPath
    ) -> ClipSelection:
        """
        Upsert the selection for (clip, user).

        Every path column is overwritten, so optional levels omitted now are
        cleared even if a previous submission set them. Path consistency is
        left to the taxonomy foreign keys.

        Raises:
            InvalidPathError: the clip, user or a path node does not exist
        """
        columns = path.to_columns()
        stmt = upsert_insert(db, ClipSelection).values(
            clip_id=clip_id, user_id=user_id, **columns
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["clip_id", "user_id"],
            set_={**columns, "updated_at": func.now()},
        ).returning(ClipSelection)

        try:
            selection = db.scalars(
                stmt, execution_options={"populate_existing": True}
            ).one()
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(
                "Rejected selection path for clip=%s user=%s: %s",
                clip_id,
                user_id,
                e.orig,
            )
            raise InvalidPathError("Selection path references unknown taxonomy nodes")

        logger.info("Saved selection for clip=%s user=%s", clip_id, user_id)
        return selection

    @staticmethod
    def get_selection(db: Session, clip_id: int, user_id: int) -> ClipSelection:
        """Get the current selection for (clip, user) or raise NotFoundError."""
        selection = (
            db.query(ClipSelection)
            .filter(ClipSelection.clip_id == clip_id, ClipSelection.user_id == user_id)
            .first()
        )
        if not selection:
            raise NotFoundError("No selection recorded for this clip")
        return selection


# Singleton instance
selection_service = SelectionService()
