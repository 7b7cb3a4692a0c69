"""
Factory functions for creating test data.

These factories create model instances with sensible defaults.
Use db.flush() to get IDs without committing (services commit on their own).
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
import secrets

from sqlalchemy.orm import Session

from echoscore.models import (
    User,
    Session as UserSession,
    Study,
    VideoClip,
    Protocol,
    ScoringSection,
    ScoringItem,
    ProtocolWindow,
    Finding,
    PossibleDiagnosis,
    Subdiagnosis,
    SubSubdiagnosis,
    ThirdOrderDiagnosis,
    EvaluationAttempt,
    EvaluationResponse,
    EvaluationForm,
)
from echoscore.services.taxonomy_service import derive_key


# =============================================================================
# User Factory
# =============================================================================


def create_user(
    db: Session,
    email: Optional[str] = None,
    role: str = User.ROLE_STUDENT,
    **overrides,
) -> User:
    """
    Create a test user.

    Args:
        db: Database session
        email: User email (auto-generated if not provided)
        role: profesor, estudiante or admin
        **overrides: Additional fields to override

    Returns:
        Created User object
    """
    if email is None:
        email = f"testuser_{secrets.token_hex(4)}@example.com"

    defaults = {
        "email": email.lower(),
        "first_name": "Test",
        "last_name": "User",
        "role": role,
    }
    defaults.update(overrides)

    user = User(**defaults)
    db.add(user)
    db.flush()
    return user


# =============================================================================
# Session Factory
# =============================================================================


def create_session(
    db: Session,
    user: User,
    expires_in: timedelta = timedelta(days=7),
    **overrides,
) -> UserSession:
    """Create a login session for the user."""
    defaults = {
        "user_id": user.id,
        "token": secrets.token_urlsafe(32),
        "expires_at": datetime.now(timezone.utc) + expires_in,
    }
    defaults.update(overrides)

    session = UserSession(**defaults)
    db.add(session)
    db.flush()
    return session


# =============================================================================
# Study and Clip Factories
# =============================================================================


def create_study(db: Session, student: Optional[User] = None, **overrides) -> Study:
    """Create a study, with a fresh student unless one is given."""
    if student is None:
        student = create_user(db)

    defaults = {
        "student_id": student.id,
        "title": f"Study_{secrets.token_hex(4)}",
        "protocol": "pulmon",
        "status": "pendiente",
    }
    defaults.update(overrides)

    study = Study(**defaults)
    db.add(study)
    db.flush()
    return study


def create_clip(db: Session, study: Optional[Study] = None, **overrides) -> VideoClip:
    """Create a video clip, with a fresh study unless one is given."""
    if study is None:
        study = create_study(db)

    defaults = {
        "study_id": study.id,
        "object_key": f"clips/{secrets.token_hex(8)}.mp4",
        "original_filename": "clip.mp4",
        "order_index": 0,
    }
    defaults.update(overrides)

    clip = VideoClip(**defaults)
    db.add(clip)
    db.flush()
    return clip


# =============================================================================
# Protocol and Template Factories
# =============================================================================


def create_protocol(db: Session, name: Optional[str] = None, **overrides) -> Protocol:
    """Create a protocol; the key is derived from the name unless overridden."""
    if name is None:
        name = f"Protocol {secrets.token_hex(4)}"

    defaults = {"key": derive_key(name), "name": name}
    defaults.update(overrides)

    protocol = Protocol(**defaults)
    db.add(protocol)
    db.flush()
    return protocol


def create_section(
    db: Session, protocol: Protocol, key: str = "adq", **overrides
) -> ScoringSection:
    defaults = {
        "protocol_id": protocol.id,
        "key": key,
        "name": key.upper(),
        "sort_order": 1,
    }
    defaults.update(overrides)

    section = ScoringSection(**defaults)
    db.add(section)
    db.flush()
    return section


def create_item(
    db: Session,
    section: ScoringSection,
    key: str,
    max_score: float = 5,
    **overrides,
) -> ScoringItem:
    defaults = {
        "section_id": section.id,
        "key": key,
        "label": key,
        "score_scale": "0-5" if max_score > 1 else "binary",
        "max_score": max_score,
    }
    defaults.update(overrides)

    item = ScoringItem(**defaults)
    db.add(item)
    db.flush()
    return item


def create_template(
    db: Session, protocol: Protocol, items: Dict[str, float], section_key: str = "adq"
) -> List[ScoringItem]:
    """
    Create one section holding the given items.

    Args:
        items: item key -> max score, created in order
    """
    section = create_section(db, protocol, key=section_key)
    return [create_item(db, section, key, max_score) for key, max_score in items.items()]


# =============================================================================
# Taxonomy Factory
# =============================================================================


def create_taxonomy_path(
    db: Session, protocol: Optional[Protocol] = None, depth: int = 4
) -> Dict[str, object]:
    """
    Create a single chain of decision tree nodes.

    Args:
        db: Database session
        protocol: Root protocol (created if not provided)
        depth: Number of levels below the protocol, 1 (window) to 6 (third order)

    Returns:
        Dict of level name -> created node, including "protocol"
    """
    if protocol is None:
        protocol = create_protocol(db)

    chain = [
        ("window", ProtocolWindow, "protocol_id"),
        ("finding", Finding, "window_id"),
        ("possible_diagnosis", PossibleDiagnosis, "finding_id"),
        ("subdiagnosis", Subdiagnosis, "possible_diagnosis_id"),
        ("sub_subdiagnosis", SubSubdiagnosis, "subdiagnosis_id"),
        ("third_order", ThirdOrderDiagnosis, "sub_subdiagnosis_id"),
    ]

    nodes = {"protocol": protocol}
    parent = protocol
    for level, model, parent_column in chain[:depth]:
        key = f"{level}_{secrets.token_hex(3)}"
        node = model(**{parent_column: parent.id, "key": key, "name": key})
        db.add(node)
        db.flush()
        nodes[level] = node
        parent = node
    return nodes


# =============================================================================
# Evaluation Factories
# =============================================================================


def create_attempt(
    db: Session,
    clip: VideoClip,
    teacher: User,
    scores: Optional[Dict[ScoringItem, float]] = None,
    **overrides,
) -> EvaluationAttempt:
    """Create an attempt header and, optionally, its responses (stored as given)."""
    defaults = {
        "clip_id": clip.id,
        "teacher_id": teacher.id,
        "comment": None,
    }
    defaults.update(overrides)

    attempt = EvaluationAttempt(**defaults)
    db.add(attempt)
    db.flush()

    for item, score in (scores or {}).items():
        db.add(
            EvaluationResponse(attempt_id=attempt.id, protocol_item_id=item.id, score=score)
        )
    db.flush()
    return attempt


def create_evaluation_form(
    db: Session,
    study: Study,
    teacher: User,
    score: Optional[float] = None,
    **overrides,
) -> EvaluationForm:
    """Create an evaluation form; score None makes it pending."""
    defaults = {
        "study_id": study.id,
        "teacher_id": teacher.id,
        "score": score,
    }
    defaults.update(overrides)

    form = EvaluationForm(**defaults)
    db.add(form)
    db.flush()
    return form
