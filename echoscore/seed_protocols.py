"""Seed the built-in protocol catalogue: scoring templates, decision trees and reference lists."""
from sqlalchemy.orm import Session

from echoscore.database import SessionLocal
from echoscore.models.protocol import Protocol
from echoscore.models.reference import FinalDiagnosis, ImageQuality
from echoscore.models.scoring import ScoringItem, ScoringSection
from echoscore.models.taxonomy import (
    Finding,
    PossibleDiagnosis,
    ProtocolWindow,
    Subdiagnosis,
    SubSubdiagnosis,
    ThirdOrderDiagnosis,
)
from echoscore.services.taxonomy_service import derive_key


IMAGE_QUALITIES = ["Buena", "Mala"]
FINAL_DIAGNOSES = ["Verdadero(+)", "Verdadero(–)", "Falso(+)", "Falso(–)"]

# Every window offers the same two findings
FINDINGS = ["Positivo", "Negativo"]

CARDIAC_SECTIONS = [
    {
        "key": "adq",
        "name": "Image Generation",
        "sort_order": 1,
        "items": [
            ("PSL", "Parasternal Longitudinal", "0-5", 5),
            ("PSS", "Parasternal Short", "0-5", 5),
            ("A4C", "Apical 4C", "0-5", 5),
            ("SC", "Subcostal", "0-5", 5),
            ("IVC", "Inferior Vena Cava", "0-5", 5),
        ],
    },
    {
        "key": "int",
        "name": "Overall Quality",
        "sort_order": 2,
        "items": [
            ("LV", "LV Function", "binary", 1),
            ("RV", "RV Function", "binary", 1),
            ("Volume", "Volume Status", "binary", 1),
            ("Peric", "Pericardium", "binary", 1),
        ],
    },
]

LUNG_SECTIONS = [
    {
        "key": "adq",
        "name": "Image Generation",
        "sort_order": 1,
        "items": [(f"Z{i}", f"Zona {i}", "0-5", 5) for i in range(1, 9)],
    },
    {
        "key": "int",
        "name": "Image Interpretation",
        "sort_order": 2,
        "items": [
            ("Neumotorax", "Neumotórax", "binary", 1),
            ("Derrame", "Derrame Pleural", "binary", 1),
            ("BLines", "B-Lines", "binary", 1),
            ("Consolid", "Consolidación", "binary", 1),
            ("Atelect", "Atelectasia", "binary", 1),
            ("Pleur", "Pleuritis", "binary", 1),
            ("Edema", "Edema Pulmonar", "binary", 1),
            ("Normal", "Normal", "binary", 1),
        ],
    },
]

SEVERITY = ["Leve", "Moderado", "Severo"]
KINESIA = ["Hipokinesia", "Akinesia", "Diskinesia"]


def _valve(name):
    return {
        "key": name,
        "children": [
            {"key": "Insuficiencia", "children": SEVERITY},
            {"key": "Estenosis", "children": SEVERITY},
        ],
    }


# Protocol display name -> template sections, windows and possible diagnoses.
# Possible diagnoses are plain keys or {"key", "children"} where children
# recurse down to third-order diagnoses (plain strings at the leaves).
PROTOCOLS = [
    {
        "name": "Pulmón",
        "sections": LUNG_SECTIONS,
        "windows": ["R1", "R2", "R3", "R4", "L1", "L2", "L3", "L4"],
        "diagnoses": ["NTX", "Síndrome Intersticial", "Derrame Pleural", "Consolidación", "Otro"],
    },
    {
        "name": "Renal",
        "windows": ["Riñón Derecho", "Riñón Izquierdo", "Vejiga"],
        "diagnoses": ["HUN", "Quiste Renal", "Jet Ureteral", "Globo Vesical", "Otro"],
    },
    {
        "name": "Vesícula",
        "windows": ["Eje Largo", "Eje Corto", "Triada Portal"],
        "diagnoses": [
            "Pared > 3 mm",
            "Colelitiasis",
            "Barro Biliar",
            "Hidrops",
            "Líquido Libre Perivesical",
            "Dilatación CBC",
        ],
    },
    {
        "name": "E-FAST",
        "windows": ["Hepatorrenal", "Esplenorrenal", "Subxifoídeo", "Suprapúbica", "Pulmonar"],
        "diagnoses": ["Líquido Libre", "NTX", "Hemotórax", "Otro"],
    },
    {
        "name": "Aorta",
        "windows": [
            "Aorta Torácica",
            "Abdominal (Zona 1)",
            "Abdominal (Zona 2)",
            "Abdominal (Zona 3)",
        ],
        "diagnoses": ["AAA", "Disección", "Otro"],
    },
    {
        "name": "TVP",
        "windows": ["Safeno Femoral", "VFS", "VFC", "Poplítea", "Trifurcación"],
        "diagnoses": ["Trombo", "Quiste de Baker", "Hematoma", "Otro"],
    },
    {
        "name": "Cardíaco",
        "sections": CARDIAC_SECTIONS,
        "windows": [
            "PSLAX",
            "RV Inflow",
            "RV Outflow",
            "A4C",
            "A5C",
            "A2C",
            "Subcostal Eje Largo",
            "Subcostal Eje Corto",
            "VCI",
        ],
        "diagnoses": [
            {"key": "FEVI", "children": ["<40%", ">40%", "VTI"]},
            {"key": "Relacion VD:VI", "children": ["<0.6", "0.6 - 1", ">1"]},
            {
                "key": "Alt. Motilidad Segmentaria",
                "children": [
                    {"key": wall, "children": KINESIA}
                    for wall in ["Anterior", "Lateral", "Inferior", "Septal", "Difusa"]
                ],
            },
            {
                "key": "Valvulopatía",
                "children": [_valve(v) for v in ["Mitral", "Aórtica", "Tricuspídea", "Pulmonar"]],
            },
            {
                "key": "Derrame Pericárdico",
                "children": [
                    {
                        "key": "Sí",
                        "children": [
                            {
                                "key": "Taponamiento (+)",
                                "children": [
                                    "Colapso VD diastólico",
                                    "Colapso AD sistólico",
                                    "VCI pletórica",
                                ],
                            }
                        ],
                    },
                    "No",
                ],
            },
        ],
    },
    # Point-of-care protocols reuse the cardiac template and have no tree yet
    {"name": "FATE", "sections": CARDIAC_SECTIONS},
    {"name": "FAST", "sections": CARDIAC_SECTIONS},
    {"name": "RUSH", "sections": CARDIAC_SECTIONS},
    {"name": "BLUE", "sections": CARDIAC_SECTIONS},
    {"name": "FOCUS", "sections": CARDIAC_SECTIONS},
]

# Model and parent column for each tree depth below a possible diagnosis
_DEEPER_LEVELS = [
    (Subdiagnosis, "possible_diagnosis_id"),
    (SubSubdiagnosis, "subdiagnosis_id"),
    (ThirdOrderDiagnosis, "sub_subdiagnosis_id"),
]


def _get_or_create(db: Session, model, defaults=None, **lookup):
    """Return (row, created) for the row matching lookup, inserting it if missing."""
    row = db.query(model).filter_by(**lookup).first()
    if row:
        return row, False
    row = model(**lookup, **(defaults or {}))
    db.add(row)
    db.flush()
    return row, True


def _split_node(node):
    if isinstance(node, str):
        return node, []
    return node["key"], node.get("children", [])


def _seed_children(db: Session, children, parent_id: int, depth: int) -> int:
    if depth >= len(_DEEPER_LEVELS):
        return 0

    model, parent_column = _DEEPER_LEVELS[depth]
    created = 0
    for child in children:
        key, grandchildren = _split_node(child)
        row, was_created = _get_or_create(
            db, model, defaults={"name": key}, **{parent_column: parent_id, "key": key}
        )
        created += was_created
        created += _seed_children(db, grandchildren, row.id, depth + 1)
    return created


def _seed_protocol(db: Session, definition: dict) -> int:
    name = definition["name"]
    protocol, created = _get_or_create(db, Protocol, defaults={"name": name}, key=derive_key(name))
    count = int(created)

    for section_def in definition.get("sections", []):
        section, was_created = _get_or_create(
            db,
            ScoringSection,
            defaults={"name": section_def["name"], "sort_order": section_def["sort_order"]},
            protocol_id=protocol.id,
            key=section_def["key"],
        )
        count += was_created
        for key, label, scale, max_score in section_def["items"]:
            _, was_created = _get_or_create(
                db,
                ScoringItem,
                defaults={"label": label, "score_scale": scale, "max_score": max_score},
                section_id=section.id,
                key=key,
            )
            count += was_created

    for window_key in definition.get("windows", []):
        window, was_created = _get_or_create(
            db, ProtocolWindow, defaults={"name": window_key}, protocol_id=protocol.id, key=window_key
        )
        count += was_created
        for finding_key in FINDINGS:
            finding, was_created = _get_or_create(
                db, Finding, defaults={"name": finding_key}, window_id=window.id, key=finding_key
            )
            count += was_created
            for diagnosis in definition.get("diagnoses", []):
                key, children = _split_node(diagnosis)
                row, was_created = _get_or_create(
                    db, PossibleDiagnosis, defaults={"name": key}, finding_id=finding.id, key=key
                )
                count += was_created
                count += _seed_children(db, children, row.id, 0)

    return count


def seed_protocols(db: Session = None) -> int:
    """
    Load the protocol catalogue, skipping anything already present.

    Safe to run repeatedly. Returns the number of rows inserted.
    """
    owns_session = db is None
    if owns_session:
        db = SessionLocal()

    try:
        created = 0
        for name in IMAGE_QUALITIES:
            created += _get_or_create(db, ImageQuality, name=name)[1]
        for name in FINAL_DIAGNOSES:
            created += _get_or_create(db, FinalDiagnosis, name=name)[1]
        for definition in PROTOCOLS:
            created += _seed_protocol(db, definition)

        db.commit()
        if created:
            print(f"Successfully seeded {created} protocol catalogue rows.")
        else:
            print("Protocol catalogue already seeded. Skipping.")
        return created

    except Exception as e:
        print(f"Error seeding protocols: {e}")
        db.rollback()
        raise
    finally:
        if owns_session:
            db.close()


if __name__ == "__main__":
    seed_protocols()
