"""
Unit tests for CLI commands and protocol seeding.
"""
import pytest
from unittest.mock import patch

from sqlalchemy.orm import Session

from echoscore.cli import create_protocol, main
from echoscore.models import (
    FinalDiagnosis,
    ImageQuality,
    Protocol,
    ScoringItem,
    ThirdOrderDiagnosis,
)
from echoscore.seed_protocols import seed_protocols
from echoscore.services.taxonomy_service import taxonomy_service
from echoscore.models.taxonomy import TaxonomyLevel
from tests.factories import create_protocol as make_protocol


class TestCreateProtocolCommand:
    """Tests for the create-protocol command."""

    def test_create_protocol_success(self, db: Session):
        with patch('echoscore.cli.SessionLocal', return_value=db), \
             patch('builtins.print') as mock_print:

            create_protocol("Lung US")

        protocol = db.query(Protocol).filter(Protocol.key == "lung_us").first()
        assert protocol is not None
        mock_print.assert_called_with("Protocol created successfully: lung_us (Lung US)")

    def test_create_protocol_duplicate(self, db: Session):
        make_protocol(db, "Lung US")
        db.commit()

        with patch('echoscore.cli.SessionLocal', return_value=db), \
             patch('builtins.print') as mock_print, \
             pytest.raises(SystemExit) as exc_info:

            create_protocol("lung us")

        assert exc_info.value.code == 1
        assert "already exists" in str(mock_print.call_args)

    def test_main_dispatches_create_protocol(self):
        with patch('sys.argv', ['echoscore', 'create-protocol', '--name', 'Renal']), \
             patch('echoscore.cli.create_protocol') as mock_create:

            main()

        mock_create.assert_called_once_with('Renal')

    def test_main_without_command_exits(self):
        with patch('sys.argv', ['echoscore']), \
             patch('builtins.print'), \
             pytest.raises(SystemExit) as exc_info:

            main()

        assert exc_info.value.code == 1


@pytest.mark.slow
class TestSeedProtocols:
    """Tests for seed_protocols."""

    def test_seed_loads_catalogue(self, db: Session):
        with patch('builtins.print'):
            created = seed_protocols(db)

        assert created > 0
        assert db.query(ImageQuality).count() == 2
        assert db.query(FinalDiagnosis).count() == 4

        keys = {p.key for p in db.query(Protocol).all()}
        assert {"pulmon", "cardiaco", "efast", "fate", "focus"} <= keys

        lung = taxonomy_service.get_protocol(db, "pulmon")
        assert [s["key"] for s in lung["sections"]] == ["adq", "int"]
        assert len(lung["sections"][0]["items"]) == 8
        assert taxonomy_service.template_max_score(db, lung["id"]) == 48

    def test_seed_builds_full_depth_tree(self, db: Session):
        with patch('builtins.print'):
            seed_protocols(db)

        [window] = [w for w in taxonomy_service.list_windows(db, "cardiaco") if w["key"] == "A4C"]
        findings = taxonomy_service.list_children(db, TaxonomyLevel.FINDING, window["id"])
        assert [f["key"] for f in findings] == ["Negativo", "Positivo"]

        diagnoses = taxonomy_service.list_children(
            db, TaxonomyLevel.POSSIBLE_DIAGNOSIS, findings[1]["id"]
        )
        [valve] = [d for d in diagnoses if d["key"] == "Valvulopatía"]
        subdiagnoses = taxonomy_service.list_children(db, TaxonomyLevel.SUBDIAGNOSIS, valve["id"])
        [mitral] = [s for s in subdiagnoses if s["key"] == "Mitral"]
        lesions = taxonomy_service.list_children(db, TaxonomyLevel.SUB_SUBDIAGNOSIS, mitral["id"])
        assert [lesion["key"] for lesion in lesions] == ["Estenosis", "Insuficiencia"]

        grades = taxonomy_service.list_children(
            db, TaxonomyLevel.THIRD_ORDER_DIAGNOSIS, lesions[0]["id"]
        )
        assert [g["key"] for g in grades] == ["Leve", "Moderado", "Severo"]

    def test_seed_is_idempotent(self, db: Session):
        with patch('builtins.print'):
            seed_protocols(db)
            items = db.query(ScoringItem).count()
            nodes = db.query(ThirdOrderDiagnosis).count()

            assert seed_protocols(db) == 0

        assert db.query(ScoringItem).count() == items
        assert db.query(ThirdOrderDiagnosis).count() == nodes

    def test_seed_keeps_existing_protocol(self, db: Session):
        """Test that a protocol created by hand is extended, not duplicated."""
        existing = make_protocol(db, "Pulmón")

        with patch('builtins.print'):
            seed_protocols(db)

        assert db.query(Protocol).filter(Protocol.key == "pulmon").one().id == existing.id
