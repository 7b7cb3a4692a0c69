"""
Integration tests for the Protocols API.

Tests the taxonomy, template and selection endpoints including:
- Authentication and role requirements
- Protocol creation status codes
- Decision tree navigation
- Selection upsert round trips
"""
import pytest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from echoscore.models import ClipSelection, User
from tests.factories import (
    create_clip,
    create_protocol,
    create_taxonomy_path,
    create_template,
)


class TestProtocolCreation:
    """Tests for POST /protocols."""

    def test_requires_auth(self, client: TestClient):
        response = client.post("/protocols", json={"name": "Lung US"})

        assert response.status_code == 401

    def test_requires_admin(self, auth_client: TestClient):
        response = auth_client.post("/protocols", json={"name": "Lung US"})

        assert response.status_code == 403

    def test_create_protocol(self, admin_client: TestClient):
        response = admin_client.post("/protocols", json={"name": "  Évaluation Protócol v2.1 (Revised)!  "})

        assert response.status_code == 201
        data = response.json()
        assert data["key"] == "evaluation_protocol_v21_revised"
        assert data["id"] is not None

    @pytest.mark.parametrize("body", [{}, {"name": ""}, {"name": "   "}, {"name": 7}, {"name": "!!!"}])
    def test_invalid_name(self, admin_client: TestClient, body):
        response = admin_client.post("/protocols", json=body)

        assert response.status_code == 400

    def test_duplicate_key(self, admin_client: TestClient):
        assert admin_client.post("/protocols", json={"name": "Lung US"}).status_code == 201

        response = admin_client.post("/protocols", json={"name": "LUNG us"})

        assert response.status_code == 409


class TestProtocolRead:
    """Tests for protocol listing and detail."""

    def test_list_protocols(self, client: TestClient, db: Session):
        create_protocol(db, "Renal")
        create_protocol(db, "Aorta")

        response = client.get("/protocols")

        assert response.status_code == 200
        assert [p["key"] for p in response.json()] == ["aorta", "renal"]

    def test_get_protocol_with_template(self, client: TestClient, db: Session):
        protocol = create_protocol(db, "Lung US")
        create_template(db, protocol, {"Z1": 5, "Normal": 1})

        response = client.get("/protocols/lung_us")

        assert response.status_code == 200
        [section] = response.json()["sections"]
        assert [i["key"] for i in section["items"]] == ["Z1", "Normal"]
        assert section["items"][0]["max_score"] == 5

    def test_get_unknown_protocol(self, client: TestClient):
        response = client.get("/protocols/missing")

        assert response.status_code == 404
        assert "missing" in response.json()["detail"]

    def test_database_error_is_opaque_500(self, client: TestClient):
        with patch(
            "echoscore.api.protocols.taxonomy_service.list_protocols",
            side_effect=OperationalError("SELECT", {}, Exception("connection lost")),
        ):
            response = client.get("/protocols")

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}


class TestTemplateEditing:
    """Tests for section and item creation."""

    def test_add_section_and_item(self, admin_client: TestClient, db: Session):
        create_protocol(db, "Lung US")

        section = admin_client.post(
            "/protocols/lung_us/sections",
            json={"key": "adq", "name": "Image Generation", "sort_order": 1},
        )
        item = admin_client.post(
            "/protocols/lung_us/sections/adq/items",
            json={"key": "Z1", "label": "Zona 1", "max_score": 5},
        )

        assert section.status_code == 201
        assert item.status_code == 201
        assert item.json()["max_score"] == 5

    def test_add_item_invalid_max(self, admin_client: TestClient, db: Session):
        protocol = create_protocol(db, "Lung US")
        create_template(db, protocol, {})

        response = admin_client.post(
            "/protocols/lung_us/sections/adq/items",
            json={"key": "Z1", "label": "Zona 1", "max_score": 0},
        )

        assert response.status_code == 400

    def test_add_section_unknown_protocol(self, admin_client: TestClient):
        response = admin_client.post(
            "/protocols/missing/sections", json={"key": "adq", "name": "Image Generation"}
        )

        assert response.status_code == 404


class TestDecisionTree:
    """Tests for taxonomy navigation endpoints."""

    def test_walk_full_path(self, client: TestClient, db: Session):
        nodes = create_taxonomy_path(db, depth=6)
        key = nodes["protocol"].key

        steps = [
            (f"/protocols/{key}/windows", "window"),
            (f"/protocols/windows/{nodes['window'].id}/findings", "finding"),
            (f"/protocols/findings/{nodes['finding'].id}/possible-diagnoses", "possible_diagnosis"),
            (
                f"/protocols/possible-diagnoses/{nodes['possible_diagnosis'].id}/subdiagnoses",
                "subdiagnosis",
            ),
            (
                f"/protocols/subdiagnoses/{nodes['subdiagnosis'].id}/sub-subdiagnoses",
                "sub_subdiagnosis",
            ),
            (
                f"/protocols/sub-subdiagnoses/{nodes['sub_subdiagnosis'].id}/third-order",
                "third_order",
            ),
        ]
        for url, level in steps:
            response = client.get(url)
            assert response.status_code == 200
            assert [n["id"] for n in response.json()] == [nodes[level].id]

    def test_windows_of_unknown_protocol(self, client: TestClient):
        assert client.get("/protocols/missing/windows").status_code == 404

    def test_children_of_unknown_parent_is_empty(self, client: TestClient):
        response = client.get("/protocols/windows/99999/findings")

        assert response.status_code == 200
        assert response.json() == []

    def test_non_numeric_id(self, client: TestClient):
        assert client.get("/protocols/windows/abc/findings").status_code == 422

    def test_create_node(self, admin_client: TestClient, db: Session):
        protocol = create_protocol(db)

        response = admin_client.post(
            "/protocols/taxonomy/window", json={"parent_id": protocol.id, "key": "R1"}
        )

        assert response.status_code == 201
        assert response.json()["level"] == "window"
        assert response.json()["name"] == "R1"

    def test_create_node_unknown_level(self, admin_client: TestClient):
        response = admin_client.post(
            "/protocols/taxonomy/organ", json={"parent_id": 1, "key": "R1"}
        )

        assert response.status_code == 422

    def test_create_node_unknown_parent(self, admin_client: TestClient):
        response = admin_client.post(
            "/protocols/taxonomy/finding", json={"parent_id": 99999, "key": "Positivo"}
        )

        assert response.status_code == 404

    def test_reference_lists(self, client: TestClient):
        assert client.get("/protocols/image-qualities").json() == []
        assert client.get("/protocols/final-diagnoses").json() == []


class TestSelections:
    """Tests for clip selection endpoints."""

    @staticmethod
    def _body(nodes, **extra):
        body = {
            "protocolId": nodes["protocol"].id,
            "windowId": nodes["window"].id,
            "findingId": nodes["finding"].id,
            "possibleDiagnosisId": nodes["possible_diagnosis"].id,
        }
        body.update(extra)
        return body

    def test_requires_auth(self, client: TestClient, db: Session):
        nodes = create_taxonomy_path(db)
        clip = create_clip(db)

        response = client.post(f"/protocols/video/{clip.id}/selection", json=self._body(nodes))

        assert response.status_code == 401

    def test_save_and_get(self, auth_client: TestClient, db: Session, test_user: User):
        nodes = create_taxonomy_path(db)
        clip = create_clip(db)

        response = auth_client.post(
            f"/protocols/video/{clip.id}/selection",
            json=self._body(nodes, subdiagnosisId=nodes["subdiagnosis"].id),
        )

        assert response.status_code == 201
        assert response.json()["user_id"] == test_user.id
        assert response.json()["subdiagnosis_id"] == nodes["subdiagnosis"].id

        stored = auth_client.get(f"/protocols/video/{clip.id}/selection")
        assert stored.status_code == 200
        assert stored.json()["finding_id"] == nodes["finding"].id

    def test_resubmission_overwrites(self, auth_client: TestClient, db: Session):
        first = create_taxonomy_path(db)
        second = create_taxonomy_path(db)
        clip = create_clip(db)

        auth_client.post(
            f"/protocols/video/{clip.id}/selection",
            json=self._body(first, subdiagnosisId=first["subdiagnosis"].id),
        )
        response = auth_client.post(f"/protocols/video/{clip.id}/selection", json=self._body(second))

        assert response.status_code == 201
        assert response.json()["protocol_id"] == second["protocol"].id
        assert response.json()["subdiagnosis_id"] is None
        assert db.query(ClipSelection).filter_by(clip_id=clip.id).count() == 1

    def test_get_without_selection(self, auth_client: TestClient, db: Session):
        clip = create_clip(db)

        assert auth_client.get(f"/protocols/video/{clip.id}/selection").status_code == 404

    def test_missing_required_level(self, auth_client: TestClient, db: Session):
        nodes = create_taxonomy_path(db)
        clip = create_clip(db)
        body = self._body(nodes)
        del body["findingId"]

        response = auth_client.post(f"/protocols/video/{clip.id}/selection", json=body)

        assert response.status_code == 422

    def test_unknown_node(self, auth_client: TestClient, db: Session):
        nodes = create_taxonomy_path(db)
        clip = create_clip(db)
        db.commit()

        response = auth_client.post(
            f"/protocols/video/{clip.id}/selection", json=self._body(nodes, windowId=99999)
        )

        assert response.status_code == 400
