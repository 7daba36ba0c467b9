"""
REST 어댑터 - FastAPI TestClient + dependency override
"""
import uuid

import pytest
from fastapi.testclient import TestClient

from category_hierarchy.api.dependencies import get_write_service
from category_hierarchy.config.database import get_read_db, get_write_db
from category_hierarchy.main import app
from category_hierarchy.services.category_service import CategoryHierarchyService

from tests.conftest import FailingAuditService

BASE_URL = "/api/v1/categories"
HEADERS = {"X-Tenant-ID": "tenant-a", "X-User-ID": "user-1"}


@pytest.fixture
def client(session_factory):
    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_write_db] = override_db
    app.dependency_overrides[get_read_db] = override_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def create(client, code, parent_id=None, name=None):
    response = client.post(BASE_URL, json={"code": code, "name": name or code, "parent_id": parent_id}, headers=HEADERS)
    assert response.status_code == 201, response.text
    return response.json()["category"]


class TestCategoryEndpoints:
    def test_create_and_read(self, client):
        root = create(client, "ELECTRONICS")
        child = create(client, "DRILLS", parent_id=root["id"])

        assert child["path"] == "/ELECTRONICS"
        assert child["depth"] == 1

        response = client.get(f"{BASE_URL}/{child['id']}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["code"] == "DRILLS"

    def test_create_response_has_no_warnings(self, client):
        response = client.post(BASE_URL, json={"code": "A", "name": "A"}, headers=HEADERS)
        assert response.json()["warnings"] == []

    def test_validation_error_is_400(self, client):
        response = client.post(BASE_URL, json={"code": " ", "name": "A"}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "INVALID_CODE"

    def test_duplicate_is_409(self, client):
        create(client, "A")
        response = client.post(BASE_URL, json={"code": "A", "name": "again"}, headers=HEADERS)
        assert response.status_code == 409
        assert response.json()["detail"]["kind"] == "CONFLICT"

    def test_unknown_category_is_404(self, client):
        response = client.get(f"{BASE_URL}/{uuid.uuid4()}", headers=HEADERS)
        assert response.status_code == 404
        assert response.json()["detail"]["reason"] == "CATEGORY_NOT_FOUND"

    def test_malformed_id_is_400(self, client):
        response = client.get(f"{BASE_URL}/123", headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "INVALID_ID"

    def test_tenant_header_is_required(self, client):
        response = client.get(BASE_URL)
        assert response.status_code == 422

    def test_other_tenant_cannot_read(self, client):
        a = create(client, "A")
        response = client.get(f"{BASE_URL}/{a['id']}", headers={**HEADERS, "X-Tenant-ID": "tenant-b"})
        assert response.status_code == 404

    def test_reparent_with_patch(self, client):
        a = create(client, "A")
        b = create(client, "B", parent_id=a["id"])
        c = create(client, "C", parent_id=b["id"])
        d = create(client, "D")

        response = client.patch(f"{BASE_URL}/{b['id']}", json={"parent_id": d["id"]}, headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["category"]["path"] == "/D"

        response = client.get(f"{BASE_URL}/{c['id']}", headers=HEADERS)
        assert response.json()["path"] == "/D/B"

    def test_circular_reparent_is_409(self, client):
        a = create(client, "A")
        b = create(client, "B", parent_id=a["id"])
        response = client.patch(f"{BASE_URL}/{a['id']}", json={"parent_id": b["id"]}, headers=HEADERS)
        assert response.status_code == 409
        assert response.json()["detail"]["reason"] == "CIRCULAR_REFERENCE"

    def test_delete_twice(self, client):
        a = create(client, "A")
        first = client.delete(f"{BASE_URL}/{a['id']}", headers=HEADERS)
        second = client.delete(f"{BASE_URL}/{a['id']}", headers=HEADERS)

        assert first.status_code == 200
        assert first.json()["category"]["status"] == "INACTIVE"
        assert second.status_code == 409
        assert second.json()["detail"]["reason"] == "ALREADY_DELETED"

    def test_tree(self, client):
        a = create(client, "A", name="Alpha")
        create(client, "B", parent_id=a["id"], name="Beta")
        create(client, "Z", name="Zulu")

        response = client.get(BASE_URL, params={"root_only": True, "max_depth": 1}, headers=HEADERS)
        assert response.status_code == 200
        nodes = response.json()
        assert [n["code"] for n in nodes] == ["A", "Z"]
        assert [n["code"] for n in nodes[0]["children"]] == ["B"]

    def test_tree_rejects_negative_depth(self, client):
        response = client.get(BASE_URL, params={"max_depth": -1}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "INVALID_FILTER"

    def test_children_ancestors_and_stats(self, client):
        a = create(client, "A")
        b = create(client, "B", parent_id=a["id"])
        c = create(client, "C", parent_id=b["id"])

        children = client.get(f"{BASE_URL}/{a['id']}/children", headers=HEADERS).json()
        ancestors = client.get(f"{BASE_URL}/{c['id']}/ancestors", headers=HEADERS).json()
        stats = client.get(f"{BASE_URL}/{a['id']}/stats", headers=HEADERS).json()

        assert [x["code"] for x in children] == ["B"]
        assert [x["code"] for x in ancestors] == ["B", "A"]
        assert stats == {"category_id": a["id"], "item_count": 0, "total_item_count": 0, "active_item_count": 0}

    def test_audit_failure_is_reported_as_warning(self, client, session_factory):
        def failing_audit_service():
            session = session_factory()
            try:
                yield CategoryHierarchyService(session, audit_service=FailingAuditService())
            finally:
                session.close()

        app.dependency_overrides[get_write_service] = failing_audit_service
        response = client.post(BASE_URL, json={"code": "A", "name": "A"}, headers=HEADERS)

        assert response.status_code == 201
        warnings = response.json()["warnings"]
        assert warnings == [{"kind": "DEPENDENCY", "reason": "AUDIT_FAILED", "message": warnings[0]["message"]}]


class TestHealth:
    def test_liveness(self, client):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}
