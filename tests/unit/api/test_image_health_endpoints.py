"""
Unit tests for the image health admin endpoints.
"""
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from imageguard.api.dependencies import get_file_store
from imageguard.core.config import settings
from imageguard.core.database import get_session
from imageguard.core.exceptions import ImageStoreUnavailableError
from imageguard.main import app
from imageguard.services.file_store import FileStore

BASE = "/api/v1/admin/image-health"
CATEGORY_ID = "507f1f77bcf86cd799439011"


@pytest.fixture
def client(file_store, db_engine):
    def override_session():
        with Session(db_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_file_store] = lambda: file_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def messy_state(write_image, category_factory):
    write_image("pizza.jpg", b"pizza")
    write_image("a.jpg", b"same")
    write_image("b.jpg", b"same")
    category_factory(category_id=CATEGORY_ID, filename="pizza.jpg")


def test_health_endpoint(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "healthy"
    assert payload["database"] == "connected"
    assert "x-request-id" in response.headers


@pytest.mark.usefixtures("messy_state")
class TestDetection:

    def test_status(self, client):
        response = client.get(f"{BASE}/status")

        assert response.status_code == 200
        payload = response.json()
        assert payload["summary"]["total_files"] == 3
        assert payload["summary"]["orphaned_files"] == 2
        assert payload["status"] in {"excellent", "good", "fair", "poor"}

    def test_report_with_details(self, client):
        response = client.get(f"{BASE}/report", params={"include_details": True})

        assert response.status_code == 200
        details = response.json()["details"]
        assert details["integrity"]["orphaned"] == ["a.jpg", "b.jpg"]
        assert len(details["duplicates"]["groups"]) == 1

    def test_integrity(self, client):
        payload = client.get(f"{BASE}/integrity").json()

        assert payload["is_healthy"] is False
        assert payload["invalid_naming"][0]["category_id"] == CATEGORY_ID

    def test_orphaned(self, client):
        payload = client.get(f"{BASE}/detect/orphaned").json()

        assert payload["orphaned_files"] == ["a.jpg", "b.jpg"]
        assert payload["count"] == 2

    def test_references(self, client):
        payload = client.get(f"{BASE}/detect/references").json()

        assert payload["count"] == 1
        assert payload["invalid_naming"][0]["type"] == "non_unique_format"

    def test_reference_count_matches_integrity_when_absent_references_count(self, client, category_factory):
        category_factory(category_id="507f1f77bcf86cd799439012", name="Soup")

        with patch.object(settings, "missing_reference_is_issue", True):
            references = client.get(f"{BASE}/detect/references").json()
            integrity = client.get(f"{BASE}/integrity").json()

        assert len(references["missing_references"]) == 1
        assert references["count"] == 2
        assert references["count"] == integrity["total_issues"] - len(integrity["orphaned"])

    def test_duplicates(self, client):
        payload = client.get(f"{BASE}/detect/duplicates").json()

        assert payload["groups"][0]["files"] == ["a.jpg", "b.jpg"]
        assert payload["total_wasted_bytes"] == 4

    def test_storage(self, client):
        payload = client.get(f"{BASE}/storage").json()

        assert payload["total_files"] == 3
        assert payload["storage_efficiency"] == 100


@pytest.mark.usefixtures("messy_state")
class TestCorrection:

    def test_orphan_cleanup_dry_run(self, client, file_store):
        response = client.post(f"{BASE}/correct/orphaned", params={"dry_run": True})

        assert response.status_code == 200
        assert response.json()["corrected_count"] == 2
        assert file_store.list_image_files() == ["a.jpg", "b.jpg", "pizza.jpg"]

    def test_duplicate_correction(self, client, file_store):
        response = client.post(f"{BASE}/correct/duplicates")

        assert response.json()["corrected_count"] == 1
        assert len(file_store.list_image_files()) == 2

    def test_reference_correction(self, client, file_store):
        payload = client.post(f"{BASE}/correct/references").json()

        assert payload["naming"]["corrected_count"] == 1
        assert payload["missing"]["corrected_count"] == 0
        assert "pizza.jpg" not in file_store.list_image_files()

    def test_correct_all(self, client, file_store):
        payload = client.post(f"{BASE}/correct/all").json()

        assert payload["error_count"] == 0
        assert len(file_store.list_image_files()) == 1

    def test_migrate_defaults_to_dry_run(self, client, file_store):
        payload = client.post(f"{BASE}/migrate").json()

        assert payload["options"]["dry_run"] is True
        assert payload["success"] is True
        assert payload["backup_path"] is None
        assert file_store.list_image_files() == ["a.jpg", "b.jpg", "pizza.jpg"]


def test_unreadable_store_returns_503(client):
    with patch.object(
        FileStore,
        "list_image_files",
        side_effect=ImageStoreUnavailableError("Cannot read images directory"),
    ):
        response = client.get(f"{BASE}/integrity")

    assert response.status_code == 503
    assert response.json()["error"] == "ImageStoreUnavailableError"


def test_invalid_query_returns_422(client):
    response = client.get(f"{BASE}/report", params={"include_details": "maybe"})

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_unreachable_database_returns_503(client):
    error = OperationalError("SELECT category.id", {}, Exception("unable to open database file"))
    with patch.object(Session, "exec", side_effect=error):
        response = client.get(f"{BASE}/integrity")

    assert response.status_code == 503
    assert response.json()["error"] == "RecordStoreUnavailableError"


def test_requests_share_filename_locks(images_dir):
    with patch.object(settings, "images_dir", str(images_dir)):
        first = get_file_store()
        second = get_file_store()

    assert first is not second
    assert first._locks is second._locks
