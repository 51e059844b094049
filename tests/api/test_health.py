"""
Tests for health check endpoints.
"""

from fastapi.testclient import TestClient

from coach_api.api.dependencies import get_note_repository
from coach_api.config.settings import Settings
from coach_api.infrastructure.memory.notes import InMemoryNoteRepository
from coach_api.main import create_app


class TestHealth:

    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready_with_valid_config(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_with_bad_config(self):
        """Misconfiguration makes readiness fail so no traffic is routed here."""
        settings = Settings(_env_file=None, access_reason_min_length=0)
        client = TestClient(create_app(settings))

        response = client.get("/health/ready")

        assert response.status_code == 503
        checks = {c["name"]: c for c in response.json()["checks"]}
        assert checks["configuration"]["status"] == "error"
        assert "ACCESS_REASON_MIN_LENGTH" in checks["configuration"]["error"]

    def test_not_ready_when_storage_fails(self, app):
        """The storage check actually queries the repository."""

        class BrokenRepository(InMemoryNoteRepository):
            def list_page(self, *args, **kwargs):
                raise RuntimeError("storage unavailable")

        app.dependency_overrides[get_note_repository] = BrokenRepository
        client = TestClient(app)

        response = client.get("/health/ready")

        assert response.status_code == 503
        checks = {c["name"]: c for c in response.json()["checks"]}
        assert checks["storage"]["status"] == "error"
        assert checks["storage"]["error"] == "storage unavailable"
        assert checks["configuration"]["status"] == "ok"
