"""
Tests for the upload intake endpoint.
"""

import pytest
from fastapi.testclient import TestClient

from coach_api.config.settings import Settings
from coach_api.main import create_app

MB = 1024 * 1024


class TestUploadIntake:
    """Tests for POST /api/v1/uploads."""

    def test_valid_upload_accepted(self, client):
        response = client.post("/api/v1/uploads", json={
            "filename": "lap-times.m4a",
            "mimeType": "audio/mp4",
            "sizeBytes": 2 * MB,
            "purpose": "session_audio",
        })

        assert response.status_code == 202
        data = response.json()
        assert data["uploadId"]
        assert data["status"] == "pending"
        assert data["purpose"] == "session_audio"

    @pytest.mark.parametrize("mime_type", ["image/png", "video/mp4", "AUDIO/WAV"])
    def test_allowed_type_families(self, client, mime_type):
        response = client.post("/api/v1/uploads", json={
            "filename": "file", "mimeType": mime_type, "sizeBytes": 1,
        })

        assert response.status_code == 202

    def test_size_and_type_reported_together(self, client):
        """An oversized file of a disallowed type gets both violations."""
        response = client.post("/api/v1/uploads", json={
            "filename": "archive.zip",
            "mimeType": "application/zip",
            "sizeBytes": 11 * MB,
        })

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Upload rejected"
        assert [d["field"] for d in body["details"]] == ["sizeBytes", "mimeType"]
        assert [d["code"] for d in body["details"]] == ["file_too_large", "invalid_file_type"]

    def test_exactly_max_size_accepted(self, client):
        response = client.post("/api/v1/uploads", json={
            "filename": "clip.mp4", "mimeType": "video/mp4", "sizeBytes": 10 * MB,
        })

        assert response.status_code == 202

    def test_schema_errors_reported(self, client):
        response = client.post("/api/v1/uploads", json={
            "mimeType": "not a mime type",
            "sizeBytes": 0,
            "purpose": "backup",
        })

        assert response.status_code == 400
        fields = {d["field"] for d in response.json()["details"]}
        assert fields == {"filename", "mimeType", "sizeBytes", "purpose"}

    def test_limits_come_from_settings(self):
        settings = Settings(
            _env_file=None,
            max_upload_size_mb=1,
            allowed_upload_mime_types="application/pdf",
        )
        client = TestClient(create_app(settings))

        accepted = client.post("/api/v1/uploads", json={
            "filename": "plan.pdf", "mimeType": "application/pdf", "sizeBytes": MB,
        })
        rejected = client.post("/api/v1/uploads", json={
            "filename": "song.mp3", "mimeType": "audio/mpeg", "sizeBytes": 2 * MB,
        })

        assert accepted.status_code == 202
        assert rejected.status_code == 400
        assert len(rejected.json()["details"]) == 2
