"""
Tests for the request pipeline middleware: ids, timing and CORS.
"""

import logging
import re
import uuid

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from coach_api.api.middleware import (
    CorrelationIdMiddleware,
    RequestIdMiddleware,
    ResponseTimingMiddleware,
    resolve_for_path,
)
from coach_api.config.settings import Settings
from coach_api.main import create_app

ALLOWED_ORIGIN = "https://coach.example.com"

RESPONSE_TIME_PATTERN = re.compile(r"^\d+\.\d{2}ms$")


def is_uuid4(value: str) -> bool:
    try:
        return uuid.UUID(value).version == 4
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Correlation / Request IDs
# ---------------------------------------------------------------------------

class TestIdentifiers:
    """Tests for correlation and request id assignment."""

    def test_missing_ids_are_generated(self, client):
        """Without inbound ids, fresh UUIDs are echoed."""
        response = client.get("/health")

        assert is_uuid4(response.headers["X-Correlation-ID"])
        assert is_uuid4(response.headers["X-Request-ID"])

    def test_generated_ids_differ_per_request(self, client):
        first = client.get("/health").headers["X-Request-ID"]
        second = client.get("/health").headers["X-Request-ID"]

        assert first != second

    def test_inbound_ids_are_echoed_verbatim(self, client):
        response = client.get("/health", headers={
            "X-Correlation-ID": "trace-from-gateway",
            "X-Request-ID": "req 42",
        })

        assert response.headers["X-Correlation-ID"] == "trace-from-gateway"
        assert response.headers["X-Request-ID"] == "req 42"

    def test_empty_inbound_id_is_replaced(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": ""})

        assert is_uuid4(response.headers["X-Correlation-ID"])

    def test_api_routes_use_api_headers(self, client):
        response = client.get("/api/v1/coach-notes", headers={"X-API-Correlation-ID": "api-trace"})

        assert response.headers["X-API-Correlation-ID"] == "api-trace"
        assert is_uuid4(response.headers["X-API-Request-ID"])
        assert "X-Correlation-ID" not in response.headers

    def test_upload_routes_use_upload_headers(self, client):
        response = client.post(
            "/api/v1/uploads",
            json={"filename": "a.mp3", "mimeType": "audio/mpeg", "sizeBytes": 10},
            headers={"X-Upload-Request-ID": "upload-req"},
        )

        assert response.headers["X-Upload-Request-ID"] == "upload-req"
        assert is_uuid4(response.headers["X-Upload-Correlation-ID"])
        assert "X-API-Request-ID" not in response.headers

    def test_lookalike_path_uses_default_headers(self, client):
        """A path that merely starts with the same letters as /api is not under it."""
        response = client.get("/apiary")

        assert is_uuid4(response.headers["X-Correlation-ID"])
        assert "X-API-Correlation-ID" not in response.headers

    def test_ids_present_on_error_responses(self, client):
        response = client.get("/api/v1/coach-notes", params={"limit": "0"})

        assert response.status_code == 400
        assert response.headers["X-API-Request-ID"]
        assert response.json()["request_id"] == response.headers["X-API-Request-ID"]

    def test_custom_generator_and_header(self):
        """Stages are configured per instantiation."""
        app = FastAPI()
        app.add_middleware(RequestIdMiddleware, header_name="X-Trace", generator=lambda: "fixed-id")
        app.add_middleware(CorrelationIdMiddleware)

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        response = TestClient(app).get("/ping")

        assert response.headers["X-Trace"] == "fixed-id"
        assert is_uuid4(response.headers["X-Correlation-ID"])


class TestResolveForPath:

    def test_longest_prefix_wins(self):
        overrides = [("/api", "api"), ("/api/v1/uploads", "upload")]

        assert resolve_for_path("/api/v1/uploads/x", overrides, "default") == "upload"
        assert resolve_for_path("/api/v1/coach-notes", overrides, "default") == "api"
        assert resolve_for_path("/health", overrides, "default") == "default"

    def test_prefix_matches_whole_segments(self):
        overrides = [("/api", "api")]

        assert resolve_for_path("/api", overrides, "default") == "api"
        assert resolve_for_path("/apiary", overrides, "default") == "default"
        assert resolve_for_path("/api-docs", overrides, "default") == "default"

    def test_trailing_slash_in_prefix(self):
        assert resolve_for_path("/api/v1", [("/api/", "api")], "default") == "api"


# ---------------------------------------------------------------------------
# Response Timing
# ---------------------------------------------------------------------------

class TestResponseTiming:
    """Tests for X-Response-Time and slow request logging."""

    def test_header_on_success(self, client):
        response = client.get("/health")

        assert RESPONSE_TIME_PATTERN.match(response.headers["X-Response-Time"])
        assert float(response.headers["X-Response-Time"][:-2]) >= 0

    def test_header_on_client_error(self, client):
        response = client.get(f"/api/v1/coach-notes/{uuid.uuid4()}")

        assert response.status_code == 404
        assert RESPONSE_TIME_PATTERN.match(response.headers["X-Response-Time"])

    def test_slow_request_logged_with_threshold(self, caplog):
        settings = Settings(_env_file=None, slow_request_threshold_ms=0)
        client = TestClient(create_app(settings))

        with caplog.at_level(logging.WARNING, logger="coach_api.api.middleware"):
            client.get("/health", headers={"X-Correlation-ID": "slow-one"})

        records = [r for r in caplog.records if r.getMessage() == "Slow request"]
        assert len(records) == 1
        assert records[0].method == "GET"
        assert records[0].path == "/health"
        assert records[0].threshold_ms == 0
        assert records[0].duration_ms >= 0
        assert records[0].correlation_id == "slow-one"

    def test_slow_request_logging_can_be_disabled(self, caplog):
        settings = Settings(
            _env_file=None,
            slow_request_threshold_ms=0,
            slow_request_logging_enabled=False,
        )
        client = TestClient(create_app(settings))

        with caplog.at_level(logging.WARNING, logger="coach_api.api.middleware"):
            client.get("/health")

        assert not [r for r in caplog.records if r.getMessage() == "Slow request"]

    def test_fast_request_not_logged(self, client, caplog):
        with caplog.at_level(logging.WARNING, logger="coach_api.api.middleware"):
            client.get("/health")

        assert not [r for r in caplog.records if r.getMessage() == "Slow request"]

    def test_upload_threshold_applies_to_upload_paths(self):
        middleware = ResponseTimingMiddleware(
            app=None,
            threshold_ms=500,
            path_thresholds=[("/api/v1/uploads", 2000)],
        )

        assert middleware.threshold_for("/api/v1/uploads") == 2000
        assert middleware.threshold_for("/api/v1/coach-notes") == 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

class TestCORS:
    """Tests for origin allow-list enforcement."""

    @pytest.mark.parametrize("origin", ["http://localhost:5173", ALLOWED_ORIGIN])
    def test_allowed_origin_gets_cors_headers(self, client, origin):
        response = client.get("/health", headers={"Origin": origin})

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == origin
        assert response.headers["Access-Control-Allow-Credentials"] == "true"
        assert "X-Response-Time" in response.headers["Access-Control-Expose-Headers"]

    @pytest.mark.parametrize("origin", ["https://evil.example.com", "http://localhost:9999"])
    def test_unlisted_origin_is_forbidden(self, client, origin):
        response = client.get("/health", headers={"Origin": origin})

        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_rejected_request_never_reaches_route(self, client, repository):
        response = client.post(
            "/api/v1/coach-notes",
            json={"sessionId": str(uuid.uuid4()), "textContent": "note"},
            headers={"Origin": "https://evil.example.com"},
        )

        assert response.status_code == 403
        assert repository.list_page()[1] == 0

    def test_rejection_still_carries_ids_and_timing(self, client):
        response = client.get("/health", headers={"Origin": "https://evil.example.com"})

        assert response.headers["X-Correlation-ID"]
        assert RESPONSE_TIME_PATTERN.match(response.headers["X-Response-Time"])

    def test_no_origin_is_allowed(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_preflight_cached_for_a_day(self, client):
        response = client.options(
            "/api/v1/coach-notes",
            headers={
                "Origin": ALLOWED_ORIGIN,
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type, X-Access-Reason",
            },
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Max-Age"] == "86400"
        assert "DELETE" in response.headers["Access-Control-Allow-Methods"]


# ---------------------------------------------------------------------------
# Unhandled Errors
# ---------------------------------------------------------------------------

class TestUnhandledErrors:
    """Unexpected exceptions still go through the whole pipeline."""

    @pytest.fixture
    def failing_client(self, settings):
        settings = settings.model_copy(update={"slow_request_threshold_ms": 0})
        app = create_app(settings)

        @app.get("/api/v1/explode")
        async def explode():
            raise RuntimeError("database on fire")

        return TestClient(app, raise_server_exceptions=False)

    def test_500_carries_ids_and_timing(self, failing_client):
        response = failing_client.get("/api/v1/explode", headers={"X-API-Correlation-ID": "boom-trace"})

        assert response.status_code == 500
        assert response.headers["X-API-Correlation-ID"] == "boom-trace"
        assert is_uuid4(response.headers["X-API-Request-ID"])
        assert RESPONSE_TIME_PATTERN.match(response.headers["X-Response-Time"])

    def test_500_body_is_generic(self, failing_client):
        response = failing_client.get("/api/v1/explode")

        body = response.json()
        assert body["error"] == "Internal Server Error"
        assert body["code"] == "INTERNAL_SERVER_ERROR"
        assert "database on fire" not in body["message"]
        assert body["request_id"] == response.headers["X-API-Request-ID"]

    def test_500_logged_with_traceback(self, failing_client, caplog):
        with caplog.at_level(logging.ERROR, logger="coach_api.api.middleware"):
            failing_client.get("/api/v1/explode")

        records = [r for r in caplog.records if r.getMessage() == "Unhandled exception"]
        assert len(records) == 1
        assert records[0].exc_info is not None
        assert records[0].error == "database on fire"

    def test_500_still_checked_for_slowness(self, failing_client, caplog):
        with caplog.at_level(logging.WARNING, logger="coach_api.api.middleware"):
            failing_client.get("/api/v1/explode")

        records = [r for r in caplog.records if r.getMessage() == "Slow request"]
        assert len(records) == 1
        assert records[0].status_code == 500

    def test_500_keeps_cors_headers_for_allowed_origin(self, failing_client):
        response = failing_client.get("/api/v1/explode", headers={"Origin": ALLOWED_ORIGIN})

        assert response.status_code == 500
        assert response.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN
