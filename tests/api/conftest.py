"""
Fixtures for API tests.

Each test gets its own app built from explicit settings and a fresh
in-memory repository, so tests never see each other's notes.
"""

import pytest
from fastapi.testclient import TestClient

from coach_api.api.dependencies import get_note_repository
from coach_api.config.settings import Settings
from coach_api.infrastructure.memory.notes import InMemoryNoteRepository
from coach_api.main import create_app

ALLOWED_ORIGIN = "https://coach.example.com"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        cors_origins=f"http://localhost:5173,{ALLOWED_ORIGIN}",
    )


@pytest.fixture
def repository() -> InMemoryNoteRepository:
    return InMemoryNoteRepository()


@pytest.fixture
def app(settings, repository):
    app = create_app(settings)
    app.dependency_overrides[get_note_repository] = lambda: repository
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
