"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from repo_analyzer.core.config import Settings
from repo_analyzer.main import create_app
from repo_analyzer.storage.memory import MemoryObjectStore

API_KEY = "test-secret"


@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        ENV="local",
        STORAGE_BACKEND="memory",
        STORAGE_BUCKET="test-bucket",
        STORAGE_REGION="eu-central-1",
        PUBLIC_BASE_URL="https://files.example.com",
        API_KEY=API_KEY,
        AUTH_DISABLED=False,
        MAX_UPLOAD_MB=1,
        STORAGE_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def store():
    """In-memory object store shared by the app and the test."""
    return MemoryObjectStore(base_url="https://files.example.com", default_bucket="test-bucket")


@pytest.fixture
def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest.fixture
def client(app):
    """Create test client with the app lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"x-api-key": API_KEY}
