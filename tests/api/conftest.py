"""Fixtures for HTTP endpoint tests."""

import pytest
from fastapi.testclient import TestClient

from originality.main import app


@pytest.fixture
def test_client() -> TestClient:
    """FastAPI test client; the lifespan (database init) is not run."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    yield
    app.dependency_overrides.clear()
