"""Fixtures for API route tests.

The client is created without entering the lifespan, so no database or
Redis connection is opened. Routes are exercised against patched services.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.core.config import get_settings

settings = get_settings()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def api():
    """Prefix a route path with the API version prefix."""
    def _path(path: str) -> str:
        return f"{settings.API_V1_PREFIX}{path}"

    return _path
