"""Shared fixtures for API testing.

These fixtures provide a TestClient wired to a fresh ConversationCoordinator
for each test, ensuring test isolation.
"""

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_coordinator
from main import app
from tests.fixtures.engine import FakeClock, create_coordinator


@pytest.fixture
def client_with_coordinator():
    """Provide a TestClient with a fresh coordinator injected.

    Uses FastAPI's dependency override system to inject the test coordinator
    instead of the global one. The lifespan is not run, so no global engine
    is created.

    Yields:
        A tuple of (TestClient, ConversationCoordinator, FakeClock).

    Example:
        def test_something(client_with_coordinator):
            client, coordinator, clock = client_with_coordinator
            response = client.get("/conversations")
            assert response.status_code == 200
    """
    clock = FakeClock()
    coordinator = create_coordinator(clock=clock)
    app.dependency_overrides[get_coordinator] = lambda: coordinator

    client = TestClient(app, raise_server_exceptions=False)

    yield client, coordinator, clock

    coordinator.stop_background_sweep()
    app.dependency_overrides.clear()
