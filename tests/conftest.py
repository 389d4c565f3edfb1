"""
Pytest configuration and shared fixtures

Add global fixtures here that are used across multiple test modules.
"""

import pytest
from fastapi.testclient import TestClient

# Register plugins for fixtures from separate files
pytest_plugins = ["tests.fixtures.psbt_fixtures"]


@pytest.fixture
def client():
    """
    FastAPI test client fixture.

    Imports the app and creates a TestClient for making HTTP requests.

    Yields:
        TestClient: Configured FastAPI test client
    """
    from api.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep tests independent of the developer's BITCOIN_NETWORK / RELAY_* env."""
    from settlement.config import reload_config

    for var in (
        "BITCOIN_NETWORK",
        "RELAY_BASE_URL",
        "RELAY_TIMEOUT_SECONDS",
        "FEE_TIMEOUT_SECONDS",
        "API_PORT",
        "LOG_MODE",
    ):
        monkeypatch.delenv(var, raising=False)
    yield reload_config()
    monkeypatch.undo()
    reload_config()
