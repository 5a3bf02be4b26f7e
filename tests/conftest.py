"""
Pytest configuration and shared fixtures for patsub tests.
"""

import pytest

from patsub import Hub, Mailbox


# =============================================================================
# Hub fixtures
# =============================================================================


@pytest.fixture
def hub() -> Hub:
    """Fresh hub with its own registry."""
    return Hub()


@pytest.fixture
def mailbox() -> Mailbox:
    """Mailbox owned by the test."""
    return Mailbox("test-owner")


# =============================================================================
# Server fixtures
# =============================================================================


API_KEY = "test-key"


@pytest.fixture
def api_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Configure the server API key and disable heartbeats; returns auth headers."""
    monkeypatch.setenv("API_KEY", API_KEY)
    monkeypatch.setenv("HEARTBEAT_INTERVAL_SEC", "0")
    return {"X-API-Key": API_KEY}
