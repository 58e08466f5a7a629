"""
Root pytest fixtures for webull_core tests.

Provides mock transports, controllable clocks, and pre-wired auth/dispatcher objects.
"""

from __future__ import annotations
import pytest
from datetime import datetime, timedelta, timezone
import sys
import os

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tests.mocks.mock_transport import MockTransport
from webull_core.auth import AccessToken, AuthManager
from webull_core.config import WebullConfig
from webull_core.dispatcher import RequestDispatcher


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUtcClock:
    """UTC wall clock advanced by hand."""

    def __init__(self, start: datetime = datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def utc_clock():
    return FakeUtcClock()


# ---------------------------------------------------------------------------
# Config / Transport
# ---------------------------------------------------------------------------

@pytest.fixture
def config():
    return WebullConfig(
        api_key="test-key",
        api_secret="test-secret",
        device_id="device-1",
        base_url="https://api.test.local",
    )


@pytest.fixture
def transport():
    return MockTransport()


# ---------------------------------------------------------------------------
# Auth / Dispatcher
# ---------------------------------------------------------------------------

@pytest.fixture
def auth(config, transport, utc_clock):
    return AuthManager(config, transport, clock=utc_clock)


@pytest.fixture
def valid_token(utc_clock):
    return AccessToken(
        token="access-1",
        expires_at=utc_clock() + timedelta(hours=1),
        refresh_token="refresh-1",
    )


@pytest.fixture
def authed(auth, valid_token):
    """AuthManager holding a valid token."""
    auth.token_store.store(valid_token)
    return auth


@pytest.fixture
def dispatcher(config, authed, transport):
    return RequestDispatcher(config, authed, transport)
