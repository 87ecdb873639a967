"""
Pytest configuration and shared fixtures.

Contains common test fixtures and setup for all test modules.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

from logjam.config import DecoderSettings, DispatcherSettings, Settings
from logjam.core.sinks import Sink
from logjam.main import create_app

VALID_TOKEN = "test_token_valid_123456789abc"
OTHER_TOKEN = "test_token_other_123456789abc"


class RecordingSink(Sink):
    """Sink that keeps every delivered record in memory."""

    name = "recording"

    def __init__(self) -> None:
        self.records: List[Dict[str, Any]] = []

    async def deliver(self, record: Dict[str, Any]) -> None:
        self.records.append(record)


class HangingSink(Sink):
    """Sink whose deliveries never complete."""

    name = "hanging"

    def __init__(self) -> None:
        self.started = 0

    async def deliver(self, record: Dict[str, Any]) -> None:
        self.started += 1
        await asyncio.Event().wait()


class FailingSink(Sink):
    """Sink that always raises."""

    name = "failing"

    def __init__(self) -> None:
        self.calls = 0

    async def deliver(self, record: Dict[str, Any]) -> None:
        self.calls += 1
        raise RuntimeError("sink unavailable")


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll predicate until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def metric_value(client: TestClient, name: str, **labels: str) -> Optional[float]:
    """Read one sample from the app's own metrics registry."""
    return client.app.state.metrics.registry.get_sample_value(name, labels)


def auth_headers(token: str = VALID_TOKEN, **extra: str) -> Dict[str, str]:
    """Helper to create token headers for TestClient."""
    headers = {"x-logjam-token": token}
    headers.update(extra)
    return headers


@pytest.fixture
def test_settings() -> Settings:
    """Test configuration."""
    return Settings(
        tokens=f"{VALID_TOKEN},{OTHER_TOKEN}",
        log_level="DEBUG",
        decoder=DecoderSettings(max_body_bytes=1024),
        dispatcher=DispatcherSettings(
            workers=2,
            queue_size=100,
            deliver_timeout_seconds=0.5,
            drain_timeout_seconds=0.2,
        ),
    )


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_client() -> Generator[Callable[..., TestClient], None, None]:
    """Factory building started TestClients for arbitrary settings and sinks."""
    clients: List[TestClient] = []

    def factory(settings: Settings, sink: Sink, **kwargs: Any) -> TestClient:
        client = TestClient(create_app(settings=settings, sink=sink), **kwargs)
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in reversed(clients):
        client.__exit__(None, None, None)


@pytest.fixture
def test_client(
    make_client: Callable[..., TestClient],
    test_settings: Settings,
    recording_sink: RecordingSink,
) -> TestClient:
    """FastAPI test client with test configuration and a recording sink."""
    return make_client(test_settings, recording_sink)


@pytest.fixture
def valid_log_entry() -> Dict[str, Any]:
    """Sample valid log entry for testing."""
    return {
        "timestamp": "2025-09-22T10:30:00.000Z",
        "level": "INFO",
        "message": "Test log message",
        "service": "test-service",
        "metadata": {
            "user_id": "12345",
            "action": "login"
        }
    }
