"""Pytest configuration and fixtures for test suite."""

import random
from typing import List, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from core.models.config_data import SimulatorConfig
from core.services.relay import RelayCore
from src.main import app, settings


class FakeConnection:
    """In-memory stand-in for a WebSocket handle."""

    def __init__(self, name: str = "conn", fail_on_send: bool = False):
        self.name = name
        self.is_open = True
        self.fail_on_send = fail_on_send
        self.sent: List[dict] = []
        self.close_code: Optional[int] = None

    async def send_json(self, data: dict) -> None:
        if not self.is_open or self.fail_on_send:
            raise ConnectionResetError(f"{self.name} is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.is_open = False
        self.close_code = code

    def of_type(self, msg_type: str) -> List[dict]:
        return [m for m in self.sent if m["type"] == msg_type]

    def __repr__(self) -> str:
        return f"FakeConnection({self.name})"


@pytest.fixture
def make_conn():
    """Factory for fake connections."""
    return FakeConnection


@pytest_asyncio.fixture
async def relay():
    """A relay whose simulator never fires on its own; tests drive ticks by hand."""
    r = RelayCore(simulator_config=SimulatorConfig(interval=3600.0), rng=random.Random(1234))
    yield r
    r.stop()


@pytest.fixture
def client(monkeypatch):
    """Test client with the application lifespan running (relay in demo mode)."""
    monkeypatch.setattr(settings, "simulator_interval", 3600.0)
    with TestClient(app) as test_client:
        yield test_client
