"""
Tests for the monitoring API (stub application, no upstream services).
"""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from pumpswap_stream import __version__
from pumpswap_stream.main import create_app
from pumpswap_stream.market_data.stream.manager import ConnectionState


class StubApplication:
    def __init__(self):
        self.started = False
        self.stopped = False
        self.stream = SimpleNamespace(state=ConnectionState.CONNECTED)
        self.registry = ["poolA", "poolB"]

    async def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True

    async def health_check(self):
        return {"status": "healthy", "components": {}}

    def get_stats(self):
        return {"components": {"processor": {"migrations": 1}}}


@pytest.fixture
def application():
    return StubApplication()


def test_lifecycle_follows_server(application):
    with TestClient(create_app(application)):
        assert application.started
    assert application.stopped


def test_root(application):
    with TestClient(create_app(application)) as client:
        body = client.get("/").json()

    assert body["version"] == __version__
    assert body["stream_state"] == "connected"
    assert body["tracked_pools"] == 2


def test_health_and_stats(application):
    with TestClient(create_app(application)) as client:
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/stats").json()["components"]["processor"]["migrations"] == 1
