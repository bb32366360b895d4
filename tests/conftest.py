"""Pytest configuration and shared fixtures."""
from __future__ import annotations

from dataclasses import replace
import json

import pytest

from nsclient_bridge.config import DeviceConfig
from nsclient_bridge.device import DeviceContext
from nsclient_bridge.http_client import QueryResult
from nsclient_bridge.publisher import StatePublisher
from nsclient_bridge.store import MemoryStateStore


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


class FakeHttp:
    """Stands in for HttpQueryClient, answering by URL suffix."""

    def __init__(self, responses: dict[str, QueryResult] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, float]] = []

    async def query(self, url: str, timeout_s: float) -> QueryResult:
        self.calls.append((url, timeout_s))
        for suffix, result in self.responses.items():
            if url.endswith(suffix):
                return result
        return QueryResult(http_code=404)

    async def close(self) -> None:
        pass


def ok_json(payload) -> QueryResult:
    return QueryResult(http_code=200, body=json.dumps(payload).encode("utf-8"))


INFO_PAYLOAD = {"name": "nsclient", "version": "0.5.2"}

CPU_PAYLOAD = {
    "command": "check_cpu",
    "result": 1,
    "lines": [
        {
            "message": "high load",
            "perf": {"cpu": {"load": "85"}},
        }
    ],
}

MEMORY_PAYLOAD = {
    "command": "check_memory",
    "result": 0,
    "lines": [
        {
            "message": "OK: committed 4.2GB",
            "perf": {
                "committed": {"value": 4.2, "unit": "GB", "maximum": 16, "warning": 12.8},
                "physical %": {"value": 52, "unit": "%"},
            },
        }
    ],
}


@pytest.fixture
def device_config():
    """Create a valid device config."""
    return DeviceConfig(
        name="Srv1",
        host="10.0.0.5",
        port=8443,
        user="admin",
        password="secret",
        timeout_s=5,
        poll_interval_s=30,
        check_cpu=True,
        check_memory=True,
        check_drives=False,
    )


@pytest.fixture
def ctx(device_config):
    """Create a fresh device context."""
    return DeviceContext.from_config(device_config)


@pytest.fixture
def all_checks_config(device_config):
    """Create a device config with every check enabled."""
    return replace(device_config, check_drives=True)


@pytest.fixture
def store():
    """Create an in-memory state store."""
    return MemoryStateStore()


@pytest.fixture
def publisher(store):
    """Create a publisher on top of the memory store."""
    return StatePublisher(store)
