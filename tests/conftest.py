"""
Pytest configuration and fixtures for check relay tests
"""

import json
import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

REGISTRY_URL = "http://registry.test:8500/v1/agent/checks"
NODE_NAME = "node-1"


def make_check(check_id, name, service, status, output):
    """Registry-format check record."""
    return {
        "Node": NODE_NAME,
        "CheckID": check_id,
        "Name": name,
        "Status": status,
        "Notes": "",
        "Output": output,
        "ServiceID": service,
        "ServiceName": service,
        "ServiceTags": [],
        "Definition": {"HTTP": "", "Interval": "10s", "Timeout": "1s"},
        "CreateIndex": 10,
        "ModifyIndex": 12,
    }


@pytest.fixture
def sample_checks_payload():
    """
    Three services: service1 passing/warning/critical, service2 passing,
    service3 passing/warning.
    """
    return {
        "check1a": make_check("check1a", "check 1", "service1", "passing", "Passing check"),
        "check1b": make_check("check1b", "check 1", "service1", "warning", "Warning check"),
        "check1c": make_check("check1c", "check 1", "service1", "critical", "Critical check"),
        "check2a": make_check("check2a", "check 2", "service2", "passing", "Passing check"),
        "check3a": make_check("check3a", "check 3", "service3", "passing", "Passing check"),
        "check3b": make_check("check3b", "check 3", "service3", "warning", "Warning check"),
    }


@pytest.fixture
def sample_checks_body(sample_checks_payload):
    return json.dumps(sample_checks_payload).encode()


@pytest.fixture
def sample_check_set(sample_checks_payload):
    """Decoded check set."""
    from checkrelay.client import decode_check_set

    return decode_check_set(json.dumps(sample_checks_payload).encode())


@pytest.fixture
def mock_registry(sample_check_set):
    """Registry client whose fetch returns the sample check set."""
    registry = MagicMock()
    registry.fetch = AsyncMock(return_value=sample_check_set)
    registry.close = AsyncMock()
    return registry


@pytest.fixture
def mock_async_httpx_client():
    """Fixture for mocked async httpx client."""
    client = AsyncMock()
    client.is_closed = False
    return client


@pytest.fixture
def clean_env():
    """Remove CHECKRELAY_* variables for the duration of a test."""
    original_env = os.environ.copy()
    for key in list(os.environ):
        if key.startswith("CHECKRELAY_"):
            del os.environ[key]

    yield os.environ

    os.environ.clear()
    os.environ.update(original_env)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


# Markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
