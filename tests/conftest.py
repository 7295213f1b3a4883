"""Shared pytest fixtures for all tests

This module provides common fixtures used across unit and integration tests.
"""
from typing import List

import pytest
import respx
from fastapi.testclient import TestClient
from httpx import Response

import settings
from context import RelayContext, build_context
from upstream.client import STREAM_PATH
from upstream.events import StreamEvent

# Import fixtures loader
from tests.fixtures.loader import (
    THINKING_SIGNATURE,
    TOOL_SIGNATURE,
    get_upstream_stream,
)

UPSTREAM_STREAM_URL = f"{str(settings.UPSTREAM_BASE_URL).rstrip('/')}{STREAM_PATH}"


@pytest.fixture
def thinking_signature():
    """A thought signature long enough to count as valid"""
    return THINKING_SIGNATURE


@pytest.fixture
def tool_signature():
    """A functionCall signature long enough to count as valid"""
    return TOOL_SIGNATURE


@pytest.fixture
def relay_context() -> RelayContext:
    """A fresh RelayContext with the default thresholds"""
    return build_context(
        min_signature_length=50,
        cache_max_entries=100,
        cache_ttl_seconds=3600,
        line_buffer_pool_size=4,
        tool_call_pool_size=8,
        project_id="test-project",
    )


@pytest.fixture
def decode_all(relay_context):
    """Decode a whole upstream text through a fresh decoder, chunked as given"""
    def _decode(chunks, model: str = "gemini-3-pro-high") -> List[StreamEvent]:
        events: List[StreamEvent] = []
        with relay_context.new_decoder(model) as decoder:
            for chunk in chunks:
                events.extend(decoder.decode(chunk))
            events.extend(decoder.finish())
        return events
    return _decode


@pytest.fixture
def mock_httpx_client():
    """Activate respx for the duration of a test"""
    with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def mock_upstream(mock_httpx_client):
    """Factory mocking the upstream streamGenerateContent route

    Returns the respx route so tests can inspect the request that was sent.
    """
    def _mock(stream_name: str = "text_only", status_code: int = 200, body: str = None):
        content = body if body is not None else get_upstream_stream(stream_name)
        return mock_httpx_client.post(url__startswith=UPSTREAM_STREAM_URL).mock(
            return_value=Response(
                status_code,
                text=content,
                headers={"content-type": "text/event-stream"},
            )
        )
    return _mock


@pytest.fixture
def fastapi_test_client(relay_context):
    """Create a FastAPI TestClient for integration tests"""
    from proxy.app import create_app

    with TestClient(create_app(relay_context)) as client:
        yield client


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up mock environment variables for testing"""
    env_vars = {
        'PORT': '9090',
        'LOG_LEVEL': 'debug',
        'MIN_SIGNATURE_LENGTH': '80',
        'DEFAULT_TEMPERATURE': '0.5',
    }

    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)

    return env_vars


# Markers for convenience
def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (may use TestClient)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow tests (may take several seconds)"
    )
