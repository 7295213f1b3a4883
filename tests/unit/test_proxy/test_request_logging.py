"""Tests for request logging helpers"""
import logging

import pytest

from proxy.request_logging import log_request, log_upstream_body


@pytest.mark.unit
class TestRequestLogging:
    """Test suite for request logging"""

    def test_credentials_are_redacted(self, caplog):
        """Test that auth headers never reach the log"""
        with caplog.at_level(logging.DEBUG, logger="proxy.request_logging"):
            log_request("abc", {"model": "m"}, "/v1/messages", {
                "Authorization": "Bearer secret-token",
                "x-goog-api-key": "secret-key",
                "user-agent": "test",
            })

        assert "secret-token" not in caplog.text
        assert "secret-key" not in caplog.text
        assert "[REDACTED]" in caplog.text
        assert "user-agent: test" in caplog.text

    def test_thinking_fields_are_reported(self, caplog):
        """Test detection of thinking parameters"""
        with caplog.at_level(logging.DEBUG, logger="proxy.request_logging"):
            log_request("abc", {"model": "m", "reasoning_effort": "high"}, "/v1/chat/completions")

        assert "THINKING FIELDS DETECTED" in caplog.text

    def test_upstream_body_only_at_debug(self, caplog):
        """Test that the full body is skipped above DEBUG"""
        body = {"model": "m", "request": {"contents": [], "tools": []}}
        with caplog.at_level(logging.INFO, logger="proxy.request_logging"):
            log_upstream_body("abc", body)

        assert caplog.text == ""
