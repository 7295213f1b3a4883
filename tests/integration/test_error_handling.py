"""Integration tests for upstream error handling"""
import httpx
import pytest

import settings
from upstream.client import STREAM_PATH

UPSTREAM_STREAM_URL = f"{str(settings.UPSTREAM_BASE_URL).rstrip('/')}{STREAM_PATH}"


@pytest.mark.integration
class TestUpstreamErrors:
    """Test suite for upstream failures on non-streaming requests"""

    def test_claude_status_is_forwarded(self, fastapi_test_client, mock_upstream):
        """Test that an upstream 429 surfaces with its status"""
        mock_upstream(status_code=429, body='{"error": {"message": "quota exhausted"}}')

        response = fastapi_test_client.post("/v1/messages", json={
            "model": "claude-sonnet-4-5",
            "max_tokens": 100,
            "messages": [{"role": "user", "content": "Hi"}],
        })

        assert response.status_code == 429
        error = response.json()['detail']['error']
        assert error['type'] == 'api_error'
        assert 'quota exhausted' in error['message']

    def test_openai_status_is_forwarded(self, fastapi_test_client, mock_upstream):
        """Test the OpenAI error body"""
        mock_upstream(status_code=500, body='internal')

        response = fastapi_test_client.post("/v1/chat/completions", json={
            "model": "gemini-2.5-flash",
            "messages": [{"role": "user", "content": "Hi"}],
        })

        assert response.status_code == 500
        assert response.json()['detail']['error']['code'] == 500

    def test_gemini_connection_failure(self, fastapi_test_client, mock_httpx_client):
        """Test that a refused connection becomes a 502"""
        mock_httpx_client.post(url__startswith=UPSTREAM_STREAM_URL).mock(
            side_effect=httpx.ConnectError("refused")
        )

        response = fastapi_test_client.post("/v1beta/models/gemini-2.5-flash:generateContent", json={
            "contents": [{"role": "user", "parts": [{"text": "Hi"}]}],
        })

        assert response.status_code == 502
        assert response.json()['detail']['error']['status'] == 'UNAVAILABLE'

    def test_gemini_stream_timeout(self, fastapi_test_client, mock_httpx_client):
        """Test that a timeout on the streaming route ends in an error record"""
        mock_httpx_client.post(url__startswith=UPSTREAM_STREAM_URL).mock(
            side_effect=httpx.ReadTimeout("slow")
        )

        response = fastapi_test_client.post(
            "/v1beta/models/gemini-2.5-flash:streamGenerateContent",
            json={"contents": [{"role": "user", "parts": [{"text": "Hi"}]}]},
        )

        assert response.status_code == 200
        assert '"DEADLINE_EXCEEDED"' in response.text
