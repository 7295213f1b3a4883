"""Tests for Gemini generateContent output"""
import json

import pytest

from output.aggregate import AggregatedResponse
from output.gemini_stream import GeminiStreamEncoder, build_gemini_response, error_payload
from upstream.events import ReasoningDelta, TextDelta, ToolCall, ToolCallBatch, UsageSummary

SIG = "s" * 60


def records(chunks):
    return [json.loads(chunk[len("data: "):]) for chunk in chunks]


@pytest.mark.unit
class TestGeminiStreamEncoder:
    """Test suite for GeminiStreamEncoder"""

    def test_start_is_silent(self):
        """Test that Gemini streams have no preamble"""
        assert GeminiStreamEncoder("m").start() == []

    def test_parts(self):
        """Test thought, text and functionCall records"""
        encoder = GeminiStreamEncoder("gemini-2.5-flash")

        thought = records(encoder.encode(ReasoningDelta("hmm", SIG)))[0]
        text = records(encoder.encode(TextDelta("Hi")))[0]
        call = records(encoder.encode(ToolCallBatch((ToolCall("c1", "read", '{"p": 1}', SIG),))))[0]

        assert thought["candidates"][0]["content"]["parts"] == [{"text": "hmm", "thought": True, "thoughtSignature": SIG}]
        assert text["candidates"][0]["content"]["parts"] == [{"text": "Hi"}]
        assert call["candidates"][0]["content"]["parts"] == [
            {"functionCall": {"id": "c1", "name": "read", "args": {"p": 1}}, "thoughtSignature": SIG},
        ]
        assert text["modelVersion"] == "gemini-2.5-flash"

    def test_finish_record(self):
        """Test finishReason and usageMetadata on the last record"""
        encoder = GeminiStreamEncoder("m")
        encoder.encode(UsageSummary(4, 5, 9))

        [final] = records(encoder.finish("MAX_TOKENS"))

        assert final["candidates"][0]["finishReason"] == "MAX_TOKENS"
        assert final["usageMetadata"] == {"promptTokenCount": 4, "candidatesTokenCount": 5, "totalTokenCount": 9}

    def test_finish_defaults_to_stop(self):
        """Test the finish record without an upstream reason"""
        [final] = records(GeminiStreamEncoder("m").finish(None))

        assert final["candidates"][0]["finishReason"] == "STOP"
        assert "usageMetadata" not in final

    def test_error(self):
        """Test the Google-style error record"""
        [payload] = records(GeminiStreamEncoder("m").error("slow down", 429))

        assert payload == {"error": {"code": 429, "message": "slow down", "status": "RESOURCE_EXHAUSTED"}}

    def test_unknown_status_is_internal(self):
        """Test the fallback status name"""
        assert error_payload("boom")["error"]["status"] == "INTERNAL"


@pytest.mark.unit
class TestBuildGeminiResponse:
    """Test suite for the non-streaming response"""

    def test_response(self):
        """Test parts, finishReason and usage"""
        aggregate = AggregatedResponse()
        for event in (
            ReasoningDelta("a", None),
            ReasoningDelta("b", SIG),
            TextDelta("Done"),
            ToolCallBatch((ToolCall("c1", "read", "{}"),)),
            UsageSummary(1, 1, 2),
        ):
            aggregate.add(event)
        aggregate.finish_reason = "STOP"

        response = build_gemini_response(aggregate, "gemini-3-pro-high")

        candidate = response["candidates"][0]
        assert candidate["content"]["parts"] == [
            {"text": "ab", "thought": True, "thoughtSignature": SIG},
            {"text": "Done"},
            {"functionCall": {"id": "c1", "name": "read", "args": {}}},
        ]
        assert candidate["finishReason"] == "STOP"
        assert response["usageMetadata"]["totalTokenCount"] == 2
