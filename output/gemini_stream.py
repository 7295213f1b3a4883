"""Gemini generateContent output, streamed (`alt=sse`) and aggregated."""
import json
from typing import Any, Dict, List, Optional

from output.aggregate import AggregatedResponse, tool_arguments
from upstream.events import ReasoningDelta, StreamEvent, TextDelta, ToolCall, ToolCallBatch, UsageSummary

_STATUS_NAMES = {
    400: "INVALID_ARGUMENT",
    401: "UNAUTHENTICATED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    429: "RESOURCE_EXHAUSTED",
    502: "UNAVAILABLE",
    503: "UNAVAILABLE",
    504: "DEADLINE_EXCEEDED",
}


def _usage_metadata(usage: UsageSummary) -> Dict[str, int]:
    return {
        "promptTokenCount": usage.prompt_tokens,
        "candidatesTokenCount": usage.completion_tokens,
        "totalTokenCount": usage.total_tokens or usage.prompt_tokens + usage.completion_tokens,
    }


def _function_call_part(tool_call: ToolCall) -> Dict[str, Any]:
    part: Dict[str, Any] = {
        "functionCall": {
            "id": tool_call.id,
            "name": tool_call.name,
            "args": tool_arguments(tool_call),
        }
    }
    if tool_call.signature:
        part["thoughtSignature"] = tool_call.signature
    return part


def error_payload(message: str, status_code: int = 500) -> Dict[str, Any]:
    return {
        "error": {
            "code": status_code,
            "message": message,
            "status": _STATUS_NAMES.get(status_code, "INTERNAL"),
        }
    }


class GeminiStreamEncoder:
    def __init__(self, model: str):
        self.model = model
        self.usage: Optional[UsageSummary] = None

    def _record(self, parts: List[Dict[str, Any]], finish_reason: Optional[str] = None) -> str:
        candidate: Dict[str, Any] = {"content": {"role": "model", "parts": parts}, "index": 0}
        if finish_reason:
            candidate["finishReason"] = finish_reason
        payload: Dict[str, Any] = {"candidates": [candidate], "modelVersion": self.model}
        if finish_reason and self.usage is not None:
            payload["usageMetadata"] = _usage_metadata(self.usage)
        return f"data: {json.dumps(payload)}\n\n"

    def start(self) -> List[str]:
        return []

    def encode(self, event: StreamEvent) -> List[str]:
        if isinstance(event, ReasoningDelta):
            part: Dict[str, Any] = {"text": event.text, "thought": True}
            if event.signature:
                part["thoughtSignature"] = event.signature
            return [self._record([part])]
        if isinstance(event, TextDelta):
            return [self._record([{"text": event.text}])] if event.text else []
        if isinstance(event, ToolCallBatch):
            return [self._record([_function_call_part(tool_call) for tool_call in event.invocations])]
        if isinstance(event, UsageSummary):
            self.usage = event
        return []

    def finish(self, finish_reason: Optional[str]) -> List[str]:
        return [self._record([], finish_reason or "STOP")]

    def error(self, message: str, status_code: int = 500) -> List[str]:
        return [f"data: {json.dumps(error_payload(message, status_code))}\n\n"]


def build_gemini_response(aggregate: AggregatedResponse, model: str) -> Dict[str, Any]:
    parts: List[Dict[str, Any]] = []
    if aggregate.reasoning or aggregate.reasoning_signature:
        thought: Dict[str, Any] = {"text": aggregate.reasoning, "thought": True}
        if aggregate.reasoning_signature:
            thought["thoughtSignature"] = aggregate.reasoning_signature
        parts.append(thought)
    if aggregate.text:
        parts.append({"text": aggregate.text})
    parts.extend(_function_call_part(tool_call) for tool_call in aggregate.tool_calls)

    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": parts},
                "finishReason": aggregate.finish_reason or "STOP",
                "index": 0,
            }
        ],
        "usageMetadata": _usage_metadata(aggregate.usage),
        "modelVersion": model,
    }
