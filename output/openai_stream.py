"""
OpenAI Chat Completions output.

`OpenAIStreamEncoder` turns decoded upstream events into `chat.completion.chunk`
SSE lines; `build_openai_response` renders an aggregated, non-streaming reply.
"""
import json
import time
from typing import Any, Dict, List, Optional

from output.aggregate import AggregatedResponse
from upstream.events import ReasoningDelta, StreamEvent, TextDelta, ToolCall, ToolCallBatch, UsageSummary
from utils.id_generator import generate_session_id


def map_finish_reason(finish_reason: Optional[str], has_tool_calls: bool) -> str:
    """Map an upstream finishReason onto an OpenAI finish_reason."""
    if has_tool_calls:
        return "tool_calls"
    if finish_reason == "MAX_TOKENS":
        return "length"
    return "stop"


def _tool_call_payload(tool_call: ToolCall) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": tool_call.id,
        "type": "function",
        "function": {
            "name": tool_call.name,
            "arguments": tool_call.arguments
        }
    }
    # Read back by the OpenAI history parser on the next turn
    if tool_call.signature:
        payload["thoughtSignature"] = tool_call.signature
    return payload


def _usage_payload(usage: UsageSummary) -> Dict[str, int]:
    return {
        "prompt_tokens": usage.prompt_tokens,
        "completion_tokens": usage.completion_tokens,
        "total_tokens": usage.total_tokens or usage.prompt_tokens + usage.completion_tokens,
    }


class OpenAIStreamEncoder:
    def __init__(self, model: str):
        self.model = model
        self.completion_id = f"chatcmpl-{generate_session_id().replace('-', '')[:24]}"
        self.created = int(time.time())
        self.tool_call_count = 0
        self.usage: Optional[UsageSummary] = None
        self._sent_signature: Optional[str] = None

    def _chunk(self, delta: Dict[str, Any], finish_reason: Optional[str] = None) -> str:
        payload = {
            "id": self.completion_id,
            "object": "chat.completion.chunk",
            "created": self.created,
            "model": self.model,
            "choices": [
                {
                    "index": 0,
                    "delta": delta,
                    "finish_reason": finish_reason
                }
            ]
        }
        return f"data: {json.dumps(payload)}\n\n"

    def start(self) -> List[str]:
        return [self._chunk({"role": "assistant", "content": ""})]

    def encode(self, event: StreamEvent) -> List[str]:
        if isinstance(event, ReasoningDelta):
            delta: Dict[str, Any] = {}
            if event.text:
                delta["reasoning_content"] = event.text
            if event.signature and event.signature != self._sent_signature:
                delta["thinking_signature"] = event.signature
                self._sent_signature = event.signature
            return [self._chunk(delta)] if delta else []

        if isinstance(event, TextDelta):
            return [self._chunk({"content": event.text})] if event.text else []

        if isinstance(event, ToolCallBatch):
            tool_calls = []
            for tool_call in event.invocations:
                tool_calls.append({"index": self.tool_call_count, **_tool_call_payload(tool_call)})
                self.tool_call_count += 1
            return [self._chunk({"tool_calls": tool_calls})]

        if isinstance(event, UsageSummary):
            self.usage = event
        return []

    def finish(self, finish_reason: Optional[str]) -> List[str]:
        chunks = [self._chunk({}, map_finish_reason(finish_reason, self.tool_call_count > 0))]
        if self.usage is not None:
            usage_chunk = {
                "id": self.completion_id,
                "object": "chat.completion.chunk",
                "created": self.created,
                "model": self.model,
                "choices": [],
                "usage": _usage_payload(self.usage)
            }
            chunks.append(f"data: {json.dumps(usage_chunk)}\n\n")
        chunks.append("data: [DONE]\n\n")
        return chunks

    def error(self, message: str, status_code: int = 500) -> List[str]:
        error_chunk = {
            "error": {
                "message": message,
                "type": "api_error",
                "code": status_code
            }
        }
        return [f"data: {json.dumps(error_chunk)}\n\n", "data: [DONE]\n\n"]


def build_openai_response(aggregate: AggregatedResponse, model: str) -> Dict[str, Any]:
    message: Dict[str, Any] = {
        "role": "assistant",
        "content": aggregate.text or None
    }
    if aggregate.reasoning:
        message["reasoning_content"] = aggregate.reasoning
    if aggregate.reasoning_signature:
        message["thinking_signature"] = aggregate.reasoning_signature
    if aggregate.tool_calls:
        message["tool_calls"] = [_tool_call_payload(tool_call) for tool_call in aggregate.tool_calls]

    return {
        "id": f"chatcmpl-{generate_session_id().replace('-', '')[:24]}",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": message,
                "finish_reason": map_finish_reason(aggregate.finish_reason, bool(aggregate.tool_calls))
            }
        ],
        "usage": _usage_payload(aggregate.usage)
    }
