"""
Claude Messages output.

The encoder keeps one open content block at a time: consecutive reasoning
deltas share a thinking block (closed with a `signature_delta` when a signature
is known), consecutive text deltas share a text block, and every tool call gets
its own tool_use block.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from output.aggregate import AggregatedResponse, tool_arguments
from upstream.events import ReasoningDelta, StreamEvent, TextDelta, ToolCallBatch, UsageSummary
from utils.id_generator import generate_session_id

logger = logging.getLogger(__name__)


def map_stop_reason(finish_reason: Optional[str], has_tool_calls: bool) -> str:
    """Map an upstream finishReason onto a Claude stop_reason."""
    if has_tool_calls:
        return "tool_use"
    if finish_reason == "MAX_TOKENS":
        return "max_tokens"
    return "end_turn"


def _sse(event_type: str, payload: Dict[str, Any]) -> str:
    return f"event: {event_type}\ndata: {json.dumps(payload)}\n\n"


def _message_id() -> str:
    return f"msg_{generate_session_id().replace('-', '')[:24]}"


class ClaudeStreamEncoder:
    def __init__(self, model: str):
        self.model = model
        self.message_id = _message_id()
        self.block_index = -1
        self.block_type: Optional[str] = None
        self.block_signature: Optional[str] = None
        self.has_tool_calls = False
        self.usage = UsageSummary()

    def start(self) -> List[str]:
        return [_sse("message_start", {
            "type": "message_start",
            "message": {
                "id": self.message_id,
                "type": "message",
                "role": "assistant",
                "model": self.model,
                "content": [],
                "stop_reason": None,
                "stop_sequence": None,
                "usage": {"input_tokens": 0, "output_tokens": 0}
            }
        })]

    def _close_block(self) -> List[str]:
        if self.block_type is None:
            return []
        events = []
        if self.block_type == "thinking" and self.block_signature:
            events.append(_sse("content_block_delta", {
                "type": "content_block_delta",
                "index": self.block_index,
                "delta": {"type": "signature_delta", "signature": self.block_signature}
            }))
        events.append(_sse("content_block_stop", {"type": "content_block_stop", "index": self.block_index}))
        self.block_type = None
        self.block_signature = None
        return events

    def _open_block(self, content_block: Dict[str, Any]) -> List[str]:
        events = self._close_block()
        self.block_index += 1
        self.block_type = content_block["type"]
        events.append(_sse("content_block_start", {
            "type": "content_block_start",
            "index": self.block_index,
            "content_block": content_block
        }))
        return events

    def encode(self, event: StreamEvent) -> List[str]:
        if isinstance(event, ReasoningDelta):
            events = []
            if self.block_type != "thinking":
                events.extend(self._open_block({"type": "thinking", "thinking": ""}))
            if event.signature:
                self.block_signature = event.signature
            if event.text:
                events.append(_sse("content_block_delta", {
                    "type": "content_block_delta",
                    "index": self.block_index,
                    "delta": {"type": "thinking_delta", "thinking": event.text}
                }))
            return events

        if isinstance(event, TextDelta):
            if not event.text:
                return []
            events = []
            if self.block_type != "text":
                events.extend(self._open_block({"type": "text", "text": ""}))
            events.append(_sse("content_block_delta", {
                "type": "content_block_delta",
                "index": self.block_index,
                "delta": {"type": "text_delta", "text": event.text}
            }))
            return events

        if isinstance(event, ToolCallBatch):
            events = []
            for tool_call in event.invocations:
                events.extend(self._open_block({"type": "tool_use", "id": tool_call.id, "name": tool_call.name, "input": {}}))
                events.append(_sse("content_block_delta", {
                    "type": "content_block_delta",
                    "index": self.block_index,
                    "delta": {"type": "input_json_delta", "partial_json": tool_call.arguments}
                }))
                events.extend(self._close_block())
            self.has_tool_calls = self.has_tool_calls or bool(event.invocations)
            return events

        if isinstance(event, UsageSummary):
            self.usage = event
        return []

    def finish(self, finish_reason: Optional[str]) -> List[str]:
        events = self._close_block()
        events.append(_sse("message_delta", {
            "type": "message_delta",
            "delta": {
                "stop_reason": map_stop_reason(finish_reason, self.has_tool_calls),
                "stop_sequence": None
            },
            "usage": {
                "input_tokens": self.usage.prompt_tokens,
                "output_tokens": self.usage.completion_tokens
            }
        }))
        events.append(_sse("message_stop", {"type": "message_stop"}))
        return events

    def error(self, message: str, status_code: int = 500) -> List[str]:
        error_type = "overloaded_error" if status_code == 529 else "api_error"
        return [_sse("error", {"type": "error", "error": {"type": error_type, "message": message}})]


def build_claude_response(aggregate: AggregatedResponse, model: str) -> Dict[str, Any]:
    content: List[Dict[str, Any]] = []
    if aggregate.reasoning or aggregate.reasoning_signature:
        thinking_block: Dict[str, Any] = {"type": "thinking", "thinking": aggregate.reasoning}
        if aggregate.reasoning_signature:
            thinking_block["signature"] = aggregate.reasoning_signature
        content.append(thinking_block)
    if aggregate.text:
        content.append({"type": "text", "text": aggregate.text})
    for tool_call in aggregate.tool_calls:
        content.append({
            "type": "tool_use",
            "id": tool_call.id,
            "name": tool_call.name,
            "input": tool_arguments(tool_call)
        })

    return {
        "id": _message_id(),
        "type": "message",
        "role": "assistant",
        "model": model,
        "content": content,
        "stop_reason": map_stop_reason(aggregate.finish_reason, bool(aggregate.tool_calls)),
        "stop_sequence": None,
        "usage": {
            "input_tokens": aggregate.usage.prompt_tokens,
            "output_tokens": aggregate.usage.completion_tokens
        }
    }
