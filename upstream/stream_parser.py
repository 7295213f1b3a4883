"""
Decoder for the upstream `streamGenerateContent?alt=sse` response.

Each `data: ` line carries one JSON record shaped like
`{"response": {"candidates": [{"content": {"parts": [...]}, "finishReason": ...}], "usageMetadata": {...}}}`.
Parts are classified into reasoning, text and function-call events. Function
calls are held until the record carrying `finishReason` and then emitted as a
single batch, followed by usage.

Malformed lines are dropped; the decoder never raises on upstream input.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from conversation.blocks import is_valid_signature
from thinking.signature_cache import SignatureCache
from upstream.events import (
    ReasoningDelta,
    StreamEvent,
    TextDelta,
    ToolCallBatch,
    ToolCallWork,
    UsageSummary,
)
from upstream.line_buffer import LineBuffer
from upstream.pools import LINE_BUFFER_POOL, TOOL_CALL_POOL, MemoryManager, ObjectPool
from utils.id_generator import generate_tool_call_id
from utils.tool_name_cache import ToolNameCache

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DATA_PREFIX_LEN = len(DATA_PREFIX)

Emit = Callable[[StreamEvent], None]


class DecoderPools:
    """Process-wide free lists for line buffers and function-call accumulators."""

    def __init__(self, memory: MemoryManager):
        self.memory = memory
        self.line_buffers: ObjectPool[LineBuffer] = ObjectPool(LINE_BUFFER_POOL, LineBuffer, LineBuffer.clear, memory)
        self.tool_calls: ObjectPool[ToolCallWork] = ObjectPool(TOOL_CALL_POOL, ToolCallWork, ToolCallWork.reset, memory)

    def stats(self) -> Dict[str, int]:
        return {
            "line_buffer_free": len(self.line_buffers),
            "tool_call_free": len(self.tool_calls),
            **{f"{name}_bound": size for name, size in self.memory.get_pool_sizes().items()},
        }


@dataclass
class StreamState:
    """Per-stream aggregation state; never shared between streams."""
    session_id: Optional[str] = None
    model: Optional[str] = None
    reasoning_signature: Optional[str] = None
    tool_calls: List[ToolCallWork] = field(default_factory=list)
    finish_reason: Optional[str] = None


def _first_candidate(record: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(record, dict):
        return None
    # The Cloud Code envelope wraps the Gemini response; accept both shapes
    response = record.get("response", record)
    if not isinstance(response, dict):
        return None
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    return candidates[0]


def _usage_metadata(record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    response = record.get("response", record)
    usage = response.get("usageMetadata") if isinstance(response, dict) else None
    return usage if isinstance(usage, dict) else None


def convert_to_tool_call(
    function_call: Dict[str, Any],
    state: StreamState,
    pools: DecoderPools,
    tool_names: Optional[ToolNameCache],
) -> ToolCallWork:
    """Fill a pooled accumulator from a functionCall part, restoring the client-visible name."""
    tool_call = pools.tool_calls.acquire()
    tool_call.id = function_call.get("id") or generate_tool_call_id()
    name = function_call.get("name") or ""
    if tool_names is not None and state.session_id and state.model:
        original = tool_names.get_original(state.session_id, state.model, name)
        if original:
            name = original
    tool_call.name = name
    args = function_call.get("args")
    tool_call.arguments = json.dumps(args if args is not None else {}, ensure_ascii=False)
    return tool_call


def parse_and_emit_stream_chunk(
    line: str,
    state: StreamState,
    emit: Emit,
    *,
    pools: DecoderPools,
    signature_cache: Optional[SignatureCache],
    tool_names: Optional[ToolNameCache],
    min_signature_length: int,
) -> None:
    """Interpret one complete line, updating `state` and calling `emit` for each event."""
    if not line.startswith(DATA_PREFIX):
        return

    try:
        record = json.loads(line[DATA_PREFIX_LEN:])
    except (ValueError, RecursionError):
        logger.debug(f"Dropping malformed upstream line: {line[:200]}")
        return

    candidate = _first_candidate(record)
    if candidate is None:
        return

    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    for part in parts if isinstance(parts, list) else ():
        if not isinstance(part, dict):
            continue
        signature = part.get("thoughtSignature")
        signed = is_valid_signature(signature, min_signature_length)
        text = part.get("text")
        if text is not None and not isinstance(text, str):
            logger.debug(f"Dropping part with non-string text: {type(text).__name__}")
            continue

        if part.get("thought") is True:
            if signed:
                state.reasoning_signature = signature
            emit(ReasoningDelta(
                text=text or "",
                signature=signature if signed else state.reasoning_signature,
            ))
        elif "text" in part:
            emit(TextDelta(text=text or ""))
        elif isinstance(part.get("functionCall"), dict):
            tool_call = convert_to_tool_call(part["functionCall"], state, pools, tool_names)
            if signed:
                tool_call.signature = signature
                if signature_cache is not None:
                    signature_cache.put(tool_call.id, signature)
            state.tool_calls.append(tool_call)

    finish_reason = candidate.get("finishReason")
    if finish_reason:
        state.finish_reason = finish_reason
        if state.tool_calls:
            pending, state.tool_calls = state.tool_calls, []
            batch = ToolCallBatch(invocations=tuple(tool_call.snapshot() for tool_call in pending))
            for tool_call in pending:
                pools.tool_calls.release(tool_call)
            emit(batch)
        usage = _usage_metadata(record)
        if usage:
            emit(UsageSummary(
                prompt_tokens=usage.get("promptTokenCount") or 0,
                completion_tokens=usage.get("candidatesTokenCount") or 0,
                total_tokens=usage.get("totalTokenCount") or 0,
            ))
        state.reasoning_signature = None


class StreamDecoder:
    """
    Decodes one upstream response stream.

    Use as a context manager so the pooled line buffer and any pending
    function-call accumulators go back to their pools on every exit path:

        with StreamDecoder(pools, ...) as decoder:
            async for chunk in upstream:
                for event in decoder.decode(chunk):
                    ...
    """

    def __init__(
        self,
        pools: DecoderPools,
        *,
        signature_cache: Optional[SignatureCache] = None,
        tool_names: Optional[ToolNameCache] = None,
        min_signature_length: int = 50,
        session_id: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.pools = pools
        self.signature_cache = signature_cache
        self.tool_names = tool_names
        self.min_signature_length = min_signature_length
        self.state = StreamState(session_id=session_id, model=model)
        self._buffer: Optional[LineBuffer] = None

    def __enter__(self) -> "StreamDecoder":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        if self._buffer is None:
            self._buffer = self.pools.line_buffers.acquire()
            self._buffer.clear()

    def close(self) -> None:
        if self._buffer is not None:
            self.pools.line_buffers.release(self._buffer)
            self._buffer = None
        pending, self.state.tool_calls = self.state.tool_calls, []
        for tool_call in pending:
            self.pools.tool_calls.release(tool_call)

    def _handle_lines(self, lines: List[str]) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for line in lines:
            parse_and_emit_stream_chunk(
                line,
                self.state,
                events.append,
                pools=self.pools,
                signature_cache=self.signature_cache,
                tool_names=self.tool_names,
                min_signature_length=self.min_signature_length,
            )
        return events

    def decode(self, chunk: str) -> List[StreamEvent]:
        """Feed a chunk of upstream text and return the events completed by it, in order."""
        self.open()
        return self._handle_lines(self._buffer.feed(chunk))

    def finish(self) -> List[StreamEvent]:
        """Interpret an unterminated final line, if the upstream closed without a newline."""
        if self._buffer is None:
            return []
        return self._handle_lines(self._buffer.flush())
