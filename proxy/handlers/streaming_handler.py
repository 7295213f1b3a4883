"""
Drives one upstream exchange through the decoder.

`stream_events` re-encodes events for a streaming client as they arrive;
`collect_response` folds them for a non-streaming one. Both hold the decoder
in a `with` block so its pooled buffers are released when the client
disconnects, the upstream fails, or the stream simply ends.
"""
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from context import RelayContext
from output.aggregate import AggregatedResponse
from upstream.client import UpstreamError, stream_generate_content
from upstream.events import StreamEvent

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


class StreamEncoder(Protocol):
    def start(self) -> List[str]: ...

    def encode(self, event: StreamEvent) -> List[str]: ...

    def finish(self, finish_reason: Optional[str]) -> List[str]: ...

    def error(self, message: str, status_code: int = 500) -> List[str]: ...


async def stream_events(
    request_id: str,
    body: Dict[str, Any],
    context: RelayContext,
    model: str,
    encoder: StreamEncoder,
) -> AsyncIterator[str]:
    start_time = time.time()
    event_count = 0
    for chunk in encoder.start():
        yield chunk

    try:
        with context.new_decoder(model) as decoder:
            async for raw in stream_generate_content(request_id, body):
                for event in decoder.decode(raw):
                    event_count += 1
                    for chunk in encoder.encode(event):
                        yield chunk
            for event in decoder.finish():
                event_count += 1
                for chunk in encoder.encode(event):
                    yield chunk
            finish_reason = decoder.state.finish_reason
    except UpstreamError as e:
        logger.error(f"[{request_id}] Stream failed after {event_count} events: {e.message}")
        for chunk in encoder.error(e.message, e.status_code):
            yield chunk
        return
    except Exception as e:
        logger.error(f"[{request_id}] Error converting stream after {event_count} events: {e}")
        for chunk in encoder.error(str(e), 500):
            yield chunk
        return

    elapsed_ms = int((time.time() - start_time) * 1000)
    logger.info(f"[{request_id}] Stream finished: {event_count} events, finish_reason={finish_reason}, {elapsed_ms}ms")
    for chunk in encoder.finish(finish_reason):
        yield chunk


async def collect_response(
    request_id: str,
    body: Dict[str, Any],
    context: RelayContext,
    model: str,
) -> AggregatedResponse:
    """Run the exchange to completion. UpstreamError propagates to the endpoint."""
    aggregate = AggregatedResponse()
    with context.new_decoder(model) as decoder:
        async for raw in stream_generate_content(request_id, body, streaming=False):
            for event in decoder.decode(raw):
                aggregate.add(event)
        for event in decoder.finish():
            aggregate.add(event)
        aggregate.finish_reason = decoder.state.finish_reason
    logger.debug(
        f"[{request_id}] Collected response: {len(aggregate.text)} text chars, "
        f"{len(aggregate.reasoning)} reasoning chars, {len(aggregate.tool_calls)} tool calls"
    )
    return aggregate
