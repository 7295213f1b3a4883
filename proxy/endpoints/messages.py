"""
Claude Messages endpoint.
"""
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from context import RelayContext
from converters.claude import convert_claude_request
from output.claude_stream import ClaudeStreamEncoder, build_claude_response
from proxy.dependencies import get_relay_context
from proxy.handlers.streaming_handler import SSE_HEADERS, collect_response, stream_events
from proxy.models import AnthropicMessageRequest
from proxy.request_logging import log_request, log_upstream_body
from upstream.client import UpstreamError
from utils.id_generator import short_request_id

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/v1/messages")
async def anthropic_messages(
    request: AnthropicMessageRequest,
    raw_request: Request,
    context: RelayContext = Depends(get_relay_context),
):
    """Claude Messages API endpoint"""
    request_id = short_request_id()
    start_time = time.time()

    logger.info(f"[{request_id}] ===== NEW CLAUDE MESSAGES REQUEST =====")
    request_data = request.model_dump(exclude_none=True)
    log_request(request_id, request_data, "/v1/messages", dict(raw_request.headers))

    try:
        body = convert_claude_request(request_data, context)
        log_upstream_body(request_id, body)

        if request.stream:
            return StreamingResponse(
                stream_events(request_id, body, context, request.model, ClaudeStreamEncoder(request.model)),
                media_type="text/event-stream",
                headers=SSE_HEADERS
            )

        aggregate = await collect_response(request_id, body, context, request.model)
    except UpstreamError as e:
        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.error(f"[{request_id}] ===== CLAUDE MESSAGES FAILED ===== Total time: {elapsed_ms}ms")
        raise HTTPException(
            status_code=e.status_code,
            detail={"type": "error", "error": {"type": "api_error", "message": e.message}}
        )
    except Exception as e:
        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.error(f"[{request_id}] Request failed after {elapsed_ms}ms: {e}")
        raise HTTPException(
            status_code=500,
            detail={"type": "error", "error": {"type": "api_error", "message": str(e)}}
        )

    elapsed_ms = int((time.time() - start_time) * 1000)
    logger.info(f"[{request_id}] ===== CLAUDE MESSAGES FINISHED ===== Total time: {elapsed_ms}ms")
    return build_claude_response(aggregate, request.model)
