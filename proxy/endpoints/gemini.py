"""
Gemini generateContent endpoints.

Both routes speak to the same streaming upstream; `generateContent` folds the
stream into one response. The streaming route always answers as SSE.
"""
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from context import RelayContext
from converters.gemini import convert_gemini_request
from output.gemini_stream import GeminiStreamEncoder, build_gemini_response, error_payload
from proxy.dependencies import get_relay_context
from proxy.handlers.streaming_handler import SSE_HEADERS, collect_response, stream_events
from proxy.models import GeminiGenerateContentRequest
from proxy.request_logging import log_request, log_upstream_body
from upstream.client import UpstreamError
from utils.id_generator import short_request_id

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/v1beta/models/{model}:streamGenerateContent")
async def gemini_stream_generate_content(
    model: str,
    request: GeminiGenerateContentRequest,
    raw_request: Request,
    context: RelayContext = Depends(get_relay_context),
):
    request_id = short_request_id()
    start_time = time.time()
    logger.info(f"[{request_id}] ===== NEW GEMINI STREAM REQUEST =====")
    request_data = request.model_dump(exclude_none=True)
    log_request(request_id, {"model": model, "stream": True, **request_data}, raw_request.url.path, dict(raw_request.headers))

    try:
        body = convert_gemini_request(model, request_data, context)
    except Exception as e:
        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.error(f"[{request_id}] Request failed after {elapsed_ms}ms: {e}")
        raise HTTPException(status_code=500, detail=error_payload(str(e)))
    log_upstream_body(request_id, body)

    return StreamingResponse(
        stream_events(request_id, body, context, model, GeminiStreamEncoder(model)),
        media_type="text/event-stream",
        headers=SSE_HEADERS
    )


@router.post("/v1beta/models/{model}:generateContent")
async def gemini_generate_content(
    model: str,
    request: GeminiGenerateContentRequest,
    raw_request: Request,
    context: RelayContext = Depends(get_relay_context),
):
    request_id = short_request_id()
    start_time = time.time()
    logger.info(f"[{request_id}] ===== NEW GEMINI REQUEST =====")
    request_data = request.model_dump(exclude_none=True)
    log_request(request_id, {"model": model, **request_data}, raw_request.url.path, dict(raw_request.headers))

    try:
        body = convert_gemini_request(model, request_data, context)
        log_upstream_body(request_id, body)
        aggregate = await collect_response(request_id, body, context, model)
    except UpstreamError as e:
        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.error(f"[{request_id}] ===== GEMINI REQUEST FAILED ===== Total time: {elapsed_ms}ms")
        raise HTTPException(status_code=e.status_code, detail=error_payload(e.message, e.status_code))
    except Exception as e:
        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.error(f"[{request_id}] Request failed after {elapsed_ms}ms: {e}")
        raise HTTPException(status_code=500, detail=error_payload(str(e)))

    elapsed_ms = int((time.time() - start_time) * 1000)
    logger.info(f"[{request_id}] ===== GEMINI REQUEST FINISHED ===== Total time: {elapsed_ms}ms")
    return build_gemini_response(aggregate, model)
