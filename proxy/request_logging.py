import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_REDACTED_HEADERS = {"authorization", "x-api-key", "api-key", "x-goog-api-key"}


def log_request(request_id: str, request_data: Dict[str, Any], endpoint: str, headers: Optional[Dict[str, str]] = None):
    """Log incoming request details including headers"""
    logger.debug(f"[{request_id}] RAW REQUEST CAPTURE")
    logger.debug(f"[{request_id}] Endpoint: {endpoint}")
    logger.debug(f"[{request_id}] Model: {request_data.get('model', 'unknown')}")
    logger.debug(f"[{request_id}] Stream: {request_data.get('stream', False)}")

    if headers:
        for header_name, header_value in headers.items():
            if header_name.lower() in _REDACTED_HEADERS:
                logger.debug(f"[{request_id}] {header_name}: [REDACTED]")
            else:
                logger.debug(f"[{request_id}] {header_name}: {header_value}")

    thinking_fields = ["thinking", "reasoning_effort", "thinking_budget"]
    detected = {field: request_data.get(field) for field in thinking_fields if request_data.get(field) is not None}
    if detected:
        logger.debug(f"[{request_id}] THINKING FIELDS DETECTED: {detected}")


def log_upstream_body(request_id: str, body: Dict[str, Any]):
    if not logger.isEnabledFor(logging.DEBUG):
        return
    request = body.get("request", {})
    logger.debug(
        f"[{request_id}] Upstream request: model={body.get('model')} "
        f"contents={len(request.get('contents', []))} tools={len(request.get('tools', []))}"
    )
    logger.debug(f"[{request_id}] FULL UPSTREAM BODY: {json.dumps(body, indent=2)}")
