import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from settings import (
    CONNECT_TIMEOUT,
    READ_TIMEOUT,
    REQUEST_TIMEOUT,
    STREAM_TIMEOUT,
    UPSTREAM_ACCESS_TOKEN,
    UPSTREAM_BASE_URL,
    UPSTREAM_USER_AGENT,
)

logger = logging.getLogger(__name__)

STREAM_PATH = "/v1internal:streamGenerateContent"


class UpstreamError(Exception):
    """The upstream refused the request or the stream broke off."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def build_headers(access_token: str) -> Dict[str, str]:
    headers = {
        "Accept": "text/event-stream",
        "Content-Type": "application/json",
        "User-Agent": UPSTREAM_USER_AGENT,
    }
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    return headers


async def stream_generate_content(
    request_id: str,
    body: Dict[str, Any],
    access_token: Optional[str] = None,
    base_url: Optional[str] = None,
    streaming: bool = True,
) -> AsyncIterator[str]:
    """Stream the raw SSE text of one upstream generation.

    Raises UpstreamError for a non-200 status, a timeout, or a connection that
    failed or closed mid-stream. Chunks are yielded exactly as received; line
    splitting is the decoder's job. With `streaming=False` the exchange is
    bounded by REQUEST_TIMEOUT instead, for callers that wait for the whole reply.
    """
    url = f"{(base_url or UPSTREAM_BASE_URL).rstrip('/')}{STREAM_PATH}"
    headers = build_headers(UPSTREAM_ACCESS_TOKEN if access_token is None else access_token)

    logger.debug(f"[{request_id}] POST {url} model={body.get('model')}")

    chunk_index = 0
    if streaming:
        # STREAM_TIMEOUT for the whole stream with READ_TIMEOUT between chunks
        timeout = httpx.Timeout(STREAM_TIMEOUT, connect=CONNECT_TIMEOUT, read=READ_TIMEOUT)
        timeout_after = READ_TIMEOUT
    else:
        timeout = httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT)
        timeout_after = REQUEST_TIMEOUT
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            async with client.stream("POST", url, params={"alt": "sse"}, json=body, headers=headers) as response:
                if response.status_code != 200:
                    error_text = (await response.aread()).decode(errors="replace")
                    logger.error(f"[{request_id}] Upstream error {response.status_code}: {error_text}")
                    raise UpstreamError(response.status_code, error_text)

                async for chunk in response.aiter_text():
                    chunk_index += 1
                    yield chunk
    except httpx.TimeoutException as e:
        logger.error(f"[{request_id}] Upstream timed out after {chunk_index} chunks: {e!r}")
        raise UpstreamError(504, f"Stream timeout after {timeout_after}s")
    except (httpx.RemoteProtocolError, httpx.ConnectError) as e:
        logger.error(f"[{request_id}] Upstream connection failed after {chunk_index} chunks: {e}")
        raise UpstreamError(502, f"Connection closed: {str(e)}")
    finally:
        logger.debug(f"[{request_id}] Upstream stream closed after {chunk_index} chunks")
