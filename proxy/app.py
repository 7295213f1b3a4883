"""
FastAPI application for the relay.
"""
import logging
import time
from typing import Optional

from fastapi import FastAPI, Request

from context import RelayContext, build_context
from proxy.endpoints import chat_completions, gemini, health, messages
from settings import LOG_LEVEL

logging.basicConfig(level=getattr(logging, str(LOG_LEVEL).upper(), logging.INFO))
logger = logging.getLogger(__name__)

LOGGED_PATH_PREFIXES = ("/v1/", "/v1beta/")


def create_app(context: Optional[RelayContext] = None) -> FastAPI:
    """Build the app around `context`, or a fresh one built from settings."""
    app = FastAPI(title="Cloud Code Relay", version="1.0.0")
    app.state.relay = context or build_context()

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        if request.url.path.startswith(LOGGED_PATH_PREFIXES):
            logger.info(f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s")

        return response

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(chat_completions.router)
    app.include_router(gemini.router)
    return app


app = create_app()
