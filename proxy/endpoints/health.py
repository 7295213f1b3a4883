"""
Health check, model listing and relay status endpoints.
"""
import time

from fastapi import APIRouter, Depends

from constants import MODELS_LIST
from context import RelayContext
from proxy.dependencies import get_relay_context

router = APIRouter()


@router.get("/healthz")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "timestamp": time.time()}


@router.get("/v1/models")
async def list_models():
    """OpenAI-compatible models endpoint"""
    return {
        "object": "list",
        "data": [model.copy() for model in MODELS_LIST]
    }


@router.get("/relay/status")
async def relay_status(context: RelayContext = Depends(get_relay_context)):
    """Signature cache and decoder pool sizes"""
    return {"status": "ok", **context.status()}
