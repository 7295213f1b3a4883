"""
Shared state for one relay process.

Everything that outlives a single exchange lives here and is handed to the
request assembler, the decoder and the endpoints explicitly. `create_app()`
builds one from settings; tests build their own.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

import settings
from thinking.pipeline import ThinkingPipeline
from thinking.signature_cache import SignatureCache
from upstream.pools import MemoryManager
from upstream.stream_parser import DecoderPools, StreamDecoder
from utils.id_generator import generate_session_id
from utils.tool_name_cache import ToolNameCache

logger = logging.getLogger(__name__)


@dataclass
class RelayContext:
    signature_cache: SignatureCache
    memory: MemoryManager
    pools: DecoderPools
    tool_names: ToolNameCache
    min_signature_length: int = 50
    project_id: str = ""
    session_id: str = field(default_factory=generate_session_id)

    @property
    def pipeline(self) -> ThinkingPipeline:
        return ThinkingPipeline(self.signature_cache, self.min_signature_length)

    def new_decoder(self, model: str) -> StreamDecoder:
        return StreamDecoder(
            self.pools,
            signature_cache=self.signature_cache,
            tool_names=self.tool_names,
            min_signature_length=self.min_signature_length,
            session_id=self.session_id,
            model=model,
        )

    def status(self) -> Dict[str, Any]:
        return {
            "signature_cache_entries": len(self.signature_cache),
            "signature_cache_max_entries": self.signature_cache.max_entries,
            "tool_name_entries": len(self.tool_names),
            "pools": self.pools.stats(),
            "min_signature_length": self.min_signature_length,
        }


def build_context(
    *,
    min_signature_length: int = None,
    cache_max_entries: int = None,
    cache_ttl_seconds: float = None,
    line_buffer_pool_size: int = None,
    tool_call_pool_size: int = None,
    project_id: str = None,
) -> RelayContext:
    """Create a RelayContext, filling unspecified values from settings."""
    memory = MemoryManager(
        line_buffer=settings.LINE_BUFFER_POOL_SIZE if line_buffer_pool_size is None else line_buffer_pool_size,
        tool_call=settings.TOOL_CALL_POOL_SIZE if tool_call_pool_size is None else tool_call_pool_size,
    )
    context = RelayContext(
        signature_cache=SignatureCache(
            max_entries=settings.SIGNATURE_CACHE_MAX_ENTRIES if cache_max_entries is None else cache_max_entries,
            ttl_seconds=settings.SIGNATURE_CACHE_TTL if cache_ttl_seconds is None else cache_ttl_seconds,
        ),
        memory=memory,
        pools=DecoderPools(memory),
        tool_names=ToolNameCache(),
        min_signature_length=settings.MIN_SIGNATURE_LENGTH if min_signature_length is None else min_signature_length,
        project_id=settings.UPSTREAM_PROJECT_ID if project_id is None else project_id,
    )
    logger.debug(f"Relay context created: {context.status()}")
    return context
