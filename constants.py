"""
Centralized model, reasoning and thinking-signature metadata for the relay.

This module defines the model ids the relay exposes, how client-facing ids map
onto upstream model names, and the fixed strings used when history has to be
repaired before it is sent upstream.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

# Reasoning effort to thinking budget mapping (tokens)
REASONING_BUDGET_MAP: Dict[str, int] = {
    "low": 1024,
    "medium": 16000,
    "high": 32000,
}

# Gemini rejects maxOutputTokens above this value
GEMINI_MAX_OUTPUT_TOKENS = 65535

# Sentinel accepted by the upstream in place of a real thought signature on
# Gemini functionCall parts
GEMINI_SKIP_SIGNATURE = "skip_thought_signature_validator"

DEFAULT_STOP_SEQUENCES: List[str] = [
    "<|user|>",
    "<|bot|>",
    "<|context_request|>",
    "<|endoftext|>",
    "<|end_of_turn|>",
]

INTERLEAVED_THINKING_HINT = (
    "Interleaved thinking is enabled. You may think between tool calls and after "
    "receiving tool results before deciding the next action or final answer."
)

# Synthetic turns used to close a tool loop the target cannot resume
SYNTHETIC_TOOL_COMPLETED = "[Tool execution completed.]"
SYNTHETIC_TOOLS_COMPLETED = "[{count} tool executions completed.]"
SYNTHETIC_CONTEXT_PROCESSED = "[Processing previous context.]"
SYNTHETIC_CONTINUE = "[Continue]"
SYNTHETIC_TOOL_INTERRUPTED = "[Tool call was interrupted.]"

# Client-facing model ids remapped before they are sent upstream
MODEL_ALIASES: Dict[str, str] = {
    "claude-sonnet-4-5-thinking": "claude-sonnet-4-5",
    "claude-opus-4-5": "claude-opus-4-5-thinking",
    "gemini-2.5-flash-thinking": "gemini-2.5-flash",
}

_GEMINI_VERSION_RE = re.compile(r"gemini-(\d+)")


@dataclass(frozen=True)
class ModelSpec:
    id: str
    created: int
    owned_by: str
    context_length: int
    max_completion_tokens: int

    def to_model_listing(self) -> Dict[str, int | str]:
        return {
            "id": self.id,
            "object": "model",
            "created": self.created,
            "owned_by": self.owned_by,
            "context_length": self.context_length,
            "max_completion_tokens": self.max_completion_tokens,
        }


AVAILABLE_MODELS: List[ModelSpec] = [
    ModelSpec("claude-sonnet-4-5", 1759104000, "anthropic", 200_000, 64_000),
    ModelSpec("claude-sonnet-4-5-thinking", 1759104000, "anthropic", 200_000, 64_000),
    ModelSpec("claude-opus-4-5-thinking", 1763942400, "anthropic", 200_000, 64_000),
    ModelSpec("gemini-2.5-flash", 1750118400, "google", 1_048_576, GEMINI_MAX_OUTPUT_TOKENS),
    ModelSpec("gemini-2.5-pro", 1750118400, "google", 1_048_576, GEMINI_MAX_OUTPUT_TOKENS),
    ModelSpec("gemini-3-pro-high", 1763510400, "google", 1_048_576, GEMINI_MAX_OUTPUT_TOKENS),
    ModelSpec("gemini-3-pro-low", 1763510400, "google", 1_048_576, GEMINI_MAX_OUTPUT_TOKENS),
]

MODELS_LIST: List[Dict[str, int | str]] = sorted(
    (model.to_model_listing() for model in AVAILABLE_MODELS),
    key=lambda model: model["id"],  # type: ignore[index]
)


def resolve_model_name(model_name: str) -> str:
    """Map a client-facing model id onto the upstream model id."""
    return MODEL_ALIASES.get(model_name, model_name)


def get_model_family(model_name: Optional[str]) -> str:
    """Return 'claude', 'gemini' or 'unknown' for a model id."""
    lower = (model_name or "").lower()
    if "claude" in lower:
        return "claude"
    if "gemini" in lower:
        return "gemini"
    return "unknown"


def is_thinking_model(model_name: Optional[str]) -> bool:
    """Whether the model emits thinking blocks (and so validates their signatures)."""
    lower = (model_name or "").lower()
    if "claude" in lower and "thinking" in lower:
        return True
    if "gemini" in lower:
        if "thinking" in lower:
            return True
        match = _GEMINI_VERSION_RE.search(lower)
        if match and int(match.group(1)) >= 3:
            return True
    return False
