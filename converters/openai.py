"""OpenAI Chat Completions request -> upstream envelope."""
import logging
from typing import Any, Dict, List, Optional

from context import RelayContext
from conversation.parsing import parse_openai_messages
from converters.common import build_generation_config, build_request_body, resolve_thinking_budget

logger = logging.getLogger(__name__)


def _openai_tools(request_data: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    """Accept both `tools` and the legacy `functions` list."""
    if request_data.get("tools"):
        return request_data["tools"]
    functions = request_data.get("functions")
    if functions:
        return [{"type": "function", "function": function} for function in functions]
    return None


def convert_openai_request(request_data: Dict[str, Any], context: RelayContext) -> Dict[str, Any]:
    model = request_data["model"]
    turns, system_text = parse_openai_messages(request_data.get("messages") or [])
    turns = context.pipeline.prepare(turns, model)

    thinking_budget = resolve_thinking_budget(
        model,
        budget_tokens=request_data.get("thinking_budget"),
        reasoning_effort=request_data.get("reasoning_effort"),
    )
    max_tokens = request_data.get("max_completion_tokens") or request_data.get("max_tokens")
    generation_config = build_generation_config(
        model,
        max_tokens=max_tokens,
        temperature=request_data.get("temperature"),
        top_p=request_data.get("top_p"),
        top_k=request_data.get("top_k"),
        stop=request_data.get("stop"),
        thinking_budget=thinking_budget,
    )
    logger.debug(f"OpenAI request: model={model} turns={len(turns)} thinking_budget={thinking_budget}")
    return build_request_body(
        turns,
        model=model,
        context=context,
        system_text=system_text,
        tools=_openai_tools(request_data),
        generation_config=generation_config,
    )
