"""Claude Messages request -> upstream envelope."""
import logging
from typing import Any, Dict

from context import RelayContext
from conversation.parsing import claude_system_text, parse_claude_messages
from converters.common import build_generation_config, build_request_body, resolve_thinking_budget

logger = logging.getLogger(__name__)


def convert_claude_request(request_data: Dict[str, Any], context: RelayContext) -> Dict[str, Any]:
    model = request_data["model"]
    turns = parse_claude_messages(request_data.get("messages") or [])
    turns = context.pipeline.prepare(turns, model)

    thinking = request_data.get("thinking") or {}
    thinking_type = thinking.get("type") if isinstance(thinking, dict) else None
    thinking_budget = resolve_thinking_budget(
        model,
        budget_tokens=thinking.get("budget_tokens") if isinstance(thinking, dict) else None,
        enabled={"enabled": True, "disabled": False}.get(thinking_type),
    )

    generation_config = build_generation_config(
        model,
        max_tokens=request_data.get("max_tokens"),
        temperature=request_data.get("temperature"),
        top_p=request_data.get("top_p"),
        top_k=request_data.get("top_k"),
        stop=request_data.get("stop_sequences"),
        thinking_budget=thinking_budget,
    )
    logger.debug(f"Claude request: model={model} turns={len(turns)} thinking_budget={thinking_budget}")
    return build_request_body(
        turns,
        model=model,
        context=context,
        system_text=claude_system_text(request_data.get("system")),
        tools=request_data.get("tools"),
        generation_config=generation_config,
    )
