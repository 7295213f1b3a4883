"""Gemini generateContent request -> upstream envelope."""
import logging
from typing import Any, Dict

from context import RelayContext
from conversation.parsing import gemini_system_text, parse_gemini_contents
from converters.common import build_generation_config, build_request_body, resolve_thinking_budget

logger = logging.getLogger(__name__)


def convert_gemini_request(model: str, request_data: Dict[str, Any], context: RelayContext) -> Dict[str, Any]:
    """The model comes from the URL path (`/v1beta/models/{model}:...`), not the body."""
    turns = parse_gemini_contents(request_data.get("contents") or [])
    turns = context.pipeline.prepare(turns, model)

    config = request_data.get("generationConfig") or {}
    thinking_config = config.get("thinkingConfig") or {}
    include_thoughts = thinking_config.get("includeThoughts")
    thinking_budget = resolve_thinking_budget(
        model,
        budget_tokens=thinking_config.get("thinkingBudget"),
        enabled=include_thoughts if isinstance(include_thoughts, bool) else None,
    )

    generation_config = build_generation_config(
        model,
        max_tokens=config.get("maxOutputTokens"),
        temperature=config.get("temperature"),
        top_p=config.get("topP"),
        top_k=config.get("topK"),
        stop=config.get("stopSequences"),
        thinking_budget=thinking_budget,
    )
    system_instruction = request_data.get("systemInstruction") or request_data.get("system_instruction")
    logger.debug(f"Gemini request: model={model} turns={len(turns)} thinking_budget={thinking_budget}")
    return build_request_body(
        turns,
        model=model,
        context=context,
        system_text=gemini_system_text(system_instruction),
        tools=request_data.get("tools"),
        generation_config=generation_config,
    )
