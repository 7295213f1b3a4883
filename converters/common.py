"""
Request assembly shared by the Claude, OpenAI and Gemini front ends.

Each front end parses its request into conversation turns, runs them through
the thinking pipeline and hands the result here to be turned into the upstream
`v1internal` envelope.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import settings
from constants import (
    DEFAULT_STOP_SEQUENCES,
    GEMINI_MAX_OUTPUT_TOKENS,
    GEMINI_SKIP_SIGNATURE,
    INTERLEAVED_THINKING_HINT,
    REASONING_BUDGET_MAP,
    get_model_family,
    is_thinking_model,
    resolve_model_name,
)
from context import RelayContext
from conversation.blocks import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ConversationTurn,
    ImageBlock,
    TextBlock,
    ThinkingBlock,
    ToolInvocationBlock,
    ToolResultBlock,
    is_valid_signature,
)
from utils.id_generator import generate_request_id
from utils.tool_name_cache import sanitize_tool_name

logger = logging.getLogger(__name__)

# JSON-schema keywords the upstream function declaration validator accepts
SUPPORTED_SCHEMA_KEYS = frozenset({
    "type",
    "description",
    "properties",
    "required",
    "items",
    "enum",
    "nullable",
    "format",
    "minimum",
    "maximum",
    "minItems",
    "maxItems",
    "anyOf",
})


def convert_role(role: str) -> str:
    return "model" if role == ROLE_ASSISTANT else "user"


def _coerce_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric sampling value: {value!r}")
        return None


def _coerce_int(value: Any) -> Optional[int]:
    number = _coerce_float(value)
    return int(number) if number is not None else None


# ==================== Content ====================

def tool_names_by_id(turns: Sequence[ConversationTurn]) -> Dict[str, str]:
    """Invocation id -> declared tool name, for functionResponse parts that need the name."""
    names: Dict[str, str] = {}
    for turn in turns:
        for block in turn.blocks:
            if isinstance(block, ToolInvocationBlock):
                names[block.id] = block.name
    return names


def _tool_call_signature(block: ToolInvocationBlock, family: str, context: RelayContext) -> Optional[str]:
    if is_valid_signature(block.signature, context.min_signature_length):
        return block.signature
    cached = context.signature_cache.get(block.id)
    if is_valid_signature(cached, context.min_signature_length):
        return cached
    if family == "gemini":
        return GEMINI_SKIP_SIGNATURE
    return None


def convert_content_to_parts(
    turn: ConversationTurn,
    *,
    model: str,
    context: RelayContext,
    invocation_names: Dict[str, str],
) -> List[Dict[str, Any]]:
    """Convert one turn into upstream parts. Never returns an empty list."""
    if isinstance(turn.content, str):
        return [{"text": turn.content}]

    family = get_model_family(model)
    parts: List[Dict[str, Any]] = []
    for block in turn.content:
        if isinstance(block, TextBlock):
            if block.text:
                parts.append({"text": block.text})
        elif isinstance(block, ThinkingBlock):
            part: Dict[str, Any] = {"text": block.text, "thought": True}
            if is_valid_signature(block.signature, context.min_signature_length):
                part["thoughtSignature"] = block.signature
            parts.append(part)
        elif isinstance(block, ToolInvocationBlock):
            part = {
                "functionCall": {
                    "id": block.id,
                    "name": context.tool_names.remember(context.session_id, model, block.name),
                    "args": block.arguments or {},
                }
            }
            signature = _tool_call_signature(block, family, context)
            if signature:
                part["thoughtSignature"] = signature
            parts.append(part)
        elif isinstance(block, ToolResultBlock):
            name = block.name or invocation_names.get(block.tool_invocation_id) or ""
            output_key = "error" if block.is_error else "output"
            parts.append({
                "functionResponse": {
                    "id": block.tool_invocation_id,
                    "name": sanitize_tool_name(name),
                    "response": {output_key: block.content},
                }
            })
        elif isinstance(block, ImageBlock):
            parts.append({"inlineData": {"mimeType": block.media_type, "data": block.data}})

    if not parts:
        parts.append({"text": ""})
    return parts


def convert_turns_to_contents(
    turns: Sequence[ConversationTurn],
    *,
    model: str,
    context: RelayContext,
) -> List[Dict[str, Any]]:
    invocation_names = tool_names_by_id(turns)
    contents = []
    for turn in turns:
        if turn.role == ROLE_SYSTEM:
            continue
        contents.append({
            "role": convert_role(turn.role),
            "parts": convert_content_to_parts(turn, model=model, context=context, invocation_names=invocation_names),
        })
    return contents


# ==================== Tools ====================

def sanitize_schema(schema: Any) -> Dict[str, Any]:
    """Reduce a JSON schema to the keywords the upstream accepts."""
    if not isinstance(schema, dict) or not schema:
        return {"type": "object", "properties": {}}
    return _sanitize_schema_node(schema)


def _sanitize_schema_node(node: Any) -> Any:
    if isinstance(node, list):
        return [_sanitize_schema_node(item) for item in node]
    if not isinstance(node, dict):
        return node

    cleaned: Dict[str, Any] = {}
    for key, value in node.items():
        if key not in SUPPORTED_SCHEMA_KEYS:
            continue
        if key == "properties" and isinstance(value, dict):
            cleaned[key] = {name: _sanitize_schema_node(prop) for name, prop in value.items()}
        elif key == "type" and isinstance(value, list):
            # ["string", "null"] -> "string" + nullable
            types = [item for item in value if item != "null"]
            cleaned[key] = types[0] if types else "string"
            if len(types) != len(value):
                cleaned["nullable"] = True
        else:
            cleaned[key] = _sanitize_schema_node(value)

    if isinstance(cleaned.get("required"), list) and isinstance(cleaned.get("properties"), dict):
        cleaned["required"] = [name for name in cleaned["required"] if name in cleaned["properties"]]
        if not cleaned["required"]:
            del cleaned["required"]
    return cleaned


def _function_declaration(name: str, description: Optional[str], parameters: Any, *, model: str, context: RelayContext) -> Dict[str, Any]:
    declaration = {
        "name": context.tool_names.remember(context.session_id, model, name),
        "parameters": sanitize_schema(parameters),
    }
    if description:
        declaration["description"] = description
    return declaration


def convert_tools(tools: Optional[List[Dict[str, Any]]], *, model: str, context: RelayContext) -> List[Dict[str, Any]]:
    """Convert Claude, OpenAI or Gemini tool lists into one functionDeclarations entry."""
    declarations = []
    for tool in tools or []:
        if not isinstance(tool, dict):
            continue
        if isinstance(tool.get("functionDeclarations"), list):
            for declaration in tool["functionDeclarations"]:
                if declaration.get("name"):
                    declarations.append(_function_declaration(
                        declaration["name"], declaration.get("description"),
                        declaration.get("parameters"), model=model, context=context,
                    ))
        elif isinstance(tool.get("function"), dict):
            function = tool["function"]
            if function.get("name"):
                declarations.append(_function_declaration(
                    function["name"], function.get("description"),
                    function.get("parameters"), model=model, context=context,
                ))
        elif tool.get("name"):
            declarations.append(_function_declaration(
                tool["name"], tool.get("description"),
                tool.get("input_schema") or tool.get("parameters"), model=model, context=context,
            ))
        else:
            logger.debug(f"Skipping tool without a name: {tool.get('type')}")

    if not declarations:
        return []
    return [{"functionDeclarations": declarations}]


# ==================== Generation config ====================

def resolve_thinking_budget(
    model: str,
    *,
    budget_tokens: Any = None,
    reasoning_effort: Optional[str] = None,
    enabled: Optional[bool] = None,
) -> Optional[int]:
    """Thinking budget for the request, or None when thinking stays off."""
    if enabled is False:
        return None
    budget = _coerce_int(budget_tokens)
    if budget is None and reasoning_effort:
        budget = REASONING_BUDGET_MAP.get(str(reasoning_effort).lower())
    if budget is None and (enabled or is_thinking_model(model)):
        budget = _coerce_int(settings.DEFAULT_THINKING_BUDGET)
    return budget


def build_generation_config(
    model: str,
    *,
    max_tokens: Any = None,
    temperature: Any = None,
    top_p: Any = None,
    top_k: Any = None,
    stop: Any = None,
    thinking_budget: Optional[int] = None,
) -> Dict[str, Any]:
    family = get_model_family(model)
    max_output_tokens = _coerce_int(max_tokens) or _coerce_int(settings.DEFAULT_MAX_TOKENS)

    if thinking_budget is not None and max_output_tokens <= thinking_budget:
        # Output budget must leave room for the answer after thinking
        max_output_tokens = thinking_budget + _coerce_int(settings.DEFAULT_MAX_TOKENS)
    if family == "gemini" and max_output_tokens > GEMINI_MAX_OUTPUT_TOKENS:
        max_output_tokens = GEMINI_MAX_OUTPUT_TOKENS
        if thinking_budget is not None and thinking_budget >= max_output_tokens:
            thinking_budget = max_output_tokens - 1

    if isinstance(stop, str):
        stop = [stop]
    stop_sequences = list(DEFAULT_STOP_SEQUENCES)
    for sequence in stop or []:
        if sequence and sequence not in stop_sequences:
            stop_sequences.append(sequence)

    config: Dict[str, Any] = {
        "maxOutputTokens": max_output_tokens,
        "stopSequences": stop_sequences,
    }
    sampling = {
        "temperature": _coerce_float(temperature if temperature is not None else settings.DEFAULT_TEMPERATURE),
        "topP": _coerce_float(top_p if top_p is not None else settings.DEFAULT_TOP_P),
        "topK": _coerce_int(top_k if top_k is not None else settings.DEFAULT_TOP_K),
    }
    config.update({key: value for key, value in sampling.items() if value is not None})

    if thinking_budget is not None:
        if family == "claude":
            config["thinkingConfig"] = {"include_thoughts": True, "thinking_budget": thinking_budget}
        else:
            config["thinkingConfig"] = {"includeThoughts": True, "thinkingBudget": thinking_budget}
    return config


# ==================== Envelope ====================

def build_system_instruction(client_system: Optional[str], *, model: str, has_tools: bool) -> Optional[Dict[str, Any]]:
    sections = [text for text in (settings.SYSTEM_INSTRUCTION, client_system) if text]
    if has_tools and get_model_family(model) == "claude" and is_thinking_model(model):
        sections.append(INTERLEAVED_THINKING_HINT)
    if not sections:
        return None
    return {"role": "user", "parts": [{"text": "\n\n".join(sections)}]}


def build_request_body(
    turns: Sequence[ConversationTurn],
    *,
    model: str,
    context: RelayContext,
    system_text: Optional[str] = None,
    tools: Optional[List[Dict[str, Any]]] = None,
    generation_config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Wrap prepared turns into the upstream request envelope.

    `model` is the client-facing id; it decides thinking and family handling
    and is mapped through the alias table only for the envelope's `model`.
    """
    upstream_tools = convert_tools(tools, model=model, context=context)
    request: Dict[str, Any] = {
        "contents": convert_turns_to_contents(turns, model=model, context=context),
        "tools": upstream_tools,
        "toolConfig": {"functionCallingConfig": {"mode": "VALIDATED"}},
        "generationConfig": generation_config or build_generation_config(model),
        "sessionId": context.session_id,
    }
    system_instruction = build_system_instruction(system_text, model=model, has_tools=bool(upstream_tools))
    if system_instruction:
        request["systemInstruction"] = system_instruction

    return {
        "project": context.project_id,
        "requestId": generate_request_id(),
        "request": request,
        "model": resolve_model_name(model),
        "userAgent": settings.UPSTREAM_USER_AGENT,
    }
