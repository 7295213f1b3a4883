"""
Inbound history parsing.

Turns Claude Messages, OpenAI Chat and Gemini `contents` payloads into
ConversationTurn tuples so the thinking pipeline can work on one shape.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from conversation.blocks import (
    ROLE_ASSISTANT,
    ROLE_USER,
    ContentBlock,
    ConversationTurn,
    ImageBlock,
    TextBlock,
    ThinkingBlock,
    ToolInvocationBlock,
    ToolResultBlock,
    normalize_role,
)

logger = logging.getLogger(__name__)

_DATA_URI_RE = re.compile(r"data:(image/[\w.+-]+);base64,(.+)", re.DOTALL)


def _stringify_tool_result(content: Any) -> str:
    """Flatten tool result content (string, list of parts, or arbitrary JSON) into text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        text_parts = []
        for part in content:
            if isinstance(part, dict):
                if part.get("type") == "text":
                    text_parts.append(part.get("text", ""))
                else:
                    text_parts.append(json.dumps(part))
            else:
                text_parts.append(str(part))
        return "\n".join(text_parts)
    return json.dumps(content)


def _parse_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"[HISTORY_PARSE] Failed to parse tool arguments JSON: {e}")
            return {}
        return parsed if isinstance(parsed, dict) else {"value": parsed}
    return {}


# ==================== Claude Messages ====================

def _claude_block(item: Dict[str, Any]) -> Optional[ContentBlock]:
    item_type = item.get("type")

    if item_type == "text":
        return TextBlock(text=item.get("text", ""))

    if item_type == "thinking":
        return ThinkingBlock(text=item.get("thinking", ""), signature=item.get("signature") or None)

    if item_type == "tool_use":
        return ToolInvocationBlock(
            id=item.get("id", ""),
            name=item.get("name", ""),
            arguments=_parse_arguments(item.get("input", {})),
            signature=item.get("thoughtSignature") or item.get("signature") or None,
        )

    if item_type == "tool_result":
        return ToolResultBlock(
            tool_invocation_id=item.get("tool_use_id", ""),
            content=_stringify_tool_result(item.get("content")),
            is_error=bool(item.get("is_error", False)),
        )

    if item_type == "image":
        source = item.get("source") or {}
        if source.get("type") == "base64":
            return ImageBlock(media_type=source.get("media_type", "image/png"), data=source.get("data", ""))
        logger.debug(f"[HISTORY_PARSE] Skipping non-inline image source: {source.get('type')}")
        return None

    # redacted_thinking has no usable text upstream
    logger.debug(f"[HISTORY_PARSE] Skipping unsupported Claude block type: {item_type}")
    return None


def parse_claude_messages(messages: List[Dict[str, Any]]) -> Tuple[ConversationTurn, ...]:
    """Convert Claude Messages API history into turns."""
    turns: List[ConversationTurn] = []
    for msg in messages:
        role = normalize_role(msg.get("role"))
        content = msg.get("content")
        if isinstance(content, str):
            turns.append(ConversationTurn(role=role, content=content))
            continue
        blocks = []
        for item in content or []:
            if not isinstance(item, dict):
                continue
            block = _claude_block(item)
            if block is not None:
                blocks.append(block)
        turns.append(ConversationTurn(role=role, content=tuple(blocks)))
    return tuple(turns)


def claude_system_text(system: Any) -> str:
    """Claude `system` is either a string or a list of text blocks."""
    if not system:
        return ""
    if isinstance(system, str):
        return system
    if isinstance(system, list):
        return "\n\n".join(
            block.get("text", "") for block in system
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text")
        )
    return ""


# ==================== OpenAI Chat ====================

def _openai_content_blocks(content: Any) -> List[ContentBlock]:
    if isinstance(content, str):
        return [TextBlock(text=content)] if content else []
    blocks: List[ContentBlock] = []
    for item in content or []:
        if not isinstance(item, dict):
            continue
        item_type = item.get("type")
        if item_type == "text":
            blocks.append(TextBlock(text=item.get("text", "")))
        elif item_type == "image_url":
            image_url = item.get("image_url", {})
            url = image_url.get("url", "") if isinstance(image_url, dict) else image_url
            match = _DATA_URI_RE.match(url or "")
            if match:
                blocks.append(ImageBlock(media_type=match.group(1), data=match.group(2)))
            else:
                logger.debug("[HISTORY_PARSE] Skipping remote image_url (only data URIs are forwarded)")
        else:
            # Some clients send Claude-style blocks inside OpenAI messages
            block = _claude_block(item)
            if block is not None:
                blocks.append(block)
    return blocks


def parse_openai_messages(messages: List[Dict[str, Any]]) -> Tuple[Tuple[ConversationTurn, ...], str]:
    """
    Convert OpenAI chat messages into turns.

    System messages are collected into a single instruction string, tool and
    function messages become ToolResultBlocks on a user turn, and consecutive
    messages of the same role are merged.

    Returns:
        tuple: (turns, system_text)
    """
    system_texts: List[str] = []
    turns: List[ConversationTurn] = []

    def append(role: str, blocks: List[ContentBlock]) -> None:
        if not blocks:
            return
        if turns and turns[-1].role == role:
            turns[-1] = turns[-1].with_blocks(turns[-1].blocks + tuple(blocks))
        else:
            turns.append(ConversationTurn(role=role, content=tuple(blocks)))

    for msg in messages:
        role = msg.get("role")
        content = msg.get("content")

        if role == "system":
            text = "".join(b.text for b in _openai_content_blocks(content) if isinstance(b, TextBlock))
            if text.strip():
                system_texts.append(text.strip())
            continue

        if role == "tool":
            append(ROLE_USER, [ToolResultBlock(
                tool_invocation_id=msg.get("tool_call_id", ""),
                content=_stringify_tool_result(content),
                name=msg.get("name"),
            )])
            continue

        if role == "function":
            function_name = msg.get("name", "")
            append(ROLE_USER, [ToolResultBlock(
                tool_invocation_id=f"func_{function_name}",
                content=_stringify_tool_result(content),
                name=function_name,
            )])
            continue

        if role == "assistant":
            blocks: List[ContentBlock] = []
            reasoning = msg.get("reasoning_content")
            if isinstance(reasoning, str) and reasoning:
                blocks.append(ThinkingBlock(text=reasoning, signature=msg.get("thinking_signature") or None))
            blocks.extend(_openai_content_blocks(content))
            for tool_call in msg.get("tool_calls") or []:
                function = tool_call.get("function", {})
                blocks.append(ToolInvocationBlock(
                    id=tool_call.get("id", ""),
                    name=function.get("name", ""),
                    arguments=_parse_arguments(function.get("arguments", "{}")),
                    signature=tool_call.get("thoughtSignature") or None,
                ))
            function_call = msg.get("function_call")
            if function_call:
                name = function_call.get("name", "")
                blocks.append(ToolInvocationBlock(
                    id=f"func_{name}",
                    name=name,
                    arguments=_parse_arguments(function_call.get("arguments", "{}")),
                ))
            append(ROLE_ASSISTANT, blocks)
            continue

        append(ROLE_USER, _openai_content_blocks(content))

    return tuple(turns), "\n\n".join(system_texts)


# ==================== Gemini contents ====================

def _gemini_part_block(part: Dict[str, Any], index: int) -> Optional[ContentBlock]:
    signature = part.get("thoughtSignature") or None
    if part.get("thought") is True:
        return ThinkingBlock(text=part.get("text", ""), signature=signature)
    if "text" in part:
        return TextBlock(text=part.get("text") or "")
    if "functionCall" in part:
        call = part["functionCall"] or {}
        name = call.get("name", "")
        return ToolInvocationBlock(
            id=call.get("id") or f"{name}-{index}",
            name=name,
            arguments=_parse_arguments(call.get("args", {})),
            signature=signature,
        )
    if "functionResponse" in part:
        response = part["functionResponse"] or {}
        name = response.get("name", "")
        return ToolResultBlock(
            tool_invocation_id=response.get("id") or f"{name}-{index}",
            content=_stringify_tool_result(response.get("response")),
            name=name,
        )
    if "inlineData" in part:
        data = part["inlineData"] or {}
        return ImageBlock(media_type=data.get("mimeType", "image/png"), data=data.get("data", ""))
    return None


def parse_gemini_contents(contents: List[Dict[str, Any]]) -> Tuple[ConversationTurn, ...]:
    """
    Convert Gemini `contents` into turns.

    Gemini function calls often carry no id; a positional id (`name-index`) is
    assigned so calls and responses at the same position pair up.
    """
    turns: List[ConversationTurn] = []
    for content in contents:
        role = normalize_role(content.get("role"))
        blocks = []
        tool_index = 0
        for part in content.get("parts") or []:
            if not isinstance(part, dict):
                continue
            block = _gemini_part_block(part, tool_index)
            if isinstance(block, (ToolInvocationBlock, ToolResultBlock)):
                tool_index += 1
            if block is not None:
                blocks.append(block)
        turns.append(ConversationTurn(role=role, content=tuple(blocks)))
    return tuple(turns)


def gemini_system_text(system_instruction: Any) -> str:
    if not isinstance(system_instruction, dict):
        return ""
    return "\n\n".join(
        part.get("text", "") for part in system_instruction.get("parts") or []
        if isinstance(part, dict) and part.get("text")
    )
