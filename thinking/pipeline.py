"""
Thinking-block lifecycle pipeline.

Prepares a conversation history for the current target model so that:

1. thinking blocks that lost their signature get it back from the signature cache
   when a tool invocation in the same turn was seen signed;
2. unsigned thinking never trails an assistant turn;
3. assistant turns read thinking, then text, then tool invocations;
4. a tool loop left open by a turn with neither valid thinking nor a signed
   tool invocation is closed with synthetic turns before a
   signature-validating model has to resume it;
5. Claude targets get no unsigned thinking anywhere.

Every function here is pure: turns are never mutated, new tuples are returned.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from constants import (
    SYNTHETIC_CONTEXT_PROCESSED,
    SYNTHETIC_CONTINUE,
    SYNTHETIC_TOOL_COMPLETED,
    SYNTHETIC_TOOL_INTERRUPTED,
    SYNTHETIC_TOOLS_COMPLETED,
    get_model_family,
    is_thinking_model,
)
from conversation.blocks import (
    ROLE_ASSISTANT,
    ROLE_USER,
    ContentBlock,
    ConversationTurn,
    TextBlock,
    ThinkingBlock,
    ToolInvocationBlock,
    ToolResultBlock,
    has_valid_signature,
    is_valid_signature,
    turn_has_tool_results,
    turn_tool_invocations,
)
from thinking.signature_cache import SignatureCache

logger = logging.getLogger(__name__)

Turns = Tuple[ConversationTurn, ...]


def _is_unsigned_thinking(block: ContentBlock, min_signature_length: int) -> bool:
    return isinstance(block, ThinkingBlock) and not has_valid_signature(block, min_signature_length)


# ==================== Per-turn steps ====================

def restore_thinking_signatures(
    blocks: Sequence[ContentBlock],
    cache: Optional[SignatureCache],
    min_signature_length: int,
) -> Tuple[ContentBlock, ...]:
    """Re-sign unsigned thinking blocks using a signature known for a tool invocation in the same turn."""
    blocks = tuple(blocks)
    if not any(_is_unsigned_thinking(block, min_signature_length) for block in blocks):
        return blocks

    signature = None
    for block in blocks:
        if not isinstance(block, ToolInvocationBlock):
            continue
        if is_valid_signature(block.signature, min_signature_length):
            signature = block.signature
        elif cache is not None:
            cached = cache.get(block.id)
            if is_valid_signature(cached, min_signature_length):
                signature = cached
        if signature:
            break

    if not signature:
        return blocks

    logger.debug("Restored thinking signature from tool invocation in the same turn")
    return tuple(
        ThinkingBlock(text=block.text, signature=signature, is_thought=block.is_thought)
        if _is_unsigned_thinking(block, min_signature_length) else block
        for block in blocks
    )


def remove_trailing_thinking_blocks(
    blocks: Sequence[ContentBlock],
    min_signature_length: int,
) -> Tuple[ContentBlock, ...]:
    """Drop unsigned thinking blocks at the end of a turn; stop at the first signed or non-thinking block."""
    end = len(blocks)
    while end > 0 and _is_unsigned_thinking(blocks[end - 1], min_signature_length):
        end -= 1
    if end < len(blocks):
        logger.debug(f"Removed {len(blocks) - end} trailing unsigned thinking block(s)")
    return tuple(blocks[:end])


def reorder_assistant_content(blocks: Sequence[ContentBlock]) -> Tuple[ContentBlock, ...]:
    """Stable partition into thinking, then text (and other content), then tool invocations."""
    thinking: List[ContentBlock] = []
    text: List[ContentBlock] = []
    tool_invocations: List[ContentBlock] = []
    for block in blocks:
        if isinstance(block, ThinkingBlock):
            thinking.append(block)
        elif isinstance(block, ToolInvocationBlock):
            tool_invocations.append(block)
        else:
            text.append(block)
    return tuple(thinking + text + tool_invocations)


def process_assistant_turn(
    turn: ConversationTurn,
    cache: Optional[SignatureCache],
    min_signature_length: int,
) -> ConversationTurn:
    """Apply restore, prune and reorder to one assistant turn. String content passes through."""
    if not turn.is_assistant or isinstance(turn.content, str):
        return turn
    blocks = restore_thinking_signatures(turn.content, cache, min_signature_length)
    blocks = remove_trailing_thinking_blocks(blocks, min_signature_length)
    blocks = reorder_assistant_content(blocks)
    if blocks == turn.content:
        return turn
    return turn.with_blocks(blocks)


# ==================== Conversation-level analysis ====================

def _invocation_is_signed(
    invocation: ToolInvocationBlock,
    cache: Optional[SignatureCache],
    min_signature_length: int,
) -> bool:
    if is_valid_signature(invocation.signature, min_signature_length):
        return True
    return cache is not None and is_valid_signature(cache.get(invocation.id), min_signature_length)


@dataclass(frozen=True)
class ConversationState:
    last_assistant_index: int = -1
    # Last assistant turn called tools and only tool results follow it
    in_tool_loop: bool = False
    # Last assistant turn called tools, got no results, and the user moved on
    interrupted_tool: bool = False
    # History ends on the assistant turn that called tools
    dangling_tool_use: bool = False
    turn_has_thinking: bool = False
    # A tool invocation of the last assistant turn carries a signature the target issued
    turn_has_tool_signature: bool = False
    tool_result_count: int = 0

    @property
    def open_tool_loop(self) -> bool:
        return self.in_tool_loop or self.interrupted_tool or self.dangling_tool_use


def analyze_conversation_state(
    turns: Sequence[ConversationTurn],
    min_signature_length: int,
    cache: Optional[SignatureCache] = None,
) -> ConversationState:
    """Locate the last assistant turn and classify whether it left a tool loop open."""
    last_idx = -1
    for i in range(len(turns) - 1, -1, -1):
        if turns[i].is_assistant:
            last_idx = i
            break
    if last_idx == -1:
        return ConversationState()

    last_assistant = turns[last_idx]
    has_tool_use = bool(turn_tool_invocations(last_assistant))
    turn_has_thinking = any(
        isinstance(block, ThinkingBlock) and has_valid_signature(block, min_signature_length)
        for block in last_assistant.blocks
    )
    turn_has_tool_signature = any(
        _invocation_is_signed(invocation, cache, min_signature_length)
        for invocation in turn_tool_invocations(last_assistant)
    )

    following = turns[last_idx + 1:]
    tool_result_count = 0
    has_plain_user_after = False
    for turn in following:
        if turn_has_tool_results(turn):
            tool_result_count += sum(1 for block in turn.blocks if isinstance(block, ToolResultBlock))
        else:
            has_plain_user_after = True

    return ConversationState(
        last_assistant_index=last_idx,
        in_tool_loop=has_tool_use and tool_result_count > 0 and not has_plain_user_after,
        interrupted_tool=has_tool_use and tool_result_count == 0 and has_plain_user_after,
        dangling_tool_use=has_tool_use and not following,
        turn_has_thinking=turn_has_thinking,
        turn_has_tool_signature=turn_has_tool_signature,
        tool_result_count=tool_result_count,
    )


def needs_thinking_recovery(
    turns: Sequence[ConversationTurn],
    min_signature_length: int,
    cache: Optional[SignatureCache] = None,
) -> bool:
    """
    True when the last assistant turn left a tool loop open and nothing in it
    proves the target produced it: no signed thinking, and no tool invocation
    signed on the block or in the cache.
    """
    state = analyze_conversation_state(turns, min_signature_length, cache)
    return state.open_tool_loop and not (state.turn_has_thinking or state.turn_has_tool_signature)


def filter_unsigned_thinking(turns: Iterable[ConversationTurn], min_signature_length: int) -> Turns:
    """Drop unsigned thinking blocks from every assistant turn, not just trailing ones."""
    result = []
    for turn in turns:
        if not turn.is_assistant or isinstance(turn.content, str):
            result.append(turn)
            continue
        kept = tuple(b for b in turn.content if not _is_unsigned_thinking(b, min_signature_length))
        result.append(turn if kept == turn.content else turn.with_blocks(kept))
    return tuple(result)


def _text_turn(role: str, text: str) -> ConversationTurn:
    return ConversationTurn(role=role, content=(TextBlock(text=text),))


def _interrupted_results(invocations: Sequence[ToolInvocationBlock]) -> ConversationTurn:
    return ConversationTurn(role=ROLE_USER, content=tuple(
        ToolResultBlock(
            tool_invocation_id=invocation.id,
            content=SYNTHETIC_TOOL_INTERRUPTED,
            is_error=True,
            name=invocation.name,
        )
        for invocation in invocations
    ))


def close_tool_loop_for_thinking(turns: Sequence[ConversationTurn], min_signature_length: int) -> Turns:
    """
    Close an open tool loop so a signature-validating model can start a fresh turn.

    - Results already present: append a synthetic assistant turn acknowledging
      them and a synthetic user turn to continue.
    - User moved on without results: answer the open invocations with
      interrupted tool results and a synthetic assistant turn, ahead of the
      user's message.
    - History ends on the invocations: same as above, then continue.

    Unsigned thinking is stripped everywhere first, since none of it can be
    validated by the new target.
    """
    state = analyze_conversation_state(turns, min_signature_length)
    if not state.open_tool_loop:
        return tuple(turns)

    modified = list(filter_unsigned_thinking(turns, min_signature_length))
    idx = state.last_assistant_index

    if state.in_tool_loop:
        if state.tool_result_count == 1:
            synthetic = SYNTHETIC_TOOL_COMPLETED
        else:
            synthetic = SYNTHETIC_TOOLS_COMPLETED.format(count=state.tool_result_count)
        modified.append(_text_turn(ROLE_ASSISTANT, synthetic))
        modified.append(_text_turn(ROLE_USER, SYNTHETIC_CONTINUE))
        logger.info(f"Closed tool loop with synthetic turns: {synthetic!r} / {SYNTHETIC_CONTINUE!r}")
    else:
        invocations = turn_tool_invocations(modified[idx])
        closing = [
            _interrupted_results(invocations),
            _text_turn(ROLE_ASSISTANT, SYNTHETIC_TOOL_INTERRUPTED),
        ]
        if state.dangling_tool_use:
            logger.warning(
                "History ends on tool invocations with no results; forwarding best-effort history"
            )
            closing[1] = _text_turn(ROLE_ASSISTANT, SYNTHETIC_CONTEXT_PROCESSED)
            closing.append(_text_turn(ROLE_USER, SYNTHETIC_CONTINUE))
        modified[idx + 1:idx + 1] = closing
        logger.info(f"Closed interrupted tool loop ({len(invocations)} open invocation(s))")

    return tuple(modified)


# ==================== Full pipeline ====================

def requires_signed_reasoning(model_name: str) -> bool:
    """Targets that validate thinking signatures across turns."""
    return is_thinking_model(model_name)


def prepare_history(
    turns: Sequence[ConversationTurn],
    model_name: str,
    cache: Optional[SignatureCache],
    min_signature_length: int,
) -> Turns:
    """Run every lifecycle step for the given target model. Idempotent."""
    processed = tuple(process_assistant_turn(turn, cache, min_signature_length) for turn in turns)

    if requires_signed_reasoning(model_name) and needs_thinking_recovery(processed, min_signature_length, cache):
        logger.info(f"Applying thinking recovery for {model_name}")
        processed = close_tool_loop_for_thinking(processed, min_signature_length)

    if get_model_family(model_name) == "claude":
        processed = filter_unsigned_thinking(processed, min_signature_length)

    return processed


class ThinkingPipeline:
    """Binds the pipeline to a signature cache and signature-length threshold."""

    def __init__(self, cache: Optional[SignatureCache], min_signature_length: int):
        self.cache = cache
        self.min_signature_length = min_signature_length

    def prepare(self, turns: Sequence[ConversationTurn], model_name: str) -> Turns:
        return prepare_history(turns, model_name, self.cache, self.min_signature_length)
