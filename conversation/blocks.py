"""
Conversation data model shared by every client format.

A turn's content is either a plain string or a tuple of content blocks. Blocks
are frozen so the thinking pipeline can only ever build new sequences.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple, Union

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"

_ROLE_ALIASES = {
    "model": ROLE_ASSISTANT,
    "assistant": ROLE_ASSISTANT,
    "user": ROLE_USER,
    "system": ROLE_SYSTEM,
}


def normalize_role(role: Optional[str]) -> str:
    """Map client role names onto user/assistant/system ('model' is the Gemini assistant)."""
    return _ROLE_ALIASES.get((role or "").lower(), ROLE_USER)


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ThinkingBlock:
    text: str
    signature: Optional[str] = None
    is_thought: bool = True


@dataclass(frozen=True)
class ToolInvocationBlock:
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    # Tool-call signature round-tripped from a previous response
    signature: Optional[str] = None


@dataclass(frozen=True)
class ToolResultBlock:
    tool_invocation_id: str
    content: str
    is_error: bool = False
    name: Optional[str] = None


@dataclass(frozen=True)
class ImageBlock:
    media_type: str
    data: str


ContentBlock = Union[TextBlock, ThinkingBlock, ToolInvocationBlock, ToolResultBlock, ImageBlock]
Content = Union[str, Tuple[ContentBlock, ...]]


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: Content

    @property
    def is_assistant(self) -> bool:
        return self.role == ROLE_ASSISTANT

    @property
    def blocks(self) -> Tuple[ContentBlock, ...]:
        """Structured content; plain-string content reads as no blocks."""
        if isinstance(self.content, str):
            return ()
        return self.content

    def with_blocks(self, blocks) -> "ConversationTurn":
        return replace(self, content=tuple(blocks))


def has_valid_signature(block: ThinkingBlock, min_length: int) -> bool:
    """A thinking block is signed when its signature reaches the minimum length."""
    return bool(block.signature) and len(block.signature) >= min_length


def is_valid_signature(signature: Optional[str], min_length: int) -> bool:
    return isinstance(signature, str) and len(signature) >= min_length


def turn_has_tool_results(turn: ConversationTurn) -> bool:
    return any(isinstance(block, ToolResultBlock) for block in turn.blocks)


def turn_tool_invocations(turn: ConversationTurn) -> Tuple[ToolInvocationBlock, ...]:
    return tuple(block for block in turn.blocks if isinstance(block, ToolInvocationBlock))
