"""Events produced by the upstream stream decoder."""
from dataclasses import dataclass
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class ReasoningDelta:
    text: str
    signature: Optional[str] = None


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str
    signature: Optional[str] = None


@dataclass(frozen=True)
class ToolCallBatch:
    invocations: Tuple[ToolCall, ...]


@dataclass(frozen=True)
class UsageSummary:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


StreamEvent = Union[ReasoningDelta, TextDelta, ToolCallBatch, UsageSummary]


class ToolCallWork:
    """Mutable, pooled accumulator for one function call; snapshotted into a ToolCall on emission."""

    __slots__ = ("id", "name", "arguments", "signature")

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.id = ""
        self.name = ""
        self.arguments = ""
        self.signature: Optional[str] = None

    def snapshot(self) -> ToolCall:
        return ToolCall(id=self.id, name=self.name, arguments=self.arguments, signature=self.signature)
