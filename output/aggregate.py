"""Folds a decoded event stream into one response for non-streaming clients."""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from upstream.events import ReasoningDelta, StreamEvent, TextDelta, ToolCall, ToolCallBatch, UsageSummary

logger = logging.getLogger(__name__)


@dataclass
class AggregatedResponse:
    reasoning_parts: List[str] = field(default_factory=list)
    reasoning_signature: Optional[str] = None
    text_parts: List[str] = field(default_factory=list)
    tool_calls: List[ToolCall] = field(default_factory=list)
    usage: UsageSummary = field(default_factory=UsageSummary)
    finish_reason: Optional[str] = None

    @property
    def reasoning(self) -> str:
        return "".join(self.reasoning_parts)

    @property
    def text(self) -> str:
        return "".join(self.text_parts)

    def add(self, event: StreamEvent) -> None:
        if isinstance(event, ReasoningDelta):
            self.reasoning_parts.append(event.text)
            if event.signature:
                self.reasoning_signature = event.signature
        elif isinstance(event, TextDelta):
            self.text_parts.append(event.text)
        elif isinstance(event, ToolCallBatch):
            self.tool_calls.extend(event.invocations)
        elif isinstance(event, UsageSummary):
            self.usage = event


def tool_arguments(tool_call: ToolCall) -> Dict[str, Any]:
    """Decoded arguments object of a tool call."""
    try:
        arguments = json.loads(tool_call.arguments or "{}")
    except ValueError:
        logger.warning(f"Tool call {tool_call.id} carried invalid JSON arguments")
        return {}
    return arguments if isinstance(arguments, dict) else {"value": arguments}
