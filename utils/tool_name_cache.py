"""
Tool name sanitising and reverse lookup.

The upstream only accepts `[a-zA-Z0-9_-]` tool names of bounded length. Names
are sanitised on the way in and the original is remembered per
(session, model, sanitised name) so streamed function calls can be reported
under the name the client declared.
"""
import re
import threading
import time
from collections import OrderedDict
from typing import Optional, Tuple

_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
MAX_TOOL_NAME_LENGTH = 64


def sanitize_tool_name(name) -> str:
    if not name or not isinstance(name, str):
        return "tool"
    cleaned = _INVALID_CHARS.sub("_", name).strip("_")
    if not cleaned:
        cleaned = "tool"
    return cleaned[:MAX_TOOL_NAME_LENGTH]


class ToolNameCache:
    """Bounded (session, model, sanitised) -> original name map."""

    def __init__(self, max_entries: int = 2048, ttl_seconds: Optional[float] = 3600):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._data: "OrderedDict[Tuple[str, str, str], Tuple[str, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def remember(self, session_id: str, model: str, original: str) -> str:
        """Sanitise `original`, record the mapping when it changed, and return the sanitised name."""
        sanitized = sanitize_tool_name(original)
        if sanitized != original and session_id and model:
            key = (session_id, model, sanitized)
            with self._lock:
                self._data.pop(key, None)
                self._data[key] = (original, time.monotonic())
                while len(self._data) > self.max_entries:
                    self._data.popitem(last=False)
        return sanitized

    def get_original(self, session_id: str, model: str, sanitized: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get((session_id, model, sanitized))
            if entry is None:
                return None
            original, stored_at = entry
            if self.ttl_seconds and time.monotonic() - stored_at > self.ttl_seconds:
                del self._data[(session_id, model, sanitized)]
                return None
            return original

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
