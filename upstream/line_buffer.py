"""Incremental line splitter for the upstream SSE stream."""
from typing import List


class LineBuffer:
    """
    Accumulates text chunks and hands back complete lines.

    A line is returned only once its terminating newline has arrived; the
    unterminated tail is kept for the next call, so any chunking of the same
    stream yields the same lines.
    """

    __slots__ = ("_buffer", "_lines")

    def __init__(self) -> None:
        self._buffer = ""
        self._lines: List[str] = []

    def feed(self, chunk: str) -> List[str]:
        """Consume a chunk and return every line it completed (newline and trailing CR removed)."""
        self._lines.clear()
        if not chunk:
            return []

        self._buffer += chunk
        start = 0
        while True:
            end = self._buffer.find("\n", start)
            if end == -1:
                break
            line = self._buffer[start:end]
            # Trim CR from Windows-style endings
            if line.endswith("\r"):
                line = line[:-1]
            self._lines.append(line)
            start = end + 1

        self._buffer = self._buffer[start:] if start < len(self._buffer) else ""
        # Callers may keep the result past the next append, so hand out a copy
        return list(self._lines)

    def flush(self) -> List[str]:
        """Return the unterminated tail, if any, as a final line and reset."""
        tail = self._buffer
        self.clear()
        return [tail.rstrip("\r")] if tail else []

    @property
    def pending(self) -> str:
        return self._buffer

    def clear(self) -> None:
        self._buffer = ""
        self._lines.clear()
