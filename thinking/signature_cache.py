"""
Bounded cache of thought signatures keyed by tool invocation id.

Signatures are captured when a signed functionCall streams back from the
upstream and looked up on the next request to re-sign thinking blocks that
clients stripped the signature from. Losing an entry is harmless: the pipeline
prunes the unsigned block instead.
"""
import logging
import threading
import time
from collections import OrderedDict
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class SignatureCache:
    """Thread-safe, insertion-ordered signature store with size and age bounds."""

    def __init__(self, max_entries: int = 1000, ttl_seconds: Optional[float] = 3600):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._data: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, key: str, signature: str) -> None:
        """Store or overwrite the signature for a tool invocation id."""
        if not key or not isinstance(signature, str) or not signature:
            return
        with self._lock:
            # Re-insert so an overwrite counts as the newest entry
            self._data.pop(key, None)
            self._data[key] = (signature, time.monotonic())
            self._evict_locked()

    def get(self, key: str) -> Optional[str]:
        """Return the cached signature, or None when absent or expired."""
        if not key:
            return None
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            signature, stored_at = entry
            if self._is_expired(stored_at, time.monotonic()):
                del self._data[key]
                return None
            return signature

    def evict_if_over_capacity(self) -> int:
        """Drop expired entries, then the oldest ones beyond max_entries. Returns removed count."""
        with self._lock:
            return self._evict_locked()

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def _is_expired(self, stored_at: float, now: float) -> bool:
        return self.ttl_seconds is not None and self.ttl_seconds > 0 and now - stored_at > self.ttl_seconds

    def _evict_locked(self) -> int:
        removed = 0
        now = time.monotonic()
        # Insertion order is age order, so expired entries sit at the front
        while self._data:
            oldest_key = next(iter(self._data))
            if not self._is_expired(self._data[oldest_key][1], now):
                break
            del self._data[oldest_key]
            removed += 1
        while len(self._data) > max(self.max_entries, 0):
            self._data.popitem(last=False)
            removed += 1
        if removed:
            logger.debug(f"Evicted {removed} signature cache entries ({len(self._data)} remain)")
        return removed
