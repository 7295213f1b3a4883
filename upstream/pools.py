"""
Object pools for the streaming decoder.

Pools are plain free lists guarded by a lock. Their bound is read from a
MemoryManager at every release so it can be tuned while the relay runs. An
empty pool hands out a fresh object; a full pool drops the returned one.
Neither acquire nor release ever raises.
"""
import logging
import threading
from typing import Callable, Dict, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

LINE_BUFFER_POOL = "line_buffer"
TOOL_CALL_POOL = "tool_call"


class MemoryManager:
    """Holds the current pool bounds; callers may change them at any time."""

    def __init__(self, line_buffer: int = 64, tool_call: int = 256):
        self._lock = threading.Lock()
        self._sizes: Dict[str, int] = {LINE_BUFFER_POOL: line_buffer, TOOL_CALL_POOL: tool_call}
        self._pools: List["ObjectPool"] = []

    def get_pool_sizes(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._sizes)

    def set_pool_sizes(self, **sizes: int) -> None:
        """Update one or more bounds, then trim registered pools that now exceed them."""
        with self._lock:
            for name, size in sizes.items():
                self._sizes[name] = max(int(size), 0)
            pools = list(self._pools)
        for pool in pools:
            pool.shrink()
        logger.debug(f"Pool sizes updated: {self.get_pool_sizes()}")

    def register(self, pool: "ObjectPool") -> None:
        with self._lock:
            self._pools.append(pool)


class ObjectPool(Generic[T]):
    """Bounded free list of reusable objects."""

    def __init__(self, name: str, factory: Callable[[], T], reset: Callable[[T], None], memory: MemoryManager):
        self.name = name
        self._factory = factory
        self._reset = reset
        self._memory = memory
        self._free: List[T] = []
        self._lock = threading.Lock()
        memory.register(self)

    def _capacity(self) -> int:
        return self._memory.get_pool_sizes().get(self.name, 0)

    def acquire(self) -> T:
        with self._lock:
            obj = self._free.pop() if self._free else None
        if obj is None:
            return self._factory()
        return obj

    def release(self, obj: T) -> None:
        self._reset(obj)
        capacity = self._capacity()
        with self._lock:
            if len(self._free) < capacity:
                self._free.append(obj)

    def shrink(self) -> None:
        capacity = self._capacity()
        with self._lock:
            del self._free[capacity:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._free)
