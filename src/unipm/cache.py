from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple


class MetadataCache:
    """
    In-memory store for registry metadata documents.

    Entries expire `ttl` seconds after they were written and the least
    recently used entry is evicted once `max_size` is exceeded. Nothing is
    persisted. There is no locking: two concurrent misses on the same key
    both fetch, and the later write wins.
    """

    def __init__(
        self,
        max_size: int = 200,
        ttl: float = 60 * 30,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl = ttl
        self.clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (self.clock() + self.ttl, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def configure(self, max_size: int, ttl: float) -> None:
        """Apply new limits; entries already stored keep their original expiry."""
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl = ttl
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


# Shared by every PackageManager in the process unless one is injected.
metadata_cache = MetadataCache()
