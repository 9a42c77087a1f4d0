"""Thread-safe cache for prompt templates."""

import threading
from collections.abc import Callable


class PromptCache:
    """
    Thread-safe in-memory cache of prompt texts keyed by prompt name.

    No TTL and no eviction: entries live until ``clear()``. Concurrent misses
    on the same name may both run the loader; the last writer wins, which is
    harmless because both read the same file.
    """

    def __init__(self):
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> str | None:
        with self._lock:
            return self._cache.get(name)

    def set(self, name: str, value: str) -> None:
        with self._lock:
            self._cache[name] = value

    def get_or_load(self, name: str, loader: Callable[[str], str]) -> str:
        """
        Return the cached value, running ``loader(name)`` on a miss.

        The loader runs outside the lock so a slow read never blocks hits on
        other names. Loader exceptions propagate and nothing is cached.
        """
        cached = self.get(name)
        if cached is not None:
            return cached
        value = loader(name)
        self.set(name, value)
        return value

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            self._cache.clear()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
