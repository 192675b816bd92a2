"""
Process-local TTL caches.

Entries live in a plain dict and are dropped on read once expired. Nothing is
shared between workers or instances; writers invalidate keys explicitly.
"""

import time
from typing import Any, Hashable

from infrastructure.config.settings import settings


class TTLCache:
    """Dict-backed cache whose entries expire *ttl_seconds* after being set."""

    def __init__(self, ttl_seconds: float, name: str = "cache"):
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (time.monotonic() + self.ttl_seconds, value)

    def delete(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        """Drop every string key starting with *prefix*. Returns the number removed."""
        doomed = [k for k in self._entries if isinstance(k, str) and k.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict:
        return {
            "name": self.name,
            "size": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
        }


template_cache = TTLCache(settings.template_cache_ttl, name="templates")
word_usage_cache = TTLCache(settings.word_usage_cache_ttl, name="word_usage")


def all_cache_stats() -> list[dict]:
    return [template_cache.stats(), word_usage_cache.stats()]
