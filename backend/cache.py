"""Simple in-memory cache with a per-entry TTL for upstream API responses."""

import time

DEFAULT_TTL = 300  # 5 minutes


class TTLCache:
    """Key-value store whose entries expire ``ttl`` seconds after being set.

    Expired entries are removed by the ``get`` that finds them; nothing
    sweeps the store in the background and there is no size bound.
    ``clock`` returns seconds and can be swapped out in tests.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock=time.time):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[object, float]] = {}

    def get(self, key: str):
        """Return cached data if it exists and hasn't expired, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value):
        """Store value stamped with the current clock."""
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: str):
        """Remove a cached entry."""
        self._entries.pop(key, None)

    def clear(self):
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
