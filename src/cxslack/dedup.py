from __future__ import annotations

import time
from collections.abc import Callable, Hashable

# Entries older than this multiple of the TTL are removed on insert.
PRUNE_FACTOR = 10


class DedupWindow:
    """Time-bounded key map used to suppress logically duplicate events.

    `seen()` answers True when the same key was recorded within `ttl` seconds.
    A duplicate does not refresh the stored timestamp, so a steady stream of
    repeats cannot hold a key open forever.
    """

    def __init__(
        self,
        ttl: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("dedup ttl must be positive")
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, float] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def seen(self, key: Hashable) -> bool:
        """Return True for a duplicate, otherwise record `key` and return False."""
        now = self._clock()
        recorded = self._entries.get(key)
        if recorded is not None and now - recorded <= self._ttl:
            return True
        self._prune(now)
        self._entries[key] = now
        return False

    def clear(self) -> None:
        self._entries.clear()

    def _prune(self, now: float) -> None:
        horizon = self._ttl * PRUNE_FACTOR
        expired = [key for key, ts in self._entries.items() if now - ts > horizon]
        for key in expired:
            del self._entries[key]
