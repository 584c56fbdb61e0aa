"""In-memory TTL cache for formatted search results."""

import time
from collections.abc import Callable
from dataclasses import dataclass

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class _Entry:
    value: str
    stored_at: float


class SearchCache:
    """Process-wide cache keyed by ``provider:query``.

    Entries are only checked for expiry on read and are never evicted, so
    the cache grows until the process restarts. Concurrent writers to the
    same key overwrite each other.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def key(provider: str, query: str) -> str:
        return f"{provider}:{query}"

    def get(self, key: str) -> tuple[str | None, bool]:
        entry = self._entries.get(key)
        if entry is None or self._clock() - entry.stored_at >= self.ttl_seconds:
            return None, False
        return entry.value, True

    def set(self, key: str, value: str) -> None:
        self._entries[key] = _Entry(value=value, stored_at=self._clock())
