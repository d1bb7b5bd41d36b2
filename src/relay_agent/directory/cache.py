"""Read-through cache for platform directory snapshots."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from relay_agent.obs.tracing import Timer

logger = logging.getLogger(__name__)

V = TypeVar("V")


class DirectoryCache:
    """Process-wide cache of guild/channel/member listings.

    Staleness contract:
    - An entry, once populated, is kept for the lifetime of the cache; nothing
      expires it automatically. Renamed channels or new members are only seen
      after `invalidate(key)` or `clear()`.
    - Misses are not deduplicated. Two requests missing the same key while a
      fetch is in flight both call their fetcher and the later write wins.
    - A fetcher returning `None` signals an upstream failure; it is returned
      but not stored, so the next call retries.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}

    async def get_or_fetch(
        self, key: str, fetcher: Callable[[], Awaitable[V | None]]
    ) -> V | None:
        if key in self._entries:
            return self._entries[key]

        with Timer() as timer:
            value = await fetcher()
        logger.debug("cache fill %s in %.1fms", key, timer.elapsed_ms)
        if value is not None:
            self._entries[key] = value
        return value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
