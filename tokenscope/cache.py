"""In-memory response cache with a TTL per entry."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from cachetools import TLRUCache


_LOGGER = logging.getLogger("tokenscope.cache")

DEFAULT_TTL_SECONDS = 120
ANALYTICS_TTL_SECONDS = 1800


def base_data_key(chain: str, address: str) -> str:
    return f"baseTokenData:{chain}:{address}"


def analytics_key(chain: str, address: str) -> str:
    return f"tokenAnalytics:{chain}:{address}"


def _expires_at(_key: str, entry: tuple, now: float) -> float:
    return now + entry[0]


class TokenCache:
    """Best-effort key/value store; last write wins and failed results are never stored."""

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
        enabled: bool = True,
    ) -> None:
        self.default_ttl = default_ttl
        self.enabled = enabled
        self._entries = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=timer)

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        entry = self._entries.get(key)
        if entry is None:
            _LOGGER.info("cache miss key=%s", key)
            return None
        _LOGGER.info("cache hit key=%s", key)
        return entry[1]

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        if value is None or (isinstance(value, (dict, list)) and not value):
            _LOGGER.info("cache skip empty key=%s", key)
            return False
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = (ttl, value)
        _LOGGER.info("cache set key=%s ttl=%s", key, ttl)
        return True

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
