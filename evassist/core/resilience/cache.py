#!/usr/bin/env python3
"""
Resilience Cache

Bounded TTL key/value store that shields the charging-network API from
redundant calls.

Architecture:
    ResilienceCache (public API)
        ├── fresh entries: OrderedDict LRU of CacheEntry(value, expires_at)
        └── last-known values: second bounded LRU, never expires, read only
            when the upstream is unavailable (stale fallback)

All reads and writes happen under a threading.Lock and never suspend, so
concurrent coroutines (or worker threads) see atomic updates.

Author: System Architect
Date: 2026-01-12
"""

import hashlib
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import orjson

from evassist.core.config.constants import CACHE_KEY_PREFIX, Stage
from evassist.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Cached payload with its absolute expiry (clock seconds)."""

    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def make_cache_key(operation: str, args: Mapping[str, Any] | None = None) -> str:
    """
    Derive a deterministic cache key from operation name + normalized args.

    Normalization drops None-valued arguments and sorts keys, so
    {"limit": 5, "user_id": "u"} and {"user_id": "u", "limit": 5, "x": None}
    map to the same key.

    Returns:
        "upstream:{operation}:{sha256 of canonical args}"
    """
    normalized = {k: v for k, v in (args or {}).items() if v is not None}
    canonical = orjson.dumps(normalized, option=orjson.OPT_SORT_KEYS)
    digest = hashlib.sha256(canonical).hexdigest()[:32]
    return f"{CACHE_KEY_PREFIX}:{operation}:{digest}"


class ResilienceCache:
    """
    In-memory LRU cache with lazy TTL expiry.

    STAGE-C: Upstream response cache

    An expired entry is treated as a miss and evicted on the read that finds
    it. When full, the least recently used entry is dropped.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        last_known_max_entries: int | None = None,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._last_known_max = last_known_max_entries or max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._last_known: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()

        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: str) -> Any | None:
        """Return the fresh value for key, or None on miss/expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self.misses += 1
                self.evictions += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store value for ttl seconds and remember it as last-known."""
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
                self.evictions += 1

            self._last_known[key] = value
            self._last_known.move_to_end(key)
            while len(self._last_known) > self._last_known_max:
                self._last_known.popitem(last=False)

    def last_known(self, key: str) -> Any | None:
        """Most recent value ever stored for key, regardless of expiry."""
        with self._lock:
            value = self._last_known.get(key)
        if value is not None:
            log_stage(logger, Stage.UPSTREAM_CACHE, "Serving last-known value", key=key)
        return value

    def delete(self, key: str) -> bool:
        with self._lock:
            self._last_known.pop(key, None)
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._last_known.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self.hits + self.misses
            return {
                "size": len(self._entries),
                "max_entries": self._max_entries,
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "hit_rate": self.hits / total if total else 0.0,
            }
