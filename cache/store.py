"""
cache/store.py -- In-memory TTL + LRU cache for authorization decisions.

AuthPolicy keeps two of these, one for read decisions and one for write
decisions. Each entry maps (normalized crate name, bearer token) to the
boolean outcome of a rule evaluation.

Expiry is eager: set() schedules a timer on the running event loop that
removes the entry `ttl` seconds after insertion. The timer is detached -- it
is not awaited by the request that created it and nothing cancels it. A
fresh decision for the same key replaces the entry (never mutates it), and
the superseded entry's timer is a no-op against the replacement.

Capacity pressure evicts the least recently used entry.

Usage:
    cache = DecisionCache()              # 1024 entries, 60 s
    decision = cache.get(key)            # True / False / None on miss
    cache.set(key, True)                 # must be called from a coroutine
"""

from __future__ import annotations

import asyncio
import itertools
from collections import OrderedDict
from typing import NamedTuple, Optional

_DEFAULT_CAPACITY = 1024
_DEFAULT_TTL = 60.0  # seconds


class CacheKey(NamedTuple):
    crate_name: str
    token: str


class DecisionCache:
    def __init__(self, capacity: int = _DEFAULT_CAPACITY, ttl: float = _DEFAULT_TTL) -> None:
        self.capacity = capacity
        self.ttl = ttl
        # key -> (decision, generation). Generation ties a timer to the
        # exact insertion that scheduled it.
        self._entries: OrderedDict[CacheKey, tuple[bool, int]] = OrderedDict()
        self._generation = itertools.count()

    def get(self, key: CacheKey) -> Optional[bool]:
        """Return the cached decision, or None on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return entry[0]

    def set(self, key: CacheKey, decision: bool) -> None:
        """Store a decision and schedule its removal after `ttl` seconds."""
        generation = next(self._generation)
        self._entries[key] = (decision, generation)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)
        asyncio.get_running_loop().call_later(self.ttl, self._expire, key, generation)

    def _expire(self, key: CacheKey, generation: int) -> None:
        entry = self._entries.get(key)
        if entry is not None and entry[1] == generation:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
