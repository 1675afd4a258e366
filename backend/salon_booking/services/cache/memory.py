# backend/salon_booking/services/cache/memory.py
"""
In-process cache tier.

Bounded OrderedDict, evicted in insertion order once capacity is reached.
Values are stored as the serialized record, so callers always get a fresh
copy and memory/distributed hits decode the same way.

Shared by every request handler of the process → all access under one lock.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Callable, Iterable, Optional


@dataclass
class _Entry:
    payload: str
    expires_at: float
    tags: tuple[str, ...]


class MemoryStore:
    """Thread-safe bounded TTL map with a tag → keys index."""

    def __init__(self, capacity: int = 1024, clock: Callable[[], float] = time.monotonic):
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self.capacity = capacity
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._tags: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                self._drop(key)
                return None
            return entry.payload

    # ── Write ────────────────────────────────────────────────────────────

    def set(self, key: str, payload: str, ttl: float, tags: Iterable[str] = ()) -> None:
        if ttl <= 0:
            self.delete([key])
            return

        tags = tuple(tags)
        with self._lock:
            if key in self._entries:
                self._drop(key)
            self._entries[key] = _Entry(payload, self._clock() + ttl, tags)
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)

            while len(self._entries) > self.capacity:
                oldest = next(iter(self._entries))
                self._drop(oldest)

    # ── Delete ───────────────────────────────────────────────────────────

    def delete(self, keys: Iterable[str]) -> int:
        with self._lock:
            return sum(1 for key in list(keys) if self._drop(key))

    def delete_matching(self, pattern: str) -> int:
        """Delete keys matching a glob pattern (``*``, ``?``, ``[...]``)."""
        with self._lock:
            keys = [key for key in self._entries if fnmatchcase(key, pattern)]
            for key in keys:
                self._drop(key)
            return len(keys)

    def delete_tag(self, tag: str) -> int:
        with self._lock:
            keys = self._tags.pop(tag, set())
            return sum(1 for key in keys if self._drop(key))

    def purge_expired(self) -> int:
        """Drop every entry past its expiry. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                self._drop(key)
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()

    def _drop(self, key: str) -> bool:
        # Caller holds the lock
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry.tags:
            members = self._tags.get(tag)
            if members is not None:
                members.discard(key)
                if not members:
                    del self._tags[tag]
        return True
