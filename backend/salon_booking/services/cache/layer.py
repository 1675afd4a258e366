# backend/salon_booking/services/cache/layer.py
"""
Two-tier cache: in-process MemoryStore in front of an optional redis tier.

Record format (distributed tier):
  b"r:" + JSON envelope            raw
  b"z:" + zlib(JSON envelope)      compressed
JSON envelope: {"v": value, "t": [tags]}; tags travel with the value so a
memory copy filled from redis still answers invalidate_by_tag.

Failure policy: the cache fails open. Any redis/connection error switches
the layer to memory-only (logged once). The distributed tier is retried
after retry_interval seconds; invalidations issued while it was down are
replayed first so it never serves data this process already invalidated.
"""

import asyncio
import json
import logging
import math
import time
import zlib
from typing import Any, Callable, Iterable, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .memory import MemoryStore
from .redis_store import RedisCacheStore

logger = logging.getLogger(__name__)

RAW_MARKER = b"r:"
COMPRESSED_MARKER = b"z:"

# Pending invalidations kept while the distributed tier is down
MAX_PENDING_INVALIDATIONS = 256

_DISTRIBUTED_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class CacheLayer:
    """
    Explicit cache service, constructed once and passed to collaborators.

    Args:
        redis: redis.asyncio client, or None for memory-only operation
        prefix: Namespace of every distributed key
        memory_capacity: Entries kept in process
        memory_ttl: Upper bound on in-process freshness while redis is healthy
        default_ttl: TTL when set() gets none
        compress_threshold: Encoded size (bytes) above which records are compressed
        retry_interval: Seconds before a degraded layer retries redis (0 = never)
    """

    def __init__(
        self,
        redis: Optional[Redis] = None,
        prefix: str = "salon",
        memory_capacity: int = 1024,
        memory_ttl: int = 30,
        default_ttl: int = 300,
        compress_threshold: int = 1024,
        retry_interval: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.memory = MemoryStore(memory_capacity, clock=clock)
        self.remote = RedisCacheStore(redis, prefix) if redis is not None else None
        self.memory_ttl = memory_ttl
        self.default_ttl = default_ttl
        self.compress_threshold = compress_threshold
        self.retry_interval = retry_interval

        self._clock = clock
        self._degraded = False
        self._retry_at = 0.0
        self._pending: list[tuple[str, str]] = []
        self._pending_overflow = False
        self._sweeper: Optional[asyncio.Task] = None

    # ── Public API ───────────────────────────────────────────────────────

    async def get(self, key: str, fresh: bool = False) -> Optional[Any]:
        """``fresh`` skips the memory copy while the distributed tier is healthy."""
        if not fresh or self.remote is None or self._degraded:
            payload = self.memory.get(key)
            if payload is not None:
                return _unwrap(payload)[0]

        remote = await self._remote()
        if remote is None:
            return None

        try:
            data = await remote.get(key)
        except _DISTRIBUTED_ERRORS as e:
            self._degrade(e)
            return None
        if data is None:
            return None

        payload = self._decode(key, data)
        if payload is None:
            return None

        try:
            value, tags = _unwrap(payload)
        except (ValueError, AttributeError) as e:
            logger.warning(f"Cache record {key} is not a valid envelope: {e}")
            return None

        self.memory.set(key, payload, self.memory_ttl, tags)
        return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        compress: Optional[bool] = None,
        tags: Iterable[str] = (),
    ) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        tags = tuple(tags)
        payload = json.dumps({"v": value, "t": list(tags)}, separators=(",", ":"))

        remote = await self._remote()
        memory_ttl = ttl if remote is None else min(ttl, self.memory_ttl)
        self.memory.set(key, payload, memory_ttl, tags)

        if remote is None or ttl <= 0:
            return

        try:
            await remote.set(key, self._encode(payload, compress), ttl, tags)
        except _DISTRIBUTED_ERRORS as e:
            self._degrade(e)

    async def delete(self, *keys: str) -> int:
        deleted = self.memory.delete(keys)
        for key in keys:
            deleted += await self._remote_invalidate("key", key)
        return deleted

    async def invalidate(self, pattern: str) -> int:
        """Delete every key matching a glob pattern."""
        deleted = self.memory.delete_matching(pattern)
        deleted += await self._remote_invalidate("pattern", pattern)
        logger.debug(f"Cache invalidate {pattern}: {deleted} keys")
        return deleted

    async def invalidate_by_tag(self, tag: str) -> int:
        deleted = self.memory.delete_tag(tag)
        deleted += await self._remote_invalidate("tag", tag)
        logger.debug(f"Cache invalidate tag {tag}: {deleted} keys")
        return deleted

    def purge_expired(self) -> int:
        return self.memory.purge_expired()

    @property
    def distributed_available(self) -> bool:
        return self.remote is not None and not self._degraded

    def status(self) -> dict:
        if self.remote is None:
            tier = "memory"
        elif self._degraded:
            tier = "memory (distributed unavailable)"
        else:
            tier = "distributed"
        return {"tier": tier, "memory_entries": len(self.memory)}

    # ── Background sweep ─────────────────────────────────────────────────

    def start_sweeper(self, interval: float) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(interval))

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            purged = self.purge_expired()
            if purged:
                logger.debug(f"Cache sweep: purged {purged} expired entries")

    # ── Distributed tier state ───────────────────────────────────────────

    async def _remote(self) -> Optional[RedisCacheStore]:
        """The distributed tier when usable, replaying pending invalidations on recovery."""
        if self.remote is None:
            return None
        if not self._degraded:
            return self.remote
        if self.retry_interval <= 0 or self._clock() < self._retry_at:
            return None

        try:
            await self._replay_pending()
        except _DISTRIBUTED_ERRORS:
            self._retry_at = self._clock() + self.retry_interval
            return None

        self._degraded = False
        logger.info("Distributed cache reachable again, leaving memory-only mode")
        return self.remote

    def _degrade(self, exc: BaseException) -> None:
        if not self._degraded:
            logger.warning(f"Distributed cache unavailable, falling back to memory-only: {exc!r}")
        self._degraded = True
        self._retry_at = (
            self._clock() + self.retry_interval if self.retry_interval > 0 else math.inf
        )

    async def _remote_invalidate(self, kind: str, target: str) -> int:
        remote = await self._remote()
        if remote is None:
            if self.remote is not None:
                self._remember(kind, target)
            return 0

        try:
            return await _apply_invalidation(remote, kind, target)
        except _DISTRIBUTED_ERRORS as e:
            self._degrade(e)
            self._remember(kind, target)
            return 0

    def _remember(self, kind: str, target: str) -> None:
        if len(self._pending) >= MAX_PENDING_INVALIDATIONS:
            self._pending_overflow = True
            self._pending.clear()
        if not self._pending_overflow and (kind, target) not in self._pending:
            self._pending.append((kind, target))

    async def _replay_pending(self) -> None:
        if self._pending_overflow:
            await self.remote.delete_matching("*")
        else:
            for kind, target in list(self._pending):
                await _apply_invalidation(self.remote, kind, target)
        self._pending.clear()
        self._pending_overflow = False

    # ── Encoding ─────────────────────────────────────────────────────────

    def _encode(self, payload: str, compress: Optional[bool]) -> bytes:
        data = payload.encode()
        if compress is None:
            compress = len(data) > self.compress_threshold
        if compress:
            return COMPRESSED_MARKER + zlib.compress(data)
        return RAW_MARKER + data

    def _decode(self, key: str, data: bytes) -> Optional[str]:
        marker, body = data[:2], data[2:]
        try:
            if marker == COMPRESSED_MARKER:
                return zlib.decompress(body).decode()
            if marker == RAW_MARKER:
                return body.decode()
        except (zlib.error, UnicodeDecodeError) as e:
            logger.warning(f"Cache record {key} could not be decoded: {e}")
            return None

        logger.warning(f"Cache record {key} has an unknown format")
        return None


async def _apply_invalidation(remote: RedisCacheStore, kind: str, target: str) -> int:
    if kind == "key":
        return await remote.delete([target])
    if kind == "pattern":
        return await remote.delete_matching(target)
    return await remote.delete_tag(target)


def _unwrap(payload: str) -> tuple[Any, tuple[str, ...]]:
    envelope = json.loads(payload)
    return envelope.get("v"), tuple(envelope.get("t") or ())
