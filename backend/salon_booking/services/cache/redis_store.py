# backend/salon_booking/services/cache/redis_store.py
"""
Distributed cache tier over redis.asyncio.

Key format:  {prefix}:{key}
Tag index:   {prefix}:tag:{tag} → SET of full member keys,
             EXPIRE = longest TTL among its members, so stale tag sets
             disappear on their own.

Values are opaque bytes (already encoded by the cache layer).
Every method lets redis errors propagate; the layer decides how to degrade.
"""

from typing import Iterable, Optional

from redis.asyncio import Redis


class RedisCacheStore:
    """Redis storage wrapper for cache records and their tag index."""

    TAG_SEGMENT = "tag"

    def __init__(self, redis: Redis, prefix: str = "salon"):
        self.redis = redis
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}:{self.TAG_SEGMENT}:{tag}"

    # ── Read ─────────────────────────────────────────────────────────────

    async def get(self, key: str) -> Optional[bytes]:
        return await self.redis.get(self._key(key))

    # ── Write ────────────────────────────────────────────────────────────

    async def set(self, key: str, data: bytes, ttl: int, tags: Iterable[str] = ()) -> None:
        full_key = self._key(key)
        tags = list(tags)

        # Current TTLs of the tag sets, so a shorter member never shortens them
        tag_ttls: list[int] = []
        if tags:
            pipe = self.redis.pipeline()
            for tag in tags:
                pipe.ttl(self._tag_key(tag))
            tag_ttls = await pipe.execute()

        pipe = self.redis.pipeline()
        pipe.set(full_key, data, ex=ttl)
        for tag, current_ttl in zip(tags, tag_ttls):
            tag_key = self._tag_key(tag)
            pipe.sadd(tag_key, full_key)
            pipe.expire(tag_key, max(ttl, int(current_ttl or 0)))
        await pipe.execute()

    # ── Delete ───────────────────────────────────────────────────────────

    async def delete(self, keys: Iterable[str]) -> int:
        full_keys = [self._key(key) for key in keys]
        if not full_keys:
            return 0
        return await self.redis.delete(*full_keys)

    async def delete_matching(self, pattern: str) -> int:
        """Delete keys matching a glob pattern relative to the prefix."""
        keys = await self.redis.keys(self._key(pattern))
        if not keys:
            return 0
        return await self.redis.delete(*keys)

    async def delete_tag(self, tag: str) -> int:
        tag_key = self._tag_key(tag)
        members = await self.redis.smembers(tag_key)

        pipe = self.redis.pipeline()
        if members:
            pipe.delete(*members)
        pipe.delete(tag_key)
        results = await pipe.execute()
        return results[0] if members else 0

    async def ping(self) -> bool:
        return bool(await self.redis.ping())
