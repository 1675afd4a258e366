# backend/salon_booking/services/cache/__init__.py
"""
Cache layer.

Memory tier: bounded in-process map (always populated)
Distributed tier: redis, optional, degrades to memory-only on failure
"""

import logging
from typing import Optional

from redis.asyncio import Redis

from ...config import settings
from .layer import CacheLayer
from .memoize import memoize
from .memory import MemoryStore
from .redis_store import RedisCacheStore

logger = logging.getLogger(__name__)

__all__ = [
    "CacheLayer",
    "MemoryStore",
    "RedisCacheStore",
    "memoize",
    "create_redis_client",
    "create_cache_layer",
]


def create_redis_client() -> Optional[Redis]:
    """redis.asyncio client from settings, or None when redis is not configured."""
    if not settings.redis_url:
        logger.info("REDIS_URL not set, cache runs memory-only")
        return None
    return Redis.from_url(
        settings.redis_url,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
    )


def create_cache_layer(redis: Optional[Redis] = None) -> CacheLayer:
    return CacheLayer(
        redis=redis,
        prefix=settings.cache_prefix,
        memory_capacity=settings.cache_memory_capacity,
        memory_ttl=settings.cache_memory_ttl,
        default_ttl=settings.cache_default_ttl,
        compress_threshold=settings.cache_compress_threshold,
        retry_interval=settings.cache_retry_interval,
    )
