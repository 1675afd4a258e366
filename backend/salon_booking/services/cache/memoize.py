# backend/salon_booking/services/cache/memoize.py
"""
Explicit memoization adapter over CacheLayer.

    get_day = memoize(
        load_day, cache,
        key_fn=lambda day: f"slots:day:{day}",
        ttl=300,
        tags_fn=lambda day: ["slots", f"slots:{day}"],
        generation_fn=lambda day: ["slots:gen", f"slots:gen:{day}"],
    )

None results are never stored. With generation_fn, a result is stored only
when none of the generation keys changed while it was being computed;
invalidators bump those keys, so a load that raced an invalidation is
returned to its caller but never cached.
"""

from typing import Any, Awaitable, Callable, Iterable, Optional

from .layer import CacheLayer


def memoize(
    fn: Callable[..., Awaitable[Any]],
    cache: CacheLayer,
    key_fn: Callable[..., str],
    ttl: Optional[int] = None,
    tags_fn: Optional[Callable[..., Iterable[str]]] = None,
    encode: Optional[Callable[[Any], Any]] = None,
    decode: Optional[Callable[[Any], Any]] = None,
    compress: Optional[bool] = None,
    generation_fn: Optional[Callable[..., Iterable[str]]] = None,
) -> Callable[..., Awaitable[Any]]:
    """
    Wrap an async function so its results go through ``cache``.

    Args:
        fn: Async function to memoize
        cache: Cache layer instance
        key_fn: Builds the cache key from fn's arguments
        ttl: Record TTL (cache default when None)
        tags_fn: Builds invalidation tags from fn's arguments
        encode: Result → JSON-compatible value
        decode: Cached JSON value → result
        generation_fn: Builds the generation keys guarding the store
    """

    async def generations(keys: list[str]) -> list[Any]:
        return [await cache.get(key, fresh=True) for key in keys]

    async def wrapper(*args, **kwargs):
        key = key_fn(*args, **kwargs)

        cached = await cache.get(key)
        if cached is not None:
            return decode(cached) if decode else cached

        generation_keys = list(generation_fn(*args, **kwargs)) if generation_fn else []
        before = await generations(generation_keys)

        result = await fn(*args, **kwargs)
        if result is None:
            return result
        if generation_keys and await generations(generation_keys) != before:
            return result

        await cache.set(
            key,
            encode(result) if encode else result,
            ttl=ttl,
            compress=compress,
            tags=tags_fn(*args, **kwargs) if tags_fn else (),
        )
        return result

    wrapper.__wrapped__ = fn
    return wrapper
