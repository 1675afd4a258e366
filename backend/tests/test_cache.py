# backend/tests/test_cache.py

import asyncio
import threading
import warnings
import zlib

import pytest
from redis.asyncio import Redis

from salon_booking.services.cache import CacheLayer, MemoryStore, memoize


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def unreachable_redis() -> Redis:
    # Nothing listens on port 1: every command fails with a ConnectionError
    return Redis(host="127.0.0.1", port=1, socket_connect_timeout=0.2, socket_timeout=0.2)


# ── Memory tier ──────────────────────────────────────────────────────────


def test_memory_store_evicts_in_insertion_order():
    store = MemoryStore(capacity=2)
    store.set("a", "1", ttl=60)
    store.set("b", "2", ttl=60)
    store.get("a")
    store.set("c", "3", ttl=60)

    assert store.get("a") is None
    assert store.get("b") == "2"
    assert store.get("c") == "3"


def test_memory_store_expires_entries():
    clock = FakeClock()
    store = MemoryStore(capacity=10, clock=clock)
    store.set("k", "v", ttl=5)

    clock.advance(4)
    assert store.get("k") == "v"
    clock.advance(2)
    assert store.get("k") is None


def test_memory_store_purge_and_tags():
    clock = FakeClock()
    store = MemoryStore(capacity=10, clock=clock)
    store.set("short", "1", ttl=1, tags=["t"])
    store.set("long", "2", ttl=100, tags=["t"])
    store.set("other", "3", ttl=100, tags=["u"])

    clock.advance(2)
    assert store.purge_expired() == 1
    assert len(store) == 2

    assert store.delete_tag("t") == 1
    assert store.get("long") is None
    assert store.get("other") == "3"


def test_memory_store_glob_delete():
    store = MemoryStore(capacity=10)
    store.set("slots:day:2030-01-07", "x", ttl=60)
    store.set("slots:day:2030-01-08", "y", ttl=60)
    store.set("settings:normalized", "z", ttl=60)

    assert store.delete_matching("slots:day:*") == 2
    assert store.get("settings:normalized") == "z"


def test_memory_store_is_safe_under_threads():
    store = MemoryStore(capacity=50)

    def worker(n):
        for i in range(500):
            store.set(f"{n}:{i}", str(i), ttl=60, tags=[f"t{n}"])
            store.get(f"{n}:{i - 1}")
            if i % 50 == 0:
                store.delete_tag(f"t{n}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) <= 50


# ── Layer: memory only ───────────────────────────────────────────────────


async def test_memory_only_set_get_delete():
    cache = CacheLayer()
    await cache.set("k", {"a": [1, 2]}, ttl=60)
    assert await cache.get("k") == {"a": [1, 2]}

    await cache.delete("k")
    assert await cache.get("k") is None


async def test_get_returns_a_fresh_copy():
    cache = CacheLayer()
    await cache.set("k", {"a": 1}, ttl=60)
    value = await cache.get("k")
    value["a"] = 2
    assert await cache.get("k") == {"a": 1}


async def test_sweeper_purges_expired_entries():
    clock = FakeClock()
    cache = CacheLayer(clock=clock)
    await cache.set("k", 1, ttl=1)
    clock.advance(5)

    cache.start_sweeper(0.01)
    await asyncio.sleep(0.05)
    await cache.stop()

    assert len(cache.memory) == 0


# ── Layer: distributed tier ──────────────────────────────────────────────


async def test_value_is_visible_to_another_process(fake_redis):
    writer = CacheLayer(redis=fake_redis, prefix="t")
    reader = CacheLayer(redis=fake_redis, prefix="t")

    await writer.set("greeting", {"text": "hello"}, ttl=60)
    assert await reader.get("greeting") == {"text": "hello"}
    assert await fake_redis.ttl("t:greeting") > 0


async def test_set_uses_no_deprecated_redis_commands(fake_redis):
    cache = CacheLayer(redis=fake_redis, prefix="t")

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        await cache.set("slots:day:2030-01-07", [1], ttl=90, tags=["slots"])

    assert [w for w in caught if issubclass(w.category, DeprecationWarning)] == []
    assert 0 < await fake_redis.ttl("t:slots:day:2030-01-07") <= 90


async def test_fresh_read_skips_the_memory_copy(fake_redis):
    writer = CacheLayer(redis=fake_redis, prefix="t")
    reader = CacheLayer(redis=fake_redis, prefix="t")

    await writer.set("slots:gen:2030-01-07", "a", ttl=60)
    assert await reader.get("slots:gen:2030-01-07") == "a"

    await writer.set("slots:gen:2030-01-07", "b", ttl=60)
    # the plain read is served from the reader's memory tier
    assert await reader.get("slots:gen:2030-01-07") == "a"
    assert await reader.get("slots:gen:2030-01-07", fresh=True) == "b"


async def test_large_values_are_compressed(fake_redis):
    cache = CacheLayer(redis=fake_redis, prefix="t", compress_threshold=100)
    big = {"items": ["x" * 50] * 50}
    small = {"items": ["x"]}

    await cache.set("big", big, ttl=60)
    await cache.set("small", small, ttl=60)
    await cache.set("forced", small, ttl=60, compress=True)

    assert (await fake_redis.get("t:big")).startswith(b"z:")
    assert (await fake_redis.get("t:small")).startswith(b"r:")
    assert (await fake_redis.get("t:forced")).startswith(b"z:")

    other = CacheLayer(redis=fake_redis, prefix="t")
    assert await other.get("big") == big
    assert await other.get("forced") == small


async def test_corrupt_compressed_record_reads_as_miss(fake_redis):
    cache = CacheLayer(redis=fake_redis, prefix="t")
    await fake_redis.set("t:broken", b"z:" + b"definitely not zlib")
    await fake_redis.set("t:unknown", b"??")
    await fake_redis.set("t:not-json", b"z:" + zlib.compress(b"{nope"))

    assert await cache.get("broken") is None
    assert await cache.get("unknown") is None
    assert await cache.get("not-json") is None


async def test_tag_invalidation_across_processes(fake_redis):
    a = CacheLayer(redis=fake_redis, prefix="t")
    b = CacheLayer(redis=fake_redis, prefix="t")

    await a.set("slots:day:2030-01-07", [1], ttl=60, tags=["slots", "slots:2030-01-07"])
    await a.set("slots:day:2030-01-08", [2], ttl=300, tags=["slots", "slots:2030-01-08"])
    await a.set("settings:normalized", {"x": 1}, ttl=60, tags=["settings"])

    # b fills its memory tier from redis, tags included
    assert await b.get("slots:day:2030-01-07") == [1]

    # the tag set lives as long as its longest member
    assert await fake_redis.ttl("t:tag:slots") > 60

    await b.invalidate_by_tag("slots")
    assert await b.get("slots:day:2030-01-07") is None
    assert await fake_redis.get("t:slots:day:2030-01-08") is None
    assert await fake_redis.exists("t:tag:slots") == 0
    assert await b.get("settings:normalized") == {"x": 1}


async def test_glob_invalidation(fake_redis):
    cache = CacheLayer(redis=fake_redis, prefix="t")
    await cache.set("slots:day:2030-01-07", 1, ttl=60)
    await cache.set("slots:day:2030-01-08", 2, ttl=60)
    await cache.set("settings:normalized", 3, ttl=60)

    await cache.invalidate("slots:day:*")

    assert await fake_redis.get("t:slots:day:2030-01-07") is None
    assert await cache.get("slots:day:2030-01-08") is None
    assert await cache.get("settings:normalized") == 3


# ── Layer: fallback ──────────────────────────────────────────────────────


async def test_unreachable_redis_falls_back_to_memory(caplog):
    client = unreachable_redis()
    cache = CacheLayer(redis=client, prefix="t", retry_interval=0)
    try:
        with caplog.at_level("WARNING", logger="salon_booking.services.cache.layer"):
            await cache.set("k", {"v": 1}, ttl=60)
            assert await cache.get("k") == {"v": 1}
            await cache.set("k2", 2, ttl=60, tags=["x"])
            await cache.invalidate_by_tag("x")
            assert await cache.get("k2") is None

        assert not cache.distributed_available
        fallback_warnings = [r for r in caplog.records if "memory-only" in r.getMessage()]
        assert len(fallback_warnings) == 1
    finally:
        await client.aclose()


async def test_recovery_replays_invalidations(fake_redis):
    clock = FakeClock()
    cache = CacheLayer(redis=fake_redis, prefix="t", retry_interval=10, clock=clock)
    await cache.set("slots:day:2030-01-07", [1], ttl=300, tags=["slots"])

    # Simulate an outage noticed by the layer
    cache._degrade(ConnectionError("down"))
    await cache.invalidate_by_tag("slots")
    assert await fake_redis.get("t:slots:day:2030-01-07") is not None

    clock.advance(11)
    assert await cache.get("slots:day:2030-01-07") is None
    assert cache.distributed_available
    assert await fake_redis.get("t:slots:day:2030-01-07") is None


# ── memoize ──────────────────────────────────────────────────────────────


async def test_memoize_calls_through_once_and_respects_invalidation():
    cache = CacheLayer()
    calls = []

    async def load(day):
        calls.append(day)
        return {"day": day}

    cached = memoize(
        load,
        cache,
        key_fn=lambda day: f"slots:day:{day}",
        ttl=60,
        tags_fn=lambda day: ["slots", f"slots:{day}"],
    )

    assert await cached("2030-01-07") == {"day": "2030-01-07"}
    assert await cached("2030-01-07") == {"day": "2030-01-07"}
    assert calls == ["2030-01-07"]

    await cache.invalidate_by_tag("slots:2030-01-07")
    await cached("2030-01-07")
    assert calls == ["2030-01-07", "2030-01-07"]


async def test_memoize_skips_the_store_when_invalidated_mid_load():
    cache = CacheLayer()
    calls = []

    async def load(day):
        calls.append(day)
        if len(calls) == 1:
            # a booking commits while the first load is running
            await cache.set(f"slots:gen:{day}", f"bump-{len(calls)}", ttl=60)
        return {"day": day, "call": len(calls)}

    cached = memoize(
        load,
        cache,
        key_fn=lambda day: f"slots:day:{day}",
        ttl=60,
        generation_fn=lambda day: [f"slots:gen:{day}"],
    )

    assert await cached("2030-01-07") == {"day": "2030-01-07", "call": 1}
    assert await cache.get("slots:day:2030-01-07") is None

    assert await cached("2030-01-07") == {"day": "2030-01-07", "call": 2}
    assert await cached("2030-01-07") == {"day": "2030-01-07", "call": 2}
    assert len(calls) == 2


async def test_memoize_does_not_store_none():
    cache = CacheLayer()
    calls = []

    async def load():
        calls.append(1)
        return None

    cached = memoize(load, cache, key_fn=lambda: "nothing")
    await cached()
    await cached()
    assert len(calls) == 2


@pytest.mark.parametrize("capacity", [0, -1])
def test_memory_store_rejects_bad_capacity(capacity):
    with pytest.raises(ValueError):
        MemoryStore(capacity=capacity)
