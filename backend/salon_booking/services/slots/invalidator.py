# backend/salon_booking/services/slots/invalidator.py
"""
Cache invalidation for day slots and settings.

Triggers:
✓ Reservation created / status changed  → that date's slots
✓ Settings mutated                      → settings + every cached date

Every invalidation also bumps a generation key. Memoized loads read the
generation before and after computing and skip the store when it moved.
"""

import logging
from datetime import date
from uuid import uuid4

from ..cache import CacheLayer

logger = logging.getLogger(__name__)

SETTINGS_TAG = "settings"
SLOTS_TAG = "slots"

# Outlives any single load
GENERATION_TTL = 3600


def day_slots_key(date_str: str) -> str:
    return f"slots:day:{date_str}"


def day_slots_tags(date_str: str) -> list[str]:
    return [SLOTS_TAG, f"{SLOTS_TAG}:{date_str}"]


def settings_generation_keys() -> list[str]:
    return [f"{SETTINGS_TAG}:gen"]


def day_slots_generation_keys(date_str: str) -> list[str]:
    return [f"{SLOTS_TAG}:gen", f"{SLOTS_TAG}:gen:{date_str}"]


async def _bump(cache: CacheLayer, key: str) -> None:
    await cache.set(key, uuid4().hex, ttl=GENERATION_TTL)


async def invalidate_day_slots(cache: CacheLayer, target_date: date | str) -> int:
    """
    Invalidate cached slots of one date.

    Returns:
        Number of deleted cache keys
    """
    date_str = target_date if isinstance(target_date, str) else target_date.isoformat()
    await _bump(cache, f"{SLOTS_TAG}:gen:{date_str}")
    deleted = await cache.invalidate_by_tag(f"{SLOTS_TAG}:{date_str}")
    deleted += await cache.delete(day_slots_key(date_str))
    return deleted


async def invalidate_settings_cache(cache: CacheLayer) -> int:
    """Invalidate normalized settings and every date computed from them."""
    await _bump(cache, f"{SETTINGS_TAG}:gen")
    await _bump(cache, f"{SLOTS_TAG}:gen")
    deleted = await cache.invalidate_by_tag(SETTINGS_TAG)
    deleted += await cache.invalidate_by_tag(SLOTS_TAG)
    deleted += await cache.invalidate("slots:day:*")
    logger.info(f"Settings cache invalidated ({deleted} keys)")
    return deleted
