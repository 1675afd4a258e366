# backend/salon_booking/services/slots/availability.py
"""
Day availability read path.

normalized settings (memoized, tag "settings")
  + active bookings of the date (counted per time)
  → compute_day_slots
  → memoized under slots:day:{date}, tags "slots", "slots:{date}"
    (skipped when an invalidation ran while the day was being computed)

Never used for the commit-time check: the coordinator re-counts inside its
transaction.
"""

from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import SessionFactory, run_transaction
from ...models import Reservations
from ..cache import CacheLayer, memoize
from ..settings.model import ReservationSettings
from ..settings.normalizer import normalize, sanitize_for_write
from ..settings.store import load_raw_settings
from .calculator import DaySlots, compute_day_slots
from .config import EngineConfig, get_engine_config
from .invalidator import (
    SETTINGS_TAG,
    day_slots_generation_keys,
    day_slots_key,
    day_slots_tags,
    settings_generation_keys,
)

SETTINGS_CACHE_KEY = "settings:normalized"


class AvailabilityService:
    """Cached reads of settings and day slots."""

    def __init__(
        self,
        session_factory: Optional[SessionFactory],
        cache: CacheLayer,
        config: EngineConfig | None = None,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.config = config or get_engine_config()

        self.get_settings = memoize(
            self._load_settings,
            cache,
            key_fn=lambda: SETTINGS_CACHE_KEY,
            ttl=self.config.settings_cache_ttl,
            tags_fn=lambda: [SETTINGS_TAG],
            encode=sanitize_for_write,
            decode=normalize,
            generation_fn=settings_generation_keys,
        )
        self._get_day_slots = memoize(
            self._load_day_slots,
            cache,
            key_fn=lambda date_str: day_slots_key(date_str),
            ttl=self.config.slots_cache_ttl,
            tags_fn=lambda date_str: day_slots_tags(date_str),
            encode=lambda day: day.as_dict(),
            decode=DaySlots.from_dict,
            generation_fn=day_slots_generation_keys,
        )

    async def get_day_slots(self, target_date: date) -> DaySlots:
        return await self._get_day_slots(target_date.isoformat())

    # ── Loaders ──────────────────────────────────────────────────────────

    async def _load_settings(self) -> ReservationSettings:
        raw = await run_transaction(self.session_factory, load_raw_settings)
        return normalize(raw)

    async def _load_day_slots(self, date_str: str) -> DaySlots:
        settings = await self.get_settings()

        async def work(session: AsyncSession) -> dict[str, int]:
            return await count_active_by_time(session, date_str)

        counts = await run_transaction(self.session_factory, work)
        return compute_day_slots(
            settings,
            date.fromisoformat(date_str),
            booked_count_by_time=counts,
        )


async def count_active_by_time(session: AsyncSession, date_str: str) -> dict[str, int]:
    """Non-cancelled reservations of a date, per time."""
    result = await session.execute(
        select(Reservations.time, func.count(Reservations.id))
        .where(
            Reservations.date == date_str,
            Reservations.status != "cancelled",
        )
        .group_by(Reservations.time)
    )
    return {time_str: count for time_str, count in result.all()}
