# backend/salon_booking/services/slots/config.py
"""
Engine configuration and "HH:MM" time helpers shared by the slots code.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from ...config import settings


TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for the availability/booking engine.

    Attributes:
        timezone: Salon local timezone ("past" checks, birthdays)
        birthday_bonus_points: Credit granted once per calendar year
        points_earn_rate: Share of finalPrice credited on completion
        slots_cache_ttl: TTL of memoized day slots
        settings_cache_ttl: TTL of memoized normalized settings
        money_tolerance: Allowed rounding error in price identities
    """
    timezone: str = "Asia/Tokyo"
    birthday_bonus_points: int = 500
    points_earn_rate: float = 0.05
    slots_cache_ttl: int = 300
    settings_cache_ttl: int = 3600
    money_tolerance: float = 0.5

    def __post_init__(self):
        """Validate configuration."""
        if self.birthday_bonus_points < 0:
            raise ValueError(f"birthday_bonus_points must be >= 0, got {self.birthday_bonus_points}")
        if not 0 <= self.points_earn_rate <= 1:
            raise ValueError(f"points_earn_rate must be within [0, 1], got {self.points_earn_rate}")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def now(self) -> datetime:
        """Current salon-local time (aware)."""
        return datetime.now(self.tz)


@lru_cache
def get_engine_config() -> EngineConfig:
    """Engine configuration built from the environment (singleton)."""
    return EngineConfig(
        timezone=settings.timezone,
        birthday_bonus_points=settings.birthday_bonus_points,
        points_earn_rate=settings.points_earn_rate,
        slots_cache_ttl=settings.slots_cache_ttl,
        settings_cache_ttl=settings.settings_cache_ttl,
    )


# ── Time helpers ─────────────────────────────────────────────────────────


def is_valid_time(value) -> bool:
    return isinstance(value, str) and TIME_RE.match(value) is not None


def time_str_to_minutes(value: str) -> Optional[int]:
    """"HH:MM" → minutes since midnight, None when malformed."""
    if not is_valid_time(value):
        return None
    hour, minute = value.split(":")
    return int(hour) * 60 + int(minute)


def minutes_to_time_str(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value) -> Optional[date]:
    """"YYYY-MM-DD" → date, None when malformed or not a calendar date."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value.strip()):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None
