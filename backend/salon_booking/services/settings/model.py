# backend/salon_booking/services/settings/model.py
"""
Strict internal shape of the reservation settings.

Only the normalizer builds these; stored/wire documents are untrusted dicts
and never travel further than ``normalize``.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional


DEFAULT_SLOT_DURATION = 120
DEFAULT_MAX_CAPACITY_PER_SLOT = 1
DEFAULT_MAX_CAPACITY_PER_DAY = 1
DEFAULT_CANCELLATION_DEADLINE_HOURS = 72
DEFAULT_CANCELLATION_POLICY = (
    "Cancellations are accepted up to 3 days (72 hours) before the appointment. "
    "After that, please contact us by phone."
)


@dataclass(frozen=True)
class BusinessHours:
    """Rule for one weekday (0 = Sunday ... 6 = Saturday)."""
    day_of_week: int
    is_open: bool = False
    open: str = ""
    close: str = ""
    max_capacity_per_day: int = DEFAULT_MAX_CAPACITY_PER_DAY
    allowed_slots: Optional[tuple[str, ...]] = None
    alternate_slot_sets: Optional[tuple[tuple[str, ...], ...]] = None
    allow_multiple_slots: bool = False
    slot_interval: Optional[int] = None

    @property
    def slot_grids(self) -> list[tuple[str, ...]]:
        """
        Candidate slot grids: allowedSlots first, then each alternate set.
        Empty when the day uses the open/close range.
        """
        grids: list[tuple[str, ...]] = []
        if self.allowed_slots:
            grids.append(self.allowed_slots)
        for alternate in self.alternate_slot_sets or ():
            if alternate not in grids:
                grids.append(alternate)
        return grids


@dataclass(frozen=True)
class DateOverride:
    allowed_slots: tuple[str, ...]


DEFAULT_BUSINESS_HOURS: tuple[BusinessHours, ...] = (
    BusinessHours(day_of_week=0, is_open=False),
    BusinessHours(day_of_week=1, is_open=True, open="18:00", close="20:00"),
    BusinessHours(day_of_week=2, is_open=True, open="18:00", close="20:00"),
    BusinessHours(day_of_week=3, is_open=True, open="10:00", close="18:00"),
    BusinessHours(day_of_week=4, is_open=True, open="18:00", close="20:00"),
    BusinessHours(day_of_week=5, is_open=True, open="18:00", close="20:00"),
    BusinessHours(day_of_week=6, is_open=True, open="18:00", close="20:00"),
)


@dataclass(frozen=True)
class ReservationSettings:
    slot_duration: int = DEFAULT_SLOT_DURATION
    max_capacity_per_slot: int = DEFAULT_MAX_CAPACITY_PER_SLOT
    business_hours: tuple[BusinessHours, ...] = DEFAULT_BUSINESS_HOURS
    blocked_dates: tuple[str, ...] = ()
    date_overrides: dict[str, DateOverride] = field(default_factory=dict)
    slot_set_selections: dict[str, int] = field(default_factory=dict)
    cancellation_deadline_hours: int = DEFAULT_CANCELLATION_DEADLINE_HOURS
    cancellation_policy: str = DEFAULT_CANCELLATION_POLICY

    def hours_for(self, day: date) -> BusinessHours:
        """Weekday rule for a calendar date."""
        day_of_week = (day.weekday() + 1) % 7  # Python: Monday = 0
        for hours in self.business_hours:
            if hours.day_of_week == day_of_week:
                return hours
        return BusinessHours(day_of_week=day_of_week, is_open=False)

    def is_blocked(self, day: date) -> bool:
        return day.isoformat() in self.blocked_dates
