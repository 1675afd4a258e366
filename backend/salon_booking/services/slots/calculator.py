# backend/salon_booking/services/slots/calculator.py
"""
Day slot calculation.

Pure: (normalized settings, date, bookings of that date) → ordered slots.

Slot source, first match wins:
  1. blockedDates                 → no slots at all
  2. dateOverrides[date]          → override whitelist (even on a closed weekday)
  3. weekday closed               → no slots
  4. weekday allowedSlots /
     alternateSlotSets            → active candidate grid (never merged)
  5. allowMultipleSlots           → open, open+interval, ... while a full slot fits before close
  6. otherwise                    → single slot at open, if a full slot fits

Fully booked times stay in the list with available=False.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping, Optional

from ..settings.model import ReservationSettings
from .config import minutes_to_time_str, time_str_to_minutes


@dataclass(frozen=True)
class TimeSlot:
    time: str
    available: bool

    def as_dict(self) -> dict:
        return {"time": self.time, "available": self.available}


@dataclass(frozen=True)
class DaySlots:
    """
    Slots of one date plus the grid they were taken from.

    Attributes:
        slots: Ordered slots of the active source
        capacity: Bookings allowed per slot on that date
        active_grid: Index into candidate_grids, None when the day is not grid based
        candidate_grids: Every weekday grid (allowedSlots first, then alternates)
    """
    date: str
    slots: list[TimeSlot] = field(default_factory=list)
    capacity: int = 0
    active_grid: Optional[int] = None
    candidate_grids: list[list[str]] = field(default_factory=list)

    def offers(self, time_str: str) -> bool:
        return any(slot.time == time_str for slot in self.slots)

    def as_dict(self) -> dict:
        return {
            "date": self.date,
            "slots": [slot.as_dict() for slot in self.slots],
            "capacity": self.capacity,
            "activeGrid": self.active_grid,
            "candidateGrids": [list(grid) for grid in self.candidate_grids],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DaySlots":
        return cls(
            date=data["date"],
            slots=[TimeSlot(time=s["time"], available=bool(s["available"])) for s in data.get("slots", [])],
            capacity=int(data.get("capacity", 0)),
            active_grid=data.get("activeGrid"),
            candidate_grids=[list(g) for g in data.get("candidateGrids", [])],
        )


def compute_slots(
    settings: ReservationSettings,
    target_date: date,
    booked_times: Iterable[str] = (),
    booked_count_by_time: Optional[Mapping[str, int]] = None,
) -> list[TimeSlot]:
    """Ordered slots for ``target_date``. See ``compute_day_slots``."""
    return compute_day_slots(settings, target_date, booked_times, booked_count_by_time).slots


def compute_day_slots(
    settings: ReservationSettings,
    target_date: date,
    booked_times: Iterable[str] = (),
    booked_count_by_time: Optional[Mapping[str, int]] = None,
) -> DaySlots:
    """
    Calculate the slots of a date.

    Args:
        settings: Normalized settings
        target_date: Calendar date in salon-local time
        booked_times: Times holding at least one active booking
        booked_count_by_time: Active bookings per time. A time present only in
            booked_times counts as one booking.
    """
    date_str = target_date.isoformat()
    hours = settings.hours_for(target_date)
    grids = [list(grid) for grid in hours.slot_grids]

    # Step 1: Blocked date
    if settings.is_blocked(target_date):
        return DaySlots(date=date_str, candidate_grids=grids)

    capacity = slot_capacity(settings, target_date)

    # Step 2: Resolve candidate times
    active_grid = None
    override = settings.date_overrides.get(date_str)

    if override is not None:
        candidates = list(override.allowed_slots)
    elif not hours.is_open:
        return DaySlots(date=date_str, capacity=capacity, candidate_grids=grids)
    elif grids:
        active_grid = active_grid_index(settings, date_str, len(grids))
        candidates = grids[active_grid]
    else:
        candidates = _range_slots(
            hours.open,
            hours.close,
            settings.slot_duration,
            hours.slot_interval if hours.allow_multiple_slots else None,
        )

    if capacity <= 0:
        return DaySlots(
            date=date_str, capacity=capacity, active_grid=active_grid, candidate_grids=grids,
        )

    # Step 3: Availability
    counts = dict(booked_count_by_time or {})
    for time_str in booked_times:
        counts.setdefault(time_str, 1)

    times = sorted(
        {t for t in candidates if time_str_to_minutes(t) is not None},
        key=time_str_to_minutes,
    )
    slots = [
        TimeSlot(time=t, available=counts.get(t, 0) < capacity)
        for t in times
    ]

    return DaySlots(
        date=date_str,
        slots=slots,
        capacity=capacity,
        active_grid=active_grid,
        candidate_grids=grids,
    )


def slot_capacity(settings: ReservationSettings, target_date: date) -> int:
    """Bookings allowed per slot: min(maxCapacityPerSlot, weekday maxCapacityPerDay)."""
    hours = settings.hours_for(target_date)
    return min(settings.max_capacity_per_slot, hours.max_capacity_per_day)


def active_grid_index(settings: ReservationSettings, date_str: str, grid_count: int) -> int:
    """Grid explicitly selected for the date, or 0. Out-of-range selections fall back to 0."""
    selected = settings.slot_set_selections.get(date_str, 0)
    return selected if 0 <= selected < grid_count else 0


# ── Helpers ──────────────────────────────────────────────────────────────


def _range_slots(
    open_str: str,
    close_str: str,
    duration: int,
    interval: Optional[int],
) -> list[str]:
    """Start times between open and close where a full slot still fits."""
    start_min = time_str_to_minutes(open_str)
    end_min = time_str_to_minutes(close_str)
    if start_min is None or end_min is None or duration <= 0:
        return []

    if not interval or interval <= 0:
        return [open_str] if start_min + duration <= end_min else []

    slots = []
    t = start_min
    while t + duration <= end_min:
        slots.append(minutes_to_time_str(t))
        t += interval
    return slots
