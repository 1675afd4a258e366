# backend/salon_booking/services/settings/normalizer.py
"""
Settings normalizer.

normalize(raw)            untrusted dict/None → ReservationSettings, never fails
sanitize_for_write(s)     ReservationSettings → exact persisted document
validate(s)               advisory invariant check → ValidationResult

Stored documents use camelCase keys:
    {
      "slotDuration": 120,
      "maxCapacityPerSlot": 1,
      "businessHours": [{"dayOfWeek": 1, "isOpen": true, "open": "18:30", ...}],
      "blockedDates": ["2026-12-31"],
      "dateOverrides": {"2026-12-24": {"allowedSlots": ["10:00", "13:00"]}},
      "slotSetSelections": {"2026-12-02": 1},
      "cancellationDeadlineHours": 72,
      "cancellationPolicy": "..."
    }
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from ...errors import FieldError
from ..slots.config import is_valid_time, parse_date, time_str_to_minutes
from .model import (
    DEFAULT_BUSINESS_HOURS,
    DEFAULT_CANCELLATION_DEADLINE_HOURS,
    DEFAULT_CANCELLATION_POLICY,
    DEFAULT_MAX_CAPACITY_PER_DAY,
    DEFAULT_MAX_CAPACITY_PER_SLOT,
    DEFAULT_SLOT_DURATION,
    BusinessHours,
    DateOverride,
    ReservationSettings,
)


@dataclass
class ValidationResult:
    ok: bool
    errors: list[FieldError] = field(default_factory=list)


def default_settings() -> ReservationSettings:
    return ReservationSettings()


# ── normalize ────────────────────────────────────────────────────────────


def normalize(raw: Optional[Mapping[str, Any]]) -> ReservationSettings:
    """Canonicalize a stored/wire settings document. Missing or broken fields fall back to defaults."""
    if not isinstance(raw, Mapping) or not raw:
        return default_settings()

    policy = raw.get("cancellationPolicy")

    return ReservationSettings(
        slot_duration=_positive_int(raw.get("slotDuration"), DEFAULT_SLOT_DURATION),
        max_capacity_per_slot=_positive_int(
            raw.get("maxCapacityPerSlot"), DEFAULT_MAX_CAPACITY_PER_SLOT
        ),
        business_hours=normalize_business_hours(raw.get("businessHours")),
        blocked_dates=_normalize_dates(raw.get("blockedDates")),
        date_overrides=_normalize_date_overrides(raw.get("dateOverrides")),
        slot_set_selections=_normalize_slot_set_selections(raw.get("slotSetSelections")),
        cancellation_deadline_hours=_positive_int(
            raw.get("cancellationDeadlineHours"), DEFAULT_CANCELLATION_DEADLINE_HOURS
        ),
        cancellation_policy=(
            policy.strip()
            if isinstance(policy, str) and policy.strip()
            else DEFAULT_CANCELLATION_POLICY
        ),
    )


def normalize_business_hours(value: Any) -> tuple[BusinessHours, ...]:
    """Merge raw weekday entries over the default 7-day template, keyed by dayOfWeek."""
    base = {hours.day_of_week: hours for hours in DEFAULT_BUSINESS_HOURS}

    if not isinstance(value, (list, tuple)):
        return tuple(base[day] for day in sorted(base))

    for entry in value:
        if not isinstance(entry, Mapping):
            continue
        day = _to_number(entry.get("dayOfWeek"))
        if day is None or not day.is_integer() or not 0 <= day <= 6:
            continue
        current = base[int(day)]

        allow_multiple = _to_bool(entry.get("allowMultipleSlots"))
        slot_interval = None
        if allow_multiple:
            slot_interval = _positive_int(entry.get("slotInterval"), current.slot_interval)

        base[int(day)] = BusinessHours(
            day_of_week=int(day),
            is_open=(
                _to_bool(entry["isOpen"])
                if entry.get("isOpen") is not None
                else current.is_open
            ),
            open=_time_field(entry.get("open"), current.open),
            close=_time_field(entry.get("close"), current.close),
            max_capacity_per_day=_non_negative_int(
                entry.get("maxCapacityPerDay"), current.max_capacity_per_day
            ),
            allowed_slots=normalize_slots(entry.get("allowedSlots")) or current.allowed_slots,
            alternate_slot_sets=(
                _normalize_alternate_sets(entry.get("alternateSlotSets"))
                or current.alternate_slot_sets
            ),
            allow_multiple_slots=allow_multiple,
            slot_interval=slot_interval,
        )

    return tuple(base[day] for day in sorted(base))


def normalize_slots(value: Any) -> Optional[tuple[str, ...]]:
    """
    Slot whitelist from a list or a comma-separated string.
    Drops malformed times, deduplicates, sorts. None when nothing survives.
    """
    if not value:
        return None

    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = [item for item in value if isinstance(item, str)]
    else:
        return None

    slots = {item.strip() for item in items if is_valid_time(item.strip())}
    return tuple(sorted(slots)) if slots else None


def _normalize_alternate_sets(value: Any) -> Optional[tuple[tuple[str, ...], ...]]:
    if not value:
        return None

    entries = value if isinstance(value, (list, tuple)) else [value]
    # A flat list of times is a single set
    if entries and all(isinstance(item, str) for item in entries) and not isinstance(value, str):
        entries = [entries]

    sets = []
    for entry in entries:
        slots = normalize_slots(entry)
        if slots and slots not in sets:
            sets.append(slots)
    return tuple(sets) if sets else None


def _normalize_dates(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return ()
    dates = set()
    for item in value:
        parsed = parse_date(item)
        if parsed is not None:
            dates.add(parsed.isoformat())
    return tuple(sorted(dates))


def _normalize_date_overrides(value: Any) -> dict[str, DateOverride]:
    if not isinstance(value, Mapping):
        return {}

    result: dict[str, DateOverride] = {}
    for key, config in value.items():
        parsed = parse_date(key)
        if parsed is None or not isinstance(config, Mapping):
            continue
        allowed = normalize_slots(config.get("allowedSlots"))
        if allowed:
            result[parsed.isoformat()] = DateOverride(allowed_slots=allowed)
    return dict(sorted(result.items()))


def _normalize_slot_set_selections(value: Any) -> dict[str, int]:
    if not isinstance(value, Mapping):
        return {}

    result: dict[str, int] = {}
    for key, index in value.items():
        parsed = parse_date(key)
        number = _to_number(index)
        if parsed is None or number is None or not number.is_integer() or number < 0:
            continue
        result[parsed.isoformat()] = int(number)
    return dict(sorted(result.items()))


# ── sanitize_for_write ───────────────────────────────────────────────────


def sanitize_for_write(settings: ReservationSettings) -> dict:
    """Exact persisted shape. Optional weekday fields are written only when meaningful."""
    business_hours = []
    for hours in settings.business_hours:
        document: dict[str, Any] = {
            "dayOfWeek": hours.day_of_week,
            "isOpen": bool(hours.is_open),
            "open": hours.open or "",
            "close": hours.close or "",
            "maxCapacityPerDay": hours.max_capacity_per_day,
            "allowMultipleSlots": bool(hours.allow_multiple_slots),
        }
        if hours.allowed_slots:
            document["allowedSlots"] = list(hours.allowed_slots)
        if hours.alternate_slot_sets:
            document["alternateSlotSets"] = [list(s) for s in hours.alternate_slot_sets]
        if hours.allow_multiple_slots and hours.slot_interval:
            document["slotInterval"] = hours.slot_interval
        business_hours.append(document)

    document = {
        "slotDuration": settings.slot_duration,
        "maxCapacityPerSlot": settings.max_capacity_per_slot,
        "businessHours": business_hours,
        "blockedDates": sorted(set(settings.blocked_dates)),
        "dateOverrides": {
            day: {"allowedSlots": list(override.allowed_slots)}
            for day, override in sorted(settings.date_overrides.items())
            if override.allowed_slots
        },
        "cancellationDeadlineHours": settings.cancellation_deadline_hours,
        "cancellationPolicy": settings.cancellation_policy.strip() or DEFAULT_CANCELLATION_POLICY,
    }
    if settings.slot_set_selections:
        document["slotSetSelections"] = dict(sorted(settings.slot_set_selections.items()))
    return document


# ── validate ─────────────────────────────────────────────────────────────


def validate(settings: ReservationSettings) -> ValidationResult:
    """Check the schedule invariants. Advisory: callers decide whether to reject."""
    errors: list[FieldError] = []

    if settings.slot_duration <= 0:
        errors.append(FieldError("slotDuration", "Slot duration must be a positive number of minutes."))
    if settings.max_capacity_per_slot <= 0:
        errors.append(FieldError("maxCapacityPerSlot", "Capacity per slot must be at least 1."))

    for index, hours in enumerate(settings.business_hours):
        if not hours.is_open:
            continue
        prefix = f"businessHours[{index}]"

        open_min = time_str_to_minutes(hours.open)
        close_min = time_str_to_minutes(hours.close)
        if open_min is None or close_min is None:
            field_name = f"{prefix}.open" if open_min is None else f"{prefix}.close"
            errors.append(FieldError(
                field_name,
                f"Day {hours.day_of_week}: opening and closing times must be HH:MM.",
            ))
            continue

        span = close_min - open_min
        if span <= 0:
            errors.append(FieldError(
                f"{prefix}.close",
                f"Day {hours.day_of_week}: closing time must be after opening time.",
            ))
            continue

        if settings.slot_duration > 0 and span < settings.slot_duration:
            errors.append(FieldError(
                f"{prefix}.close",
                f"Day {hours.day_of_week}: business hours {hours.open}-{hours.close} "
                f"are shorter than one slot ({settings.slot_duration} min).",
            ))

        if hours.allow_multiple_slots and not (hours.slot_interval and hours.slot_interval > 0):
            errors.append(FieldError(
                f"{prefix}.slotInterval",
                f"Day {hours.day_of_week}: slot interval must be a positive number of minutes.",
            ))

    return ValidationResult(ok=not errors, errors=errors)


# ── Coercion helpers ─────────────────────────────────────────────────────


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _positive_int(value: Any, default):
    number = _to_number(value)
    if number is None or number <= 0 or not number.is_integer():
        return default
    return int(number)


def _non_negative_int(value: Any, default):
    number = _to_number(value)
    if number is None or number < 0 or not number.is_integer():
        return default if default is not None else DEFAULT_MAX_CAPACITY_PER_DAY
    return int(number)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "0", "no", "off")
    return bool(value)


def _time_field(value: Any, default: str) -> str:
    return value.strip() if isinstance(value, str) else default
