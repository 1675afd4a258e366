# backend/salon_booking/services/slots/__init__.py
"""
Slots calculation module.

Calculator: pure (settings, date, bookings) → ordered TimeSlots
Availability (slots.availability): cached read path, imported directly
"""

from .config import EngineConfig, get_engine_config
from .calculator import DaySlots, TimeSlot, compute_day_slots, compute_slots, slot_capacity
from .invalidator import invalidate_day_slots, invalidate_settings_cache

__all__ = [
    "EngineConfig",
    "get_engine_config",
    "DaySlots",
    "TimeSlot",
    "compute_day_slots",
    "compute_slots",
    "slot_capacity",
    "invalidate_day_slots",
    "invalidate_settings_cache",
]
