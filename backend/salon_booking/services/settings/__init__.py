# backend/salon_booking/services/settings/__init__.py
"""
Reservation settings.

model: strict internal shape
normalizer: untrusted document ↔ strict shape, validation
store: singleton document persistence
mutations: admin full replace / narrow actions
"""

from .model import BusinessHours, DateOverride, ReservationSettings
from .normalizer import ValidationResult, default_settings, normalize, sanitize_for_write, validate

__all__ = [
    "BusinessHours",
    "DateOverride",
    "ReservationSettings",
    "ValidationResult",
    "default_settings",
    "normalize",
    "sanitize_for_write",
    "validate",
]
