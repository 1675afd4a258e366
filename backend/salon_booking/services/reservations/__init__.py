# backend/salon_booking/services/reservations/__init__.py

from .coordinator import BookingCoordinator, check_preconditions, parse_reservation_request
from .ledger import apply_birthday_credit, is_birthday
from .status import ALLOWED_TRANSITIONS, apply_transition, earned_points, get_reservation

__all__ = [
    "BookingCoordinator",
    "check_preconditions",
    "parse_reservation_request",
    "apply_birthday_credit",
    "is_birthday",
    "ALLOWED_TRANSITIONS",
    "apply_transition",
    "earned_points",
    "get_reservation",
]
