# backend/salon_booking/services/reservations/status.py
"""
Reservation status transitions.

pending   → confirmed | cancelled
confirmed → completed | cancelled
completed, cancelled → terminal

cancelled: seat released, cancel_reason/cancelled_at recorded
completed: earn credit floor(finalPrice × points_earn_rate) for registered customers

The transaction that applies a change lives in BookingCoordinator.change_status,
beside the booking transaction, so every balance write goes through one place.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from ...database import SessionFactory, run_transaction
from ...errors import InvalidTransition, NotFound
from ...models import Reservations

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}


def earned_points(final_price: float, rate: float) -> int:
    return max(0, math.floor((final_price or 0) * rate))


def apply_transition(
    reservation: Reservations,
    new_status: str,
    cancel_reason: Optional[str] = None,
) -> None:
    """Move ``reservation`` to ``new_status`` in place. Raises InvalidTransition."""
    current = reservation.status
    if new_status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(f"A {current} reservation cannot become {new_status}.")

    reservation.status = new_status
    if new_status == "cancelled":
        reservation.slot_seat = None
        reservation.cancel_reason = (cancel_reason or "").strip() or None
        reservation.cancelled_at = datetime.now(timezone.utc)


async def get_reservation(
    session_factory: Optional[SessionFactory],
    reservation_id: str,
) -> Reservations:
    reservation = await run_transaction(
        session_factory,
        lambda session: session.get(Reservations, reservation_id),
    )
    if reservation is None:
        raise NotFound(f"Reservation {reservation_id} not found.")
    return reservation
