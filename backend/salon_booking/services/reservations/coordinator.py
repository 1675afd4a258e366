# backend/salon_booking/services/reservations/coordinator.py
"""
Booking transaction coordinator.

create_reservation(payload):
  1. Parse + preconditions (no store access)        → ValidationFailed
  2. Account resolution by email                    → ValidationFailed / InsufficientPoints
  3. Slot offer pre-check (cached day slots)        → SlotUnavailable
  4. One atomic transaction:
       re-count active bookings of date+time        → SlotUnavailable
       take a free seat, insert reservation
       birthday credit (once per calendar year)
       points use debit
  5. After commit: invalidate day slots, emit notifications (detached)

change_status(reservation_id, status):
  one transaction: locked reservation row, transition, earn credit on completion
  after commit: invalidate day slots, emit notifications

Two writers for the same seat cannot both commit: the transaction holds the
store write lock (SQLite BEGIN IMMEDIATE) and the seat is unique per
date+time, so a loser re-runs the whole unit and sees the winner.
The user row is read FOR UPDATE before the balance is checked, so two
bookings by one customer cannot both spend the same points.
"""

import json
import logging
import math
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import SessionFactory, run_transaction
from ...errors import (
    BookingError,
    FieldError,
    InsufficientPoints,
    NotFound,
    SlotUnavailable,
    UnknownBookingError,
    ValidationFailed,
)
from ...models import Reservations, Users
from ...schemas.reservations import ReservationCreate, ReservationRead
from ..cache import CacheLayer
from ..events import Notifier
from ..slots.availability import AvailabilityService
from ..slots.calculator import slot_capacity
from ..slots.config import EngineConfig, get_engine_config, time_str_to_minutes
from ..slots.invalidator import invalidate_day_slots
from .ledger import append_entry, apply_birthday_credit, get_user_by_email
from .status import apply_transition, earned_points

logger = logging.getLogger(__name__)


class BookingCoordinator:
    """Top-level entry point for creating reservations and changing their status."""

    def __init__(
        self,
        session_factory: Optional[SessionFactory],
        cache: CacheLayer,
        availability: AvailabilityService,
        notifier: Optional[Notifier] = None,
        config: EngineConfig | None = None,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.availability = availability
        self.notifier = notifier
        self.config = config or get_engine_config()

    async def create_reservation(
        self,
        payload: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Reservations:
        """
        Create a reservation atomically.

        Raises:
            ValidationFailed, SlotUnavailable, InsufficientPoints,
            BackendUnavailable, UnknownBookingError
        """
        try:
            return await self._create(payload, now or self.config.now())
        except BookingError:
            raise
        except Exception as e:
            logger.exception("Unexpected error while creating a reservation")
            raise UnknownBookingError() from e

    async def _create(self, payload: Mapping[str, Any], now: datetime) -> Reservations:
        request = parse_reservation_request(payload)
        check_preconditions(request, self.config, now)

        # Account resolution
        customer = await run_transaction(
            self.session_factory,
            lambda session: get_user_by_email(session, request.customer_email),
        )
        if request.points_used > 0:
            if customer is None:
                raise ValidationFailed(
                    "Points can only be used by registered customers.",
                    [FieldError("pointsUsed", "Points can only be used by registered customers.")],
                )
            if request.points_used > (customer.points or 0):
                raise InsufficientPoints(
                    f"You have {customer.points or 0} points but tried to use {request.points_used}."
                )

        # Slot offer pre-check
        target_date = datetime.fromisoformat(request.date).date()
        day = await self.availability.get_day_slots(target_date)
        if not day.offers(request.time):
            raise SlotUnavailable("The selected time is not offered on this date.")

        settings = await self.availability.get_settings()
        capacity = slot_capacity(settings, target_date)
        today = now.astimezone(self.config.tz).date()
        customer_id = customer.id if customer is not None else None

        async def work(session: AsyncSession) -> Reservations:
            seat = await _claim_seat(session, request.date, request.time, capacity)

            user = None
            if customer_id:
                user = await session.get(Users, customer_id, with_for_update=True)
            if request.points_used > 0 and (user is None or (user.points or 0) < request.points_used):
                raise InsufficientPoints()

            reservation = Reservations(
                date=request.date,
                time=request.time,
                slot_seat=seat,
                customer_id=customer_id,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
                service_type=request.service_type,
                service_name=request.service_name,
                price=request.price,
                maintenance_price=request.maintenance_price,
                total_price=request.total_price,
                points_used=request.points_used,
                final_price=request.final_price,
                status="pending",
                intake_form=(
                    json.dumps(request.intake_form, ensure_ascii=False)
                    if request.intake_form is not None
                    else None
                ),
                notes=request.notes,
            )
            session.add(reservation)
            await session.flush()

            if user is not None:
                await apply_birthday_credit(
                    session, user, today, self.config.birthday_bonus_points,
                )
                if request.points_used > 0:
                    await append_entry(
                        session,
                        user,
                        "use",
                        -request.points_used,
                        description=f"Used for reservation on {request.date} {request.time}",
                        reservation_id=reservation.id,
                    )
            return reservation

        reservation = await run_transaction(self.session_factory, work)
        logger.info(
            f"Reservation created: {reservation.id} {reservation.date} {reservation.time} "
            f"(seat {reservation.slot_seat}, points used {reservation.points_used})"
        )

        await invalidate_day_slots(self.cache, reservation.date)
        self._notify("booking_created", reservation)
        return reservation

    async def change_status(
        self,
        reservation_id: str,
        new_status: str,
        cancel_reason: Optional[str] = None,
    ) -> Reservations:
        """
        Apply a status transition; completion credits earned points.

        Raises:
            NotFound, InvalidTransition, BackendUnavailable, UnknownBookingError
        """
        try:
            return await self._change_status(reservation_id, new_status, cancel_reason)
        except BookingError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error while changing reservation {reservation_id}")
            raise UnknownBookingError() from e

    async def _change_status(
        self,
        reservation_id: str,
        new_status: str,
        cancel_reason: Optional[str],
    ) -> Reservations:
        earn_rate = self.config.points_earn_rate

        async def work(session: AsyncSession) -> Reservations:
            reservation = await session.get(Reservations, reservation_id, with_for_update=True)
            if reservation is None:
                raise NotFound(f"Reservation {reservation_id} not found.")

            apply_transition(reservation, new_status, cancel_reason)

            if new_status == "completed" and reservation.customer_id:
                points = earned_points(reservation.final_price, earn_rate)
                user = await session.get(Users, reservation.customer_id, with_for_update=True)
                if user is not None and points > 0:
                    await append_entry(
                        session,
                        user,
                        "earn",
                        points,
                        description=f"Earned for reservation on {reservation.date} {reservation.time}",
                        reservation_id=reservation.id,
                    )

            await session.flush()
            return reservation

        reservation = await run_transaction(self.session_factory, work)
        logger.info(f"Reservation {reservation.id} → {new_status}")

        await invalidate_day_slots(self.cache, reservation.date)
        if self.notifier is not None:
            self.notifier.emit(
                f"booking_{new_status}",
                {
                    "reservation_id": reservation.id,
                    "date": reservation.date,
                    "time": reservation.time,
                    "status": reservation.status,
                    "cancel_reason": reservation.cancel_reason,
                },
            )
        return reservation

    def _notify(self, event_type: str, reservation: Reservations) -> None:
        if self.notifier is None:
            return
        try:
            data = ReservationRead.model_validate(reservation).model_dump(mode="json", by_alias=True)
            self.notifier.emit(event_type, {"reservation": data})
        except Exception:
            logger.exception(f"Failed to schedule {event_type} notification for {reservation.id}")


# ── Preconditions ────────────────────────────────────────────────────────


def parse_reservation_request(payload: Mapping[str, Any]) -> ReservationCreate:
    """Untrusted payload → ReservationCreate, field errors as ValidationFailed."""
    if not isinstance(payload, Mapping):
        raise ValidationFailed("The reservation request must be an object.")
    try:
        return ReservationCreate.model_validate(dict(payload))
    except ValidationError as e:
        fields = [
            FieldError(
                ".".join(str(part) for part in err["loc"]) or "(root)",
                err["msg"],
            )
            for err in e.errors()
        ]
        raise ValidationFailed(fields=fields) from None


def check_preconditions(
    request: ReservationCreate,
    config: EngineConfig,
    now: datetime,
) -> None:
    """Cheap checks before any store access. Raises ValidationFailed with every problem found."""
    errors: list[FieldError] = []
    tolerance = config.money_tolerance

    money = {
        "price": request.price,
        "maintenancePrice": request.maintenance_price,
        "totalPrice": request.total_price,
        "finalPrice": request.final_price,
        "pointsUsed": request.points_used,
    }
    for name, value in money.items():
        if not math.isfinite(value) or value < 0:
            errors.append(FieldError(name, f"{name} must be a non-negative number."))

    if not errors:
        if abs(request.price + request.maintenance_price - request.total_price) > tolerance:
            errors.append(FieldError(
                "totalPrice", "totalPrice must equal price + maintenancePrice.",
            ))
        if abs(request.total_price - request.points_used - request.final_price) > tolerance:
            errors.append(FieldError(
                "finalPrice", "finalPrice must equal totalPrice - pointsUsed.",
            ))
        if request.points_used > request.total_price:
            errors.append(FieldError(
                "pointsUsed", "pointsUsed cannot exceed totalPrice.",
            ))

    start = _slot_start(request.date, request.time, config)
    if start < now.astimezone(config.tz):
        errors.append(FieldError("date", "The requested date and time are in the past."))

    if errors:
        raise ValidationFailed(fields=errors)


def _slot_start(date_str: str, time_str: str, config: EngineConfig) -> datetime:
    minutes = time_str_to_minutes(time_str)
    day = datetime.fromisoformat(date_str)
    return day.replace(hour=minutes // 60, minute=minutes % 60, tzinfo=config.tz)


# ── Seats ────────────────────────────────────────────────────────────────


async def _claim_seat(session: AsyncSession, date_str: str, time_str: str, capacity: int) -> int:
    """
    Smallest free seat of the slot, read inside the transaction.
    Raises SlotUnavailable once the slot holds ``capacity`` active bookings.
    """
    result = await session.execute(
        select(Reservations.slot_seat).where(
            Reservations.date == date_str,
            Reservations.time == time_str,
            Reservations.status != "cancelled",
        )
    )
    taken = [seat for (seat,) in result.all()]
    if len(taken) >= capacity:
        raise SlotUnavailable()

    used = {seat for seat in taken if seat is not None}
    for seat in range(capacity):
        if seat not in used:
            return seat
    raise SlotUnavailable()
