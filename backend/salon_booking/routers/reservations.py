# backend/salon_booking/routers/reservations.py
# DELETE = 405: reservations are never deleted, cancellation is a status change

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ..database import SessionFactory
from ..dependencies import get_coordinator, get_session_factory, require_admin
from ..schemas.reservations import ReservationCreated, ReservationRead, ReservationStatusUpdate
from ..services.audit import Actor
from ..services.reservations import BookingCoordinator, get_reservation

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post(
    "/",
    response_model=ReservationCreated,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    payload: Any = Body(...),
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    """Body is validated by the coordinator so every failure uses the booking error shape."""
    reservation = await coordinator.create_reservation(payload)
    return ReservationCreated(
        reservation_id=reservation.id,
        reservation=ReservationRead.model_validate(reservation),
    )


@router.get("/{id}", response_model=ReservationRead, response_model_by_alias=True)
async def get_reservation_by_id(
    id: str,
    session_factory: Optional[SessionFactory] = Depends(get_session_factory),
    _: Actor = Depends(require_admin),
):
    return await get_reservation(session_factory, id)


@router.patch("/{id}/status", response_model=ReservationRead, response_model_by_alias=True)
async def update_reservation_status(
    id: str,
    data: ReservationStatusUpdate,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    _: Actor = Depends(require_admin),
):
    return await coordinator.change_status(id, data.status, cancel_reason=data.cancel_reason)


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
