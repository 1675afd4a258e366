# backend/salon_booking/routers/slots.py
"""
Slots API endpoints.

GET /slots/day       - Slots of one date (with availability flags)
GET /slots/calendar  - Bookable days in a date range
"""

from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_availability
from ..schemas.slots import SlotsCalendarResponse, SlotsDayResponse, SlotsDayStatus
from ..services.slots.availability import AvailabilityService

MAX_CALENDAR_DAYS = 62

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/day", response_model=SlotsDayResponse)
async def get_day_slots(
    date: date,
    availability: AvailabilityService = Depends(get_availability),
):
    """Slots of a date. Fully booked slots are listed with available=false."""
    day = await availability.get_day_slots(date)
    return SlotsDayResponse(
        date=date,
        slots=[{"time": s.time, "available": s.available} for s in day.slots],
        capacity=day.capacity,
        active_grid=day.active_grid,
        candidate_grids=day.candidate_grids,
    )


@router.get("/calendar", response_model=SlotsCalendarResponse)
async def get_slots_calendar(
    start_date: date,
    end_date: date | None = None,
    availability: AvailabilityService = Depends(get_availability),
):
    """Per-day summary for a range (at most MAX_CALENDAR_DAYS days)."""
    if end_date is None:
        end_date = start_date + timedelta(days=30)
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    if (end_date - start_date).days >= MAX_CALENDAR_DAYS:
        raise HTTPException(
            status_code=400,
            detail=f"Range must not exceed {MAX_CALENDAR_DAYS} days",
        )

    days = []
    current = start_date
    while current <= end_date:
        day = await availability.get_day_slots(current)
        open_count = sum(1 for s in day.slots if s.available)
        days.append(SlotsDayStatus(
            date=current,
            has_slots=open_count > 0,
            open_slots_count=open_count,
        ))
        current += timedelta(days=1)

    return SlotsCalendarResponse(start_date=start_date, end_date=end_date, days=days)
