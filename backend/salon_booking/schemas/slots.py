# backend/salon_booking/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class SlotInfo(BaseModel):
    """A single slot of a day."""
    time: str  # "HH:MM"
    available: bool

    model_config = {"from_attributes": True}


class SlotsDayResponse(BaseModel):
    """Slots of one date, with the grid they come from."""
    date: date
    slots: list[SlotInfo]
    capacity: int = Field(description="Bookings allowed per slot on this date")
    active_grid: Optional[int] = Field(
        default=None,
        description="Index into candidate_grids, null when the day uses open/close or a date override",
    )
    candidate_grids: list[list[str]] = []

    model_config = {"from_attributes": True}


class SlotsDayStatus(BaseModel):
    """Status of a single day in calendar."""
    date: date
    has_slots: bool
    open_slots_count: int = 0


class SlotsCalendarResponse(BaseModel):
    """Calendar of bookable days."""
    start_date: date
    end_date: date
    days: list[SlotsDayStatus]
