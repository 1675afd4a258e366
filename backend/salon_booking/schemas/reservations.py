# backend/salon_booking/schemas/reservations.py

import json
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..services.slots.config import is_valid_time, parse_date


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReservationCreate(CamelModel):
    date: str
    time: str

    customer_name: str = Field(min_length=1)
    customer_email: str = Field(min_length=3)
    customer_phone: str = Field(min_length=1)

    service_type: Optional[str] = None
    service_name: str = Field(min_length=1)

    price: float
    maintenance_price: float = 0
    total_price: float
    points_used: int = 0
    final_price: float

    intake_form: Optional[dict[str, Any]] = None
    notes: Optional[str] = None

    @field_validator("customer_name", "customer_email", "customer_phone", "service_name", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("date")
    @classmethod
    def check_date(cls, v: str) -> str:
        parsed = parse_date(v)
        if parsed is None:
            raise ValueError("date must be YYYY-MM-DD")
        return parsed.isoformat()

    @field_validator("time")
    @classmethod
    def check_time(cls, v: str) -> str:
        v = v.strip()
        if not is_valid_time(v):
            raise ValueError("time must be HH:MM")
        return v

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, v: str) -> str:
        local, sep, domain = v.partition("@")
        if not sep or not local or "." not in domain:
            raise ValueError("customerEmail is not a valid email address")
        return v.lower()


class ReservationCreated(CamelModel):
    reservation_id: str
    reservation: "ReservationRead"


class ReservationRead(CamelModel):
    id: str
    date: str
    time: str

    customer_id: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: str

    service_type: Optional[str] = None
    service_name: str
    price: float
    maintenance_price: float
    total_price: float
    points_used: int
    final_price: float

    status: str
    intake_form: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_validator("intake_form", mode="before")
    @classmethod
    def parse_intake_form(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return None
        return v


class ReservationStatusUpdate(CamelModel):
    status: Literal["confirmed", "completed", "cancelled"]
    cancel_reason: Optional[str] = None


ReservationCreated.model_rebuild()
