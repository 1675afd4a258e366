# backend/salon_booking/errors.py
"""
Error taxonomy of the booking engine.

Every error carries a stable machine-readable ``kind`` and the HTTP status it
maps to, so the API layer renders them without knowing each class.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FieldError:
    """A problem attached to one input field."""
    field: str
    message: str

    def as_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class BookingError(Exception):
    kind = "UNKNOWN"
    status_code = 500
    default_message = "Something went wrong while processing the reservation."

    def __init__(
        self,
        message: Optional[str] = None,
        fields: Optional[list[FieldError]] = None,
    ):
        self.message = message or self.default_message
        self.fields = list(fields or [])
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "fields": [f.as_dict() for f in self.fields],
        }


class ValidationFailed(BookingError):
    kind = "VALIDATION_FAILED"
    status_code = 400
    default_message = "Some reservation details are invalid."


class SlotUnavailable(BookingError):
    kind = "SLOT_UNAVAILABLE"
    status_code = 409
    default_message = "The selected time is no longer available. Please choose another slot."


class InsufficientPoints(BookingError):
    kind = "INSUFFICIENT_POINTS"
    status_code = 400
    default_message = "Your point balance is not enough for this reservation."


class BackendUnavailable(BookingError):
    kind = "BACKEND_UNAVAILABLE"
    status_code = 503
    default_message = "The reservation service is temporarily unavailable. Please try again later."


class UnknownBookingError(BookingError):
    kind = "UNKNOWN"
    status_code = 500


class NotFound(BookingError):
    kind = "NOT_FOUND"
    status_code = 404
    default_message = "Not found."


class InvalidTransition(BookingError):
    kind = "INVALID_TRANSITION"
    status_code = 409
    default_message = "The reservation cannot move to the requested status."


class SettingsValidationFailed(BookingError):
    kind = "SETTINGS_INVALID"
    status_code = 400
    default_message = "The reservation settings are invalid."
