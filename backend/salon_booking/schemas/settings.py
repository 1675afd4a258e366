# backend/salon_booking/schemas/settings.py
"""
Settings API responses.

Settings documents themselves stay plain dicts in the stored camelCase
shape: requests are untrusted and go through the normalizer, responses are
produced by sanitize_for_write.
"""

from typing import Any, Optional

from pydantic import BaseModel


class FieldErrorRead(BaseModel):
    field: str
    message: str


class ValidationRead(BaseModel):
    ok: bool
    errors: list[FieldErrorRead] = []


class AdminSettingsRead(BaseModel):
    stored: Optional[dict[str, Any]] = None
    settings: dict[str, Any]
    validation: ValidationRead


class SettingsMutationRead(BaseModel):
    mode: str
    settings: dict[str, Any]
    changes: list[dict[str, Any]]
