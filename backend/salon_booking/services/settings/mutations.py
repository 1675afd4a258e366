# backend/salon_booking/services/settings/mutations.py
"""
Admin settings mutations.

Two modes, picked from the payload keys:

(a) full replace: any payload with keys outside NARROW_ACTION_KEYS.
    normalize → validate (reject with field errors) → diff → write
(b) narrow action: only NARROW_ACTION_KEYS present.
    {"blockedDate": "2026-12-31", "block": true}   block (block omitted = toggle)
    {"clearBlockedDates": true}
    {"clearDateOverrides": true}
    Applied over the normalized stored document without validate(), so an
    operator can still unblock a date while the weekday rules are invalid.

Every successful mutation invalidates settings + slots caches and records an
audit event (detached).
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Optional

from ...database import SessionFactory, run_transaction
from ...errors import FieldError, SettingsValidationFailed
from ..audit import Actor, RequestMeta, build_audit_diff, record_audit_event
from ..background import spawn
from ..cache import CacheLayer
from ..slots.config import parse_date
from ..slots.invalidator import invalidate_settings_cache
from .model import ReservationSettings
from .normalizer import _to_bool, normalize, sanitize_for_write, validate
from .store import load_raw_settings, save_settings_document

logger = logging.getLogger(__name__)

NARROW_ACTION_KEYS = frozenset({"blockedDate", "block", "clearBlockedDates", "clearDateOverrides"})
AUDIT_EVENT = "reservation_settings.updated"


@dataclass
class MutationResult:
    mode: str  # "replace" | "action"
    settings: ReservationSettings
    document: dict
    changes: list[dict]


def is_narrow_action(payload: Mapping[str, Any]) -> bool:
    keys = set(payload)
    return bool(keys) and keys <= NARROW_ACTION_KEYS and keys != {"block"}


def apply_narrow_action(settings: ReservationSettings, payload: Mapping[str, Any]) -> ReservationSettings:
    """Merge-patch blockedDates/dateOverrides. Raises SettingsValidationFailed for a bad date."""
    blocked = list(settings.blocked_dates)
    overrides = dict(settings.date_overrides)

    if _to_bool(payload.get("clearBlockedDates")):
        blocked = []
    if _to_bool(payload.get("clearDateOverrides")):
        overrides = {}

    if "blockedDate" in payload:
        day = parse_date(payload.get("blockedDate"))
        if day is None:
            raise SettingsValidationFailed(
                "blockedDate must be YYYY-MM-DD.",
                [FieldError("blockedDate", "blockedDate must be YYYY-MM-DD.")],
            )
        date_str = day.isoformat()
        raw_block = payload.get("block")
        block = date_str not in blocked if raw_block is None else _to_bool(raw_block)

        if block and date_str not in blocked:
            blocked.append(date_str)
        elif not block and date_str in blocked:
            blocked.remove(date_str)

    return replace(
        settings,
        blocked_dates=tuple(sorted(set(blocked))),
        date_overrides=overrides,
    )


async def apply_settings_mutation(
    session_factory: Optional[SessionFactory],
    cache: CacheLayer,
    payload: Mapping[str, Any],
    actor: Actor,
    meta: RequestMeta,
) -> MutationResult:
    """Apply a full replace or a narrow action. See module docstring."""
    if not isinstance(payload, Mapping) or not payload:
        raise SettingsValidationFailed("The settings payload must be a non-empty object.")

    narrow = is_narrow_action(payload)
    replacement: Optional[ReservationSettings] = None

    if not narrow:
        replacement = normalize(payload)
        result = validate(replacement)
        if not result.ok:
            raise SettingsValidationFailed(fields=result.errors)

    async def work(session) -> MutationResult:
        current = normalize(await load_raw_settings(session))
        before = sanitize_for_write(current)

        updated = apply_narrow_action(current, payload) if narrow else replacement
        document = sanitize_for_write(updated)
        changes = build_audit_diff(before, document)

        await save_settings_document(session, document)
        return MutationResult(
            mode="action" if narrow else "replace",
            settings=updated,
            document=document,
            changes=changes,
        )

    result = await run_transaction(session_factory, work)
    logger.info(
        f"Reservation settings updated ({result.mode}) by {actor.email or actor.user_id}: "
        f"{len(result.changes)} changed paths"
    )

    await invalidate_settings_cache(cache)
    spawn(
        record_audit_event(
            session_factory,
            AUDIT_EVENT,
            actor,
            meta,
            {"mode": result.mode, "changes": result.changes},
        ),
        name="audit:settings",
    )
    return result
