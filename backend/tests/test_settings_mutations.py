# backend/tests/test_settings_mutations.py

import json
from datetime import date

import pytest
from sqlalchemy import select

from conftest import MONDAY
from salon_booking.database import run_transaction
from salon_booking.errors import SettingsValidationFailed
from salon_booking.models import AuditLog
from salon_booking.services import background
from salon_booking.services.audit import Actor, RequestMeta
from salon_booking.services.settings.mutations import (
    AUDIT_EVENT,
    apply_settings_mutation,
    is_narrow_action,
)
from salon_booking.services.settings.store import load_raw_settings

ADMIN = Actor(user_id="u-admin", email="owner@example.com", role="admin")
META = RequestMeta(method="PUT", path="/admin/settings", ip="203.0.113.7", request_id="req-1")

INVALID_MONDAY = {
    "businessHours": [{"dayOfWeek": 1, "isOpen": True, "open": "20:00", "close": "18:00"}],
}


@pytest.fixture
def mutate(session_factory, cache):
    async def _mutate(payload):
        return await apply_settings_mutation(session_factory, cache, payload, ADMIN, META)

    return _mutate


async def _stored(session_factory):
    return await run_transaction(session_factory, load_raw_settings)


async def _audit_rows(session_factory):
    async def work(session):
        return (await session.execute(select(AuditLog).order_by(AuditLog.id))).scalars().all()

    return await run_transaction(session_factory, work)


# ── Mode selection ───────────────────────────────────────────────────────


@pytest.mark.parametrize("payload, narrow", [
    ({"blockedDate": "2030-01-07"}, True),
    ({"blockedDate": "2030-01-07", "block": False}, True),
    ({"clearBlockedDates": True}, True),
    ({"clearDateOverrides": True, "clearBlockedDates": True}, True),
    ({"block": True}, False),
    ({"slotDuration": 90}, False),
    ({"slotDuration": 90, "blockedDate": "2030-01-07"}, False),
])
def test_is_narrow_action(payload, narrow):
    assert is_narrow_action(payload) is narrow


# ── Full replace ─────────────────────────────────────────────────────────


async def test_full_replace_persists_sanitized_document(mutate, session_factory):
    result = await mutate({"slotDuration": "90", "maxCapacityPerSlot": 2, "legacyFlag": 1})

    assert result.mode == "replace"
    assert result.settings.slot_duration == 90
    stored = await _stored(session_factory)
    assert stored == result.document
    assert stored["slotDuration"] == 90
    assert "legacyFlag" not in stored
    assert {c["path"] for c in result.changes} >= {"slotDuration", "maxCapacityPerSlot"}


async def test_invalid_replace_is_rejected_with_field_errors(mutate, session_factory):
    with pytest.raises(SettingsValidationFailed) as exc:
        await mutate(INVALID_MONDAY)

    assert [f.field for f in exc.value.fields] == ["businessHours[1].close"]
    assert await _stored(session_factory) is None


@pytest.mark.parametrize("payload", [{}, None, ["slotDuration"]])
async def test_empty_payload_is_rejected(mutate, payload):
    with pytest.raises(SettingsValidationFailed):
        await mutate(payload)


# ── Narrow actions ───────────────────────────────────────────────────────


async def test_narrow_action_works_over_invalid_stored_settings(mutate, store_settings, session_factory):
    await store_settings(INVALID_MONDAY)

    result = await mutate({"blockedDate": "2030-01-08", "block": True})

    assert result.mode == "action"
    stored = await _stored(session_factory)
    assert stored["blockedDates"] == ["2030-01-08"]
    # the invalid weekday rule is carried over untouched
    monday = stored["businessHours"][1]
    assert (monday["open"], monday["close"]) == ("20:00", "18:00")


async def test_blocked_date_toggles_when_block_is_omitted(mutate, session_factory):
    await mutate({"blockedDate": "2030-01-08"})
    assert (await _stored(session_factory))["blockedDates"] == ["2030-01-08"]

    await mutate({"blockedDate": "2030-01-08"})
    assert (await _stored(session_factory))["blockedDates"] == []


async def test_explicit_block_is_idempotent(mutate, session_factory):
    await mutate({"blockedDate": "2030-01-08", "block": True})
    await mutate({"blockedDate": "2030-01-08", "block": "true"})
    assert (await _stored(session_factory))["blockedDates"] == ["2030-01-08"]

    await mutate({"blockedDate": "2030-01-08", "block": False})
    await mutate({"blockedDate": "2030-01-08", "block": False})
    assert (await _stored(session_factory))["blockedDates"] == []


async def test_unblocking_a_late_date_is_reported_as_a_change(mutate, store_settings):
    blocked = [f"2030-03-{d:02d}" for d in range(1, 26)]
    await store_settings({"blockedDates": blocked})

    result = await mutate({"blockedDate": "2030-03-25", "block": False})

    [change] = result.changes
    assert change["path"] == "blockedDates"
    assert change["before"]["length"] == 25
    assert change["after"]["length"] == 24


async def test_clear_actions(mutate, store_settings, session_factory):
    await store_settings({
        "blockedDates": ["2030-01-08", "2030-01-09"],
        "dateOverrides": {"2030-01-13": {"allowedSlots": ["10:00"]}},
    })

    await mutate({"clearBlockedDates": True})
    stored = await _stored(session_factory)
    assert stored["blockedDates"] == []
    assert list(stored["dateOverrides"]) == ["2030-01-13"]

    await mutate({"clearDateOverrides": True})
    assert (await _stored(session_factory))["dateOverrides"] == {}


async def test_bad_blocked_date_is_rejected(mutate, session_factory):
    with pytest.raises(SettingsValidationFailed) as exc:
        await mutate({"blockedDate": "2030-02-30"})
    assert [f.field for f in exc.value.fields] == ["blockedDate"]
    assert await _stored(session_factory) is None


# ── Side effects ─────────────────────────────────────────────────────────


async def test_mutation_invalidates_cached_slots(mutate, availability):
    monday = date.fromisoformat(MONDAY)
    assert [s.time for s in (await availability.get_day_slots(monday)).slots] == ["18:00"]

    await mutate({"blockedDate": MONDAY, "block": True})
    assert (await availability.get_day_slots(monday)).slots == []

    await mutate({"slotDuration": 60, "businessHours": [
        {"dayOfWeek": 1, "isOpen": True, "open": "18:00", "close": "20:00",
         "allowMultipleSlots": True, "slotInterval": 60},
    ]})
    assert [s.time for s in (await availability.get_day_slots(monday)).slots] == ["18:00", "19:00"]
    assert (await availability.get_settings()).slot_duration == 60


async def test_mutation_records_an_audit_event(mutate, session_factory):
    await mutate({"blockedDate": "2030-01-08", "block": True})
    await background.drain(timeout=5)

    rows = await _audit_rows(session_factory)
    assert len(rows) == 1
    row = rows[0]
    assert row.event_type == AUDIT_EVENT
    assert (row.actor_user_id, row.actor_email, row.actor_role) == ("u-admin", "owner@example.com", "admin")
    assert (row.method, row.path, row.ip, row.request_id) == ("PUT", "/admin/settings", "203.0.113.7", "req-1")

    payload = json.loads(row.payload)
    assert payload["mode"] == "action"
    assert payload["changes"] == [{
        "path": "blockedDates",
        "before": {"length": 0, "preview": []},
        "after": {"length": 1, "preview": ["2030-01-08"]},
    }]


async def test_rejected_mutation_records_nothing(mutate, session_factory):
    with pytest.raises(SettingsValidationFailed):
        await mutate(INVALID_MONDAY)
    await background.drain(timeout=5)
    assert await _audit_rows(session_factory) == []
