# backend/tests/test_normalizer.py

import pytest

from salon_booking.services.settings import (
    ReservationSettings,
    default_settings,
    normalize,
    sanitize_for_write,
    validate,
)
from salon_booking.services.settings.model import DEFAULT_CANCELLATION_POLICY


def _hours(settings: ReservationSettings, day_of_week: int):
    return next(h for h in settings.business_hours if h.day_of_week == day_of_week)


# ── normalize ────────────────────────────────────────────────────────────


@pytest.mark.parametrize("raw", [None, {}, "not a dict", 42, []])
def test_unusable_input_gives_default_template(raw):
    assert normalize(raw) == default_settings()


def test_default_template():
    settings = default_settings()

    assert settings.slot_duration == 120
    assert settings.max_capacity_per_slot == 1
    assert settings.cancellation_deadline_hours == 72
    assert [h.day_of_week for h in settings.business_hours] == list(range(7))

    assert not _hours(settings, 0).is_open
    wednesday = _hours(settings, 3)
    assert (wednesday.open, wednesday.close) == ("10:00", "18:00")
    for day in (1, 2, 4, 5, 6):
        hours = _hours(settings, day)
        assert hours.is_open
        assert (hours.open, hours.close) == ("18:00", "20:00")
        assert hours.max_capacity_per_day == 1


@pytest.mark.parametrize("value", [0, -5, "abc", float("inf"), float("nan"), None, True, 90.5])
def test_bad_numbers_fall_back_to_default(value):
    settings = normalize({"slotDuration": value, "maxCapacityPerSlot": value})
    assert settings.slot_duration == 120
    assert settings.max_capacity_per_slot == 1


def test_numeric_strings_are_coerced():
    settings = normalize({"slotDuration": "90", "cancellationDeadlineHours": "48"})
    assert settings.slot_duration == 90
    assert settings.cancellation_deadline_hours == 48


def test_business_hours_merge_over_template_by_day():
    settings = normalize({
        "businessHours": [
            {"dayOfWeek": 1, "isOpen": True, "open": "18:30", "close": "20:30"},
            {"dayOfWeek": 9, "isOpen": True, "open": "09:00", "close": "10:00"},
            "garbage",
        ]
    })

    monday = _hours(settings, 1)
    assert (monday.open, monday.close) == ("18:30", "20:30")
    # untouched days keep the template
    assert _hours(settings, 3).open == "10:00"
    assert len(settings.business_hours) == 7


def test_allowed_slots_are_filtered_deduplicated_and_sorted():
    settings = normalize({
        "businessHours": [
            {"dayOfWeek": 2, "isOpen": True, "open": "10:00", "close": "20:00",
             "allowedSlots": ["15:00", "10:00", "24:00", "9:00", "15:00", " 12:30 "]},
        ]
    })
    assert _hours(settings, 2).allowed_slots == ("10:00", "12:30", "15:00")


def test_allowed_slots_accept_comma_separated_string():
    settings = normalize({
        "businessHours": [{"dayOfWeek": 2, "isOpen": True, "open": "10:00", "close": "20:00",
                           "allowedSlots": "13:00, 10:00,bad"}],
    })
    assert _hours(settings, 2).allowed_slots == ("10:00", "13:00")


def test_alternate_slot_sets_drop_empty_sets():
    settings = normalize({
        "businessHours": [{
            "dayOfWeek": 6, "isOpen": True, "open": "10:00", "close": "20:00",
            "allowedSlots": ["10:00", "14:00"],
            "alternateSlotSets": [["11:00", "15:00"], ["xx"], []],
        }],
    })
    saturday = _hours(settings, 6)
    assert saturday.alternate_slot_sets == (("11:00", "15:00"),)
    assert saturday.slot_grids == [("10:00", "14:00"), ("11:00", "15:00")]


def test_date_overrides_dropped_when_slots_normalize_to_empty():
    settings = normalize({
        "dateOverrides": {
            "2030-01-08": {"allowedSlots": ["10:00"]},
            "2030-01-09": {"allowedSlots": ["nope"]},
            "2030-02-30": {"allowedSlots": ["10:00"]},
            "tomorrow": {"allowedSlots": ["10:00"]},
        }
    })
    assert list(settings.date_overrides) == ["2030-01-08"]


def test_blocked_dates_keep_only_real_dates():
    settings = normalize({"blockedDates": ["2030-01-02", "2030-01-01", "2030-13-01", "x", "2030-01-01"]})
    assert settings.blocked_dates == ("2030-01-01", "2030-01-02")


def test_slot_interval_only_kept_with_multiple_slots():
    settings = normalize({
        "businessHours": [
            {"dayOfWeek": 3, "isOpen": True, "open": "10:00", "close": "18:00",
             "allowMultipleSlots": True, "slotInterval": 60},
            {"dayOfWeek": 4, "isOpen": True, "open": "18:00", "close": "20:00",
             "allowMultipleSlots": False, "slotInterval": 60},
        ]
    })
    assert _hours(settings, 3).slot_interval == 60
    assert _hours(settings, 4).slot_interval is None


def test_blank_policy_falls_back_to_default():
    assert normalize({"cancellationPolicy": "   "}).cancellation_policy == DEFAULT_CANCELLATION_POLICY


# ── sanitize_for_write ───────────────────────────────────────────────────


def test_sanitize_omits_meaningless_optional_fields():
    document = sanitize_for_write(default_settings())

    monday = document["businessHours"][1]
    assert "allowedSlots" not in monday
    assert "alternateSlotSets" not in monday
    assert "slotInterval" not in monday
    assert "slotSetSelections" not in document
    assert document["dateOverrides"] == {}


@pytest.mark.parametrize("raw", [
    None,
    {"slotDuration": 90, "maxCapacityPerSlot": 2},
    {
        "businessHours": [
            {"dayOfWeek": 1, "isOpen": True, "open": "18:30", "close": "20:30"},
            {"dayOfWeek": 3, "isOpen": True, "open": "10:00", "close": "18:00",
             "allowMultipleSlots": True, "slotInterval": 30},
            {"dayOfWeek": 6, "isOpen": "true", "open": "10:00", "close": "20:00",
             "allowedSlots": "10:00,14:00", "alternateSlotSets": [["11:00"], ["12:00", "16:00"]]},
            {"dayOfWeek": 0, "isOpen": "false"},
        ],
        "blockedDates": ["2030-01-01"],
        "dateOverrides": {"2030-01-02": {"allowedSlots": ["09:00", "13:00"]}},
        "slotSetSelections": {"2030-01-05": 1, "2030-01-12": "2", "bad": 1},
        "cancellationPolicy": " Call us. ",
        "staleTemporaryField": {"x": 1},
    },
])
def test_round_trip_is_idempotent(raw):
    normalized = normalize(raw)
    assert normalize(sanitize_for_write(normalized)) == normalized
    assert sanitize_for_write(normalize(sanitize_for_write(normalized))) == sanitize_for_write(normalized)


def test_sanitize_drops_unknown_fields():
    document = sanitize_for_write(normalize({"slotDuration": 60, "legacyFlag": True}))
    assert "legacyFlag" not in document


# ── validate ─────────────────────────────────────────────────────────────


def test_default_settings_are_valid():
    result = validate(default_settings())
    assert result.ok
    assert result.errors == []


def test_close_before_open_is_reported_with_field_path():
    settings = normalize({
        "businessHours": [{"dayOfWeek": 1, "isOpen": True, "open": "20:00", "close": "18:00"}],
    })
    result = validate(settings)
    assert not result.ok
    assert [e.field for e in result.errors] == ["businessHours[1].close"]


def test_span_shorter_than_slot_duration_is_invalid():
    settings = normalize({
        "slotDuration": 120,
        "businessHours": [{"dayOfWeek": 2, "isOpen": True, "open": "18:00", "close": "19:00"}],
    })
    result = validate(settings)
    assert not result.ok
    assert "shorter than one slot" in result.errors[0].message


def test_closed_days_are_not_validated():
    settings = normalize({
        "businessHours": [{"dayOfWeek": 0, "isOpen": False, "open": "20:00", "close": "10:00"}],
    })
    assert validate(settings).ok


def test_multiple_slots_need_an_interval():
    settings = normalize({
        "businessHours": [{"dayOfWeek": 3, "isOpen": True, "open": "10:00", "close": "18:00",
                           "allowMultipleSlots": True}],
    })
    result = validate(settings)
    assert not result.ok
    assert result.errors[0].field == "businessHours[3].slotInterval"


def test_malformed_open_time_is_reported():
    settings = normalize({
        "businessHours": [{"dayOfWeek": 5, "isOpen": True, "open": "6pm", "close": "20:00"}],
    })
    result = validate(settings)
    assert not result.ok
    assert result.errors[0].field == "businessHours[5].open"
