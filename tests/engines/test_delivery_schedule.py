"""
Tests for dairy_engines.schedule -- delivery due-date policy.
"""

from datetime import date

import pytest

from dairy_engines.schedule import (
    ALTERNATE_EPOCH,
    DeliverySchedule,
    is_alternate_day,
    is_delivery_due,
    is_on_vacation,
    parse_legacy_schedule,
    weekday_number,
)
from dairy_kernel.exceptions import InvalidScheduleError

MONDAY = date(2024, 1, 15)
SUNDAY = date(2024, 1, 14)


# =============================================================================
# Subscription types
# =============================================================================


class TestSubscriptionTypes:
    def test_daily_is_always_due(self):
        assert all(is_delivery_due("daily", date(2024, 1, d)) for d in range(1, 32))

    def test_weekly_only_on_sunday(self):
        assert is_delivery_due("weekly", SUNDAY)
        assert not is_delivery_due("weekly", MONDAY)

    def test_weekly_day_is_configurable(self):
        assert is_delivery_due("weekly", MONDAY, weekly_day=0)
        assert not is_delivery_due("weekly", SUNDAY, weekly_day=0)

    def test_custom_without_schedule_fails_open(self):
        assert is_delivery_due("custom", MONDAY)

    def test_unknown_type_fails_open(self):
        assert is_delivery_due("fortnightly", MONDAY)


class TestAlternateSchedule:
    def test_epoch_and_every_second_day(self):
        assert is_delivery_due("alternate", date(2024, 1, 1))
        assert not is_delivery_due("alternate", date(2024, 1, 2))
        assert is_delivery_due("alternate", date(2024, 1, 3))

    def test_days_before_epoch(self):
        assert is_alternate_day(date(2023, 12, 30))
        assert not is_alternate_day(date(2023, 12, 31))

    def test_parity_crosses_month_boundary(self):
        # 2024-01-31 is day 30 from the epoch; 2024-02-01 is day 31
        assert is_alternate_day(date(2024, 1, 31))
        assert not is_alternate_day(date(2024, 2, 1))

    def test_custom_epoch(self):
        epoch = date(2024, 1, 2)
        assert is_delivery_due("alternate", date(2024, 1, 2), alternate_epoch=epoch)
        assert not is_delivery_due("alternate", date(2024, 1, 1), alternate_epoch=epoch)

    def test_default_epoch(self):
        assert ALTERNATE_EPOCH == date(2024, 1, 1)


# =============================================================================
# Structured schedule
# =============================================================================


class TestDeliverySchedule:
    def test_schedule_overrides_subscription_type(self):
        schedule = DeliverySchedule.from_mapping(
            {"delivery_days": {"monday": True, "sunday": False}}
        )
        assert is_delivery_due("weekly", MONDAY, schedule)
        assert not is_delivery_due("daily", SUNDAY, schedule)

    def test_missing_weekday_means_no_delivery(self):
        schedule = DeliverySchedule.from_mapping({"delivery_days": {"monday": True}})
        assert not schedule.delivers_on(date(2024, 1, 16))

    def test_no_delivery_days_returns_none(self):
        assert DeliverySchedule.from_mapping({"auto_deliver": True}) is None
        assert DeliverySchedule.from_mapping(None) is None
        assert DeliverySchedule.from_mapping({}) is None

    def test_auto_deliver_flag(self):
        schedule = DeliverySchedule.from_mapping(
            {"delivery_days": {"monday": True}, "auto_deliver": True}
        )
        assert schedule.auto_deliver is True

    def test_weekday_names_are_case_insensitive(self):
        schedule = DeliverySchedule.from_mapping({"delivery_days": {"Monday": True}})
        assert schedule.days == frozenset({0})

    def test_unknown_weekday_rejected(self):
        with pytest.raises(InvalidScheduleError, match="unknown weekday"):
            DeliverySchedule.from_mapping({"delivery_days": {"funday": True}})

    def test_non_boolean_flag_rejected(self):
        with pytest.raises(InvalidScheduleError):
            DeliverySchedule.from_mapping({"delivery_days": {"monday": "yes"}})

    def test_to_mapping_lists_every_weekday(self):
        mapping = DeliverySchedule(days=frozenset({0, 2})).to_mapping()
        assert mapping["delivery_days"]["monday"] is True
        assert mapping["delivery_days"]["wednesday"] is True
        assert mapping["delivery_days"]["sunday"] is False
        assert len(mapping["delivery_days"]) == 7


class TestLegacySchedule:
    def test_blob_inside_notes(self):
        notes = 'Gate code 1234. Schedule:{"delivery_days": {"friday": true}} ring twice'
        schedule = parse_legacy_schedule(notes)
        assert schedule.days == frozenset({4})

    def test_notes_without_marker(self):
        assert parse_legacy_schedule("Leave at the door") is None
        assert parse_legacy_schedule(None) is None

    def test_undecodable_blob_raises(self):
        with pytest.raises(InvalidScheduleError, match="legacy notes blob"):
            parse_legacy_schedule("Schedule:{not json")


# =============================================================================
# Vacations and helpers
# =============================================================================


class TestVacation:
    def test_window_is_inclusive(self):
        windows = ((date(2024, 1, 10), date(2024, 1, 12)),)
        assert is_on_vacation(date(2024, 1, 10), windows)
        assert is_on_vacation(date(2024, 1, 12), windows)
        assert not is_on_vacation(date(2024, 1, 13), windows)

    def test_no_windows(self):
        assert not is_on_vacation(MONDAY, ())


def test_weekday_number():
    assert weekday_number("Sunday") == 6
    assert weekday_number(" monday ") == 0
    with pytest.raises(ValueError, match="Unknown weekday"):
        weekday_number("someday")
