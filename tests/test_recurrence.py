from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from app.services.recurrence import (
    first_payment_date,
    next_occurrence,
    next_payment_date,
    parse_recurrence_time,
    weekday_index,
)
from app.types.scheduling import Recurrence

BA = ZoneInfo("America/Argentina/Buenos_Aires")


def local(*args):
    return datetime(*args, tzinfo=BA)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("07:30", (7, 30)),
        ("7:05", (7, 5)),
        ("23:59", (23, 59)),
        (None, (9, 0)),
        ("", (9, 0)),
        ("25:00", (9, 0)),
        ("12:75", (9, 0)),
        ("noon", (9, 0)),
    ],
)
def test_parse_recurrence_time(value, expected):
    assert parse_recurrence_time(value) == expected


def test_weekday_index_counts_from_sunday():
    assert weekday_index(local(2024, 1, 14, 12, 0)) == 0  # Sunday
    assert weekday_index(local(2024, 1, 15, 12, 0)) == 1  # Monday
    assert weekday_index(local(2024, 1, 20, 12, 0)) == 6  # Saturday


def test_daily_after_time_moves_to_tomorrow():
    now = local(2024, 1, 15, 10, 0)
    assert next_occurrence(now, Recurrence.DAILY, None, "09:00") == local(2024, 1, 16, 9, 0)


def test_daily_before_time_stays_today():
    now = local(2024, 1, 15, 8, 0)
    assert next_occurrence(now, Recurrence.DAILY, None, "09:00") == local(2024, 1, 15, 9, 0)


def test_daily_exactly_at_time_is_not_now():
    now = local(2024, 1, 15, 9, 0)
    assert next_occurrence(now, Recurrence.DAILY, None, "09:00") == local(2024, 1, 16, 9, 0)


def test_daily_defaults_to_nine():
    now = local(2024, 1, 15, 10, 0)
    assert next_occurrence(now, Recurrence.DAILY) == local(2024, 1, 16, 9, 0)


def test_weekly_from_wednesday_to_following_monday():
    now = local(2024, 1, 17, 10, 0)  # Wednesday
    assert next_occurrence(now, Recurrence.WEEKLY, 1, "09:00") == local(2024, 1, 22, 9, 0)


def test_weekly_same_day_before_time_fires_today():
    now = local(2024, 1, 15, 8, 0)  # Monday
    assert next_occurrence(now, Recurrence.WEEKLY, 1, "09:00") == local(2024, 1, 15, 9, 0)


def test_weekly_same_day_after_time_waits_a_week():
    now = local(2024, 1, 15, 10, 0)  # Monday
    assert next_occurrence(now, Recurrence.WEEKLY, 1, "09:00") == local(2024, 1, 22, 9, 0)


def test_weekly_sunday_target():
    now = local(2024, 1, 20, 10, 0)  # Saturday
    assert next_occurrence(now, Recurrence.WEEKLY, 0, "18:30") == local(2024, 1, 21, 18, 30)


def test_monthly_later_this_month():
    now = local(2024, 1, 10, 10, 0)
    assert next_occurrence(now, Recurrence.MONTHLY, 15, "09:00") == local(2024, 1, 15, 9, 0)


def test_monthly_passed_moves_to_next_month():
    now = local(2024, 1, 20, 10, 0)
    assert next_occurrence(now, Recurrence.MONTHLY, 15, "09:00") == local(2024, 2, 15, 9, 0)


def test_monthly_defaults_to_first():
    now = local(2024, 1, 20, 10, 0)
    assert next_occurrence(now, Recurrence.MONTHLY) == local(2024, 2, 1, 9, 0)


def test_monthly_wraps_year():
    now = local(2024, 12, 20, 10, 0)
    assert next_occurrence(now, Recurrence.MONTHLY, 5, "09:00") == local(2025, 1, 5, 9, 0)


def test_monthly_day_31_clamps_to_end_of_short_month():
    now = local(2024, 4, 5, 10, 0)
    assert next_occurrence(now, Recurrence.MONTHLY, 31, "09:00") == local(2024, 4, 30, 9, 0)


def test_monthly_day_31_after_january_clamps_to_leap_february():
    now = local(2024, 1, 31, 10, 0)
    assert next_occurrence(now, Recurrence.MONTHLY, 31, "09:00") == local(2024, 2, 29, 9, 0)


def test_monthly_clamped_day_already_passed_moves_on():
    now = local(2023, 2, 28, 10, 0)
    assert next_occurrence(now, Recurrence.MONTHLY, 30, "09:00") == local(2023, 3, 30, 9, 0)


def test_none_has_no_next_occurrence():
    assert next_occurrence(local(2024, 1, 15, 10, 0), Recurrence.NONE) is None


def test_payment_daily_anchors_on_previous_date():
    previous = local(2024, 1, 15, 9, 0)
    assert next_payment_date(previous, Recurrence.DAILY, None, "18:30") == local(2024, 1, 16, 18, 30)


def test_payment_weekly_adds_seven_days():
    previous = local(2024, 1, 15, 9, 0)
    assert next_payment_date(previous, Recurrence.WEEKLY, 1, "09:00") == local(2024, 1, 22, 9, 0)


def test_payment_monthly_clamps_then_recovers_target_day():
    jan = local(2024, 1, 31, 9, 0)
    feb = next_payment_date(jan, Recurrence.MONTHLY, 31, "09:00")
    assert feb == local(2024, 2, 29, 9, 0)
    assert next_payment_date(feb, Recurrence.MONTHLY, 31, "09:00") == local(2024, 3, 31, 9, 0)


def test_payment_monthly_without_day_keeps_previous_day():
    previous = local(2024, 3, 10, 9, 0)
    assert next_payment_date(previous, Recurrence.MONTHLY) == local(2024, 4, 10, 9, 0)


def test_payment_none_returns_previous():
    previous = local(2024, 3, 10, 9, 0)
    assert next_payment_date(previous, Recurrence.NONE) == previous


def test_first_payment_weekly_same_weekday_is_next_week():
    now = local(2024, 1, 15, 8, 0)  # Monday, before 09:00
    assert first_payment_date(now, Recurrence.WEEKLY, 1, "09:00") == local(2024, 1, 22, 9, 0)


def test_first_payment_monthly_and_daily_follow_reminder_rules():
    now = local(2024, 1, 15, 10, 0)
    assert first_payment_date(now, Recurrence.MONTHLY, 20, "09:00") == local(2024, 1, 20, 9, 0)
    assert first_payment_date(now, Recurrence.DAILY, None, "11:00") == local(2024, 1, 15, 11, 0)


def test_first_payment_one_off_is_one_minute_out():
    now = local(2024, 1, 15, 10, 0)
    assert first_payment_date(now, Recurrence.NONE) == now + timedelta(minutes=1)
