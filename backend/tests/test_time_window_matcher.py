"""
Time window matching tests.

Weekday filtering and windows that wrap past midnight.
"""

from datetime import datetime, time, timezone
from decimal import Decimal

import pytest

from backend.app.domain.pricing.entities import TimeBasedRule
from backend.app.domain.pricing.time_window_matcher import (
    TimeWindowMatcher, day_of_week, window_contains
)

# 2024-01-01 was a Monday
TUESDAY_2330 = datetime(2024, 1, 2, 23, 30, tzinfo=timezone.utc)
WEDNESDAY_0100 = datetime(2024, 1, 3, 1, 0, tzinfo=timezone.utc)
WEDNESDAY_0500 = datetime(2024, 1, 3, 5, 0, tzinfo=timezone.utc)
SATURDAY_0100 = datetime(2024, 1, 6, 1, 0, tzinfo=timezone.utc)
SUNDAY_2330 = datetime(2024, 1, 7, 23, 30, tzinfo=timezone.utc)

WEEKDAYS = frozenset({1, 2, 3, 4, 5})


def night_rule(rule_id=1, multiplier="1.50", days=WEEKDAYS, **kwargs):
    return TimeBasedRule(
        id=rule_id,
        name="Weeknight surcharge",
        start_time=time(22, 0),
        end_time=time(4, 0),
        days_of_week=days,
        surge_multiplier=Decimal(multiplier),
        **kwargs
    )


def test_day_of_week_starts_on_sunday():
    assert day_of_week(SUNDAY_2330) == 0
    assert day_of_week(TUESDAY_2330) == 2
    assert day_of_week(SATURDAY_0100) == 6


@pytest.mark.parametrize("moment,expected", [
    (time(21, 59), False),
    (time(22, 0), True),
    (time(23, 30), True),
    (time(0, 0), True),
    (time(3, 59), True),
    (time(4, 0), False),
    (time(12, 0), False),
])
def test_overnight_window(moment, expected):
    assert window_contains(time(22, 0), time(4, 0), moment) is expected


def test_same_day_window_is_half_open():
    assert window_contains(time(7, 0), time(10, 0), time(7, 0)) is True
    assert window_contains(time(7, 0), time(10, 0), time(10, 0)) is False


def test_equal_bounds_cover_whole_day():
    assert window_contains(time(0, 0), time(0, 0), time(13, 45)) is True


def test_tuesday_late_night_matches():
    matched = TimeWindowMatcher.match([night_rule()], TUESDAY_2330)
    assert [rule.id for rule in matched] == [1]


def test_wednesday_after_window_does_not_match():
    assert TimeWindowMatcher.match([night_rule()], WEDNESDAY_0500) == []


def test_tail_after_midnight_uses_own_weekday():
    # Wednesday 01:00 is in the window and Wednesday is listed
    assert len(TimeWindowMatcher.match([night_rule()], WEDNESDAY_0100)) == 1
    # Saturday 01:00 is the tail of Friday's window but Saturday is not listed
    assert TimeWindowMatcher.match([night_rule()], SATURDAY_0100) == []


def test_inactive_rule_is_ignored():
    assert TimeWindowMatcher.match([night_rule(is_active=False)], TUESDAY_2330) == []


def test_timestamp_is_converted_to_service_timezone():
    # 23:30 UTC on Tuesday is 00:30 Wednesday in Lagos (UTC+1)
    rule = TimeBasedRule(
        id=1,
        name="After midnight",
        start_time=time(0, 0),
        end_time=time(1, 0),
        days_of_week=frozenset({3}),
    )
    assert len(TimeWindowMatcher.match([rule], TUESDAY_2330, tz_name="Africa/Lagos")) == 1
    assert TimeWindowMatcher.match([rule], TUESDAY_2330, tz_name="UTC") == []


def test_overlapping_rules_multiply():
    rules = [night_rule(1, "1.50"), night_rule(2, "1.20", days=frozenset(range(7)))]
    matched = TimeWindowMatcher.match(rules, TUESDAY_2330)

    assert [rule.id for rule in matched] == [1, 2]
    assert TimeWindowMatcher.combined_multiplier(matched) == Decimal("1.8")


def test_days_of_week_out_of_range_is_rejected():
    with pytest.raises(ValueError):
        night_rule(days=frozenset({7}))
