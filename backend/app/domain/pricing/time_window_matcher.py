"""
Time Window Matcher.

Selects the time-based rules in force at a trip timestamp.
"""

from datetime import datetime, time
from decimal import Decimal
from typing import Iterable, List, Optional

from backend.app.domain.pricing.clock import localize
from backend.app.domain.pricing.entities import TimeBasedRule


def day_of_week(ts: datetime) -> int:
    """Day index with 0 = Sunday ... 6 = Saturday."""
    return ts.isoweekday() % 7


def window_contains(start: time, end: time, moment: time) -> bool:
    """
    Whether `moment` falls in the half-open window [start, end).

    A window whose end is before its start wraps past midnight
    (22:00-04:00 covers 23:30 and 01:00). Equal bounds cover the whole day.
    """
    if start == end:
        return True
    if start < end:
        return start <= moment < end
    return moment >= start or moment < end


class TimeWindowMatcher:

    @staticmethod
    def match(rules: Iterable, timestamp: datetime, tz_name: Optional[str] = None) -> List[TimeBasedRule]:
        """
        Find active time-based rules matching `timestamp`.

        The timestamp is converted to the service timezone first. Its own
        weekday is tested against `days_of_week`, including for the after
        midnight part of an overnight window.

        Returns:
            Matching rules ordered by id.
        """
        local = localize(timestamp, tz_name)
        weekday = day_of_week(local)
        moment = local.time()

        matched = [
            rule for rule in rules
            if isinstance(rule, TimeBasedRule)
            and rule.is_active
            and weekday in rule.days_of_week
            and window_contains(rule.start_time, rule.end_time, moment)
        ]
        return sorted(matched, key=lambda rule: rule.id)

    @staticmethod
    def combined_multiplier(rules: Iterable[TimeBasedRule]) -> Decimal:
        multiplier = Decimal("1")
        for rule in rules:
            multiplier *= rule.surge_multiplier
        return multiplier
