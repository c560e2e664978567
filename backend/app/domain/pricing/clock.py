"""
Timezone helpers for pricing.

Request timestamps are interpreted in the service's local timezone; stored
datetimes without tzinfo (e.g. from SQLite) are taken as UTC.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from backend.app.core.config import settings


def service_tz(tz_name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(tz_name or settings.service_timezone)


def localize(ts: datetime, tz_name: Optional[str] = None) -> datetime:
    """Return `ts` as an aware datetime in the service timezone."""
    tz = service_tz(tz_name)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=tz)
    return ts.astimezone(tz)


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
