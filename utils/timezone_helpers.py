"""
Timezone utilities. Shifts are stored in UTC; day boundaries, pay periods and
report groupings are computed in the business timezone (APP_TIMEZONE).
"""

import os
from datetime import date, datetime
from datetime import time as datetime_time
from datetime import timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/Chicago")


def from_utc_to_local(utc_dt: datetime, tz: Optional[str] = None) -> datetime:
    """
    Convert UTC datetime to local datetime in the specified timezone.

    Args:
        utc_dt: UTC datetime (naive values are treated as UTC)
        tz: IANA timezone string, defaults to APP_TIMEZONE

    Returns:
        datetime: Local datetime in the specified timezone
    """
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)

    target_tz = ZoneInfo(tz or APP_TIMEZONE)
    return utc_dt.astimezone(target_tz)


def local_date_of(utc_dt: datetime, tz: Optional[str] = None) -> date:
    return from_utc_to_local(utc_dt, tz).date()


def local_start_of_day(date_or_dt, tz: Optional[str] = None) -> datetime:
    """
    Get the start of day (00:00:00) in the specified timezone, as UTC.
    """
    if isinstance(date_or_dt, datetime):
        local_date = date_or_dt.date()
    else:
        local_date = date_or_dt

    target_tz = ZoneInfo(tz or APP_TIMEZONE)
    local_start = datetime.combine(local_date, datetime_time.min, tzinfo=target_tz)
    return local_start.astimezone(timezone.utc)


def local_end_of_day(date_or_dt, tz: Optional[str] = None) -> datetime:
    """
    Get the end of day (23:59:59.999999) in the specified timezone, as UTC.
    """
    if isinstance(date_or_dt, datetime):
        local_date = date_or_dt.date()
    else:
        local_date = date_or_dt

    target_tz = ZoneInfo(tz or APP_TIMEZONE)
    local_end = datetime.combine(local_date, datetime_time.max, tzinfo=target_tz)
    return local_end.astimezone(timezone.utc)


def local_time_on(day: date, minutes: int, tz: Optional[str] = None) -> datetime:
    """UTC instant for `minutes` after local midnight on `day`."""
    target_tz = ZoneInfo(tz or APP_TIMEZONE)
    local_dt = datetime.combine(day, datetime_time.min) + timedelta(minutes=minutes)
    return local_dt.replace(tzinfo=target_tz).astimezone(timezone.utc)


def get_current_time_in_tz(tz: Optional[str] = None) -> datetime:
    utc_now = datetime.now(timezone.utc)
    return from_utc_to_local(utc_now, tz)


def get_pay_period(ref: Optional[datetime] = None, tz: Optional[str] = None) -> Tuple[date, date]:
    """
    Default pay period: Monday through Saturday of the week containing `ref`
    (now when omitted), in local dates.
    """
    local_ref = from_utc_to_local(ref or datetime.now(timezone.utc), tz)
    local_date = local_ref.date()

    # weekday() returns 0=Monday, 6=Sunday
    monday = local_date - timedelta(days=local_date.weekday())
    saturday = monday + timedelta(days=5)
    return monday, saturday


def date_range(start: date, end: date) -> List[date]:
    """Every date from start to end inclusive."""
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def parse_date_param(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD (or full ISO timestamp) query value."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValueError(f"Invalid date: {value}")
