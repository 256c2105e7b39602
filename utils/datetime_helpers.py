from datetime import datetime, timezone
from typing import Optional

def format_utc_datetime(dt: Optional[datetime]) -> Optional[str]:
    """
    Format a datetime object to an ISO 8601 string with 'Z' suffix.

    If the datetime is naive, it is assumed to be in UTC and is made aware.
    If it is timezone-aware, it is converted to UTC.
    
    Args:
        dt: A datetime object or None
        
    Returns:
        An ISO 8601 formatted string with 'Z' suffix, or None if the input is None.
    """
    if dt is None:
        return None

    # If the datetime is naive, assume it's UTC and make it timezone-aware.
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    # If it's already timezone-aware, ensure it's in UTC.
    else:
        dt = dt.astimezone(timezone.utc)

    # Format to ISO string and replace the +00:00 suffix with 'Z'.
    iso_string = dt.isoformat()
    
    if iso_string.endswith('+00:00'):
        return iso_string.replace('+00:00', 'Z')
    
    return iso_string

def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Return `dt` as an aware UTC datetime.

    SQLite hands back naive datetimes even when aware ones were stored, so
    anything read from the database goes through here before arithmetic or
    comparison with `datetime.now(timezone.utc)`.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_between(start: Optional[datetime], end: Optional[datetime]) -> float:
    """Length of [start, end] in hours; 0.0 when either end is missing."""
    if start is None or end is None:
        return 0.0
    return (as_utc(end) - as_utc(start)).total_seconds() / 3600.0
