# utils/date_utils.py
from datetime import datetime, date, timedelta
from typing import Optional, Union
from fastapi import Header

def parse_timezone_offset(offset_str: Optional[str]) -> int:
    """
    Parse timezone offset from various formats.
    Examples: "300" (minutes), "+05:00", "-08:00"
    """
    if not offset_str:
        return 0

    try:
        # Already in minutes
        if offset_str.lstrip('-').isdigit():
            return int(offset_str)

        # "+05:00" or "-08:00"
        if ':' in offset_str:
            sign = -1 if offset_str.startswith('-') else 1
            parts = offset_str.lstrip('+-').split(':')
            hours = int(parts[0])
            minutes = int(parts[1]) if len(parts) > 1 else 0
            return sign * (hours * 60 + minutes)
    except ValueError:
        pass

    return 0

def get_user_now(timezone_offset: int = 0) -> datetime:
    """Get current datetime in user's timezone."""
    utc_now = datetime.utcnow()
    return utc_now + timedelta(minutes=timezone_offset)

def get_user_today(timezone_offset: int = 0) -> date:
    """Get today's date in user's timezone."""
    return get_user_now(timezone_offset).date()

def now_iso() -> str:
    """UTC timestamp used for createdAt / updatedAt / takenAt fields"""
    return datetime.utcnow().isoformat() + "Z"

def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Accepts 'YYYY-MM-DD' or an ISO datetime string; returns None for anything unparsable"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    value = value.strip()
    if not value:
        return None

    try:
        if 'T' not in value:
            return datetime.strptime(value[:10], '%Y-%m-%d').date()
        return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
    except ValueError:
        return None

def cycle_day_date(start_date: Union[str, date], day_number: int) -> Optional[str]:
    """Calendar date of a cycle day: start date + day_number - 1"""
    start = parse_date(start_date)
    if start is None:
        return None
    return (start + timedelta(days=day_number - 1)).isoformat()

def cycle_day_number(start_date: Union[str, date], day_date: Union[str, date]) -> Optional[int]:
    """Inverse of cycle_day_date; day 1 is the start date"""
    start = parse_date(start_date)
    target = parse_date(day_date)
    if start is None or target is None:
        return None
    return (target - start).days + 1

def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end (never negative)"""
    if end < start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(months, 0)

# FastAPI dependency to extract timezone from headers
async def get_timezone_offset(
    x_timezone_offset: Optional[str] = Header(None),
    x_timezone_string: Optional[str] = Header(None)
) -> int:
    """
    Extract timezone offset from request headers.
    Returns offset in minutes from UTC.
    """
    if x_timezone_offset:
        return parse_timezone_offset(x_timezone_offset)

    if x_timezone_string:
        return parse_timezone_offset(x_timezone_string)

    return 0
