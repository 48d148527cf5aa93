from datetime import date, datetime, timedelta
from typing import Optional, Union
import logging
import pytz
from ..config import settings

DateLike = Union[date, datetime, str]


def parse_date(value: Optional[DateLike]) -> Optional[date]:
    """Parse a date, datetime or ISO string into a date"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    formats = [
        '%Y-%m-%dT%H:%M:%S.%fZ',  # With milliseconds
        '%Y-%m-%dT%H:%M:%SZ',     # Without milliseconds
        '%Y-%m-%dT%H:%M:%S',      # Basic ISO format
        '%Y-%m-%dT%H:%M:%S.%f',   # With milliseconds, no Z
        '%Y-%m-%d',
    ]
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
    except ValueError:
        raise ValueError(f"Unable to parse date: {value}")


def week_ending_date(value: DateLike) -> date:
    """Return the Sunday that closes the Monday-to-Sunday week containing value"""
    day = parse_date(value)
    if day is None:
        raise ValueError("A date is required to compute the week ending")
    return day + timedelta(days=6 - day.weekday())


def today(timezone_name: Optional[str] = None) -> date:
    """Current date in the configured timezone"""
    name = timezone_name or settings.TIMEZONE
    try:
        tz = pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logging.error(f"Unknown timezone '{name}', falling back to UTC")
        tz = pytz.utc
    return datetime.now(tz).date()
