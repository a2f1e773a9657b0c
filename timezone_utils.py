"""
Timezone utility functions for the field sales system
"""
import pytz
from datetime import datetime, timedelta, timezone
from sqlalchemy.exc import SQLAlchemyError

DEFAULT_TIMEZONE = 'Asia/Kolkata'


def get_system_timezone():
    """Get the configured system timezone, defaults to Asia/Kolkata"""
    from sqlalchemy.sql import text
    try:
        # Avoid direct import of models to prevent circular dependency
        from app import db
        result = db.session.execute(text("SELECT value FROM settings WHERE key = 'system_timezone'")).fetchone()
        timezone_str = result[0] if result else DEFAULT_TIMEZONE
    except SQLAlchemyError:
        timezone_str = DEFAULT_TIMEZONE
    try:
        return pytz.timezone(timezone_str)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(DEFAULT_TIMEZONE)


def get_utc_now():
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def get_utc_today():
    """Return current UTC date."""
    return get_utc_now().date()


def get_local_time():
    """Get current time in the configured timezone"""
    return get_utc_now().astimezone(get_system_timezone())


def get_local_today():
    """Business date in the configured timezone (order dates, 'calls today', beat days)"""
    return get_local_time().date()


def localize_datetime(dt):
    """Convert a UTC datetime to local timezone"""
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Assume UTC if no timezone info
        dt = pytz.UTC.localize(dt)

    return dt.astimezone(get_system_timezone())


def format_local_time(dt=None, format_str='%Y-%m-%d %H:%M:%S'):
    """Format datetime in local timezone"""
    if dt is None:
        dt = get_local_time()
    else:
        dt = localize_datetime(dt)
    return dt.strftime(format_str)


def local_day_bounds(day):
    """UTC [start, end) for a local calendar day, for filtering UTC timestamp columns"""
    tz = get_system_timezone()
    start = tz.localize(datetime(day.year, day.month, day.day))
    nxt = day + timedelta(days=1)
    end = tz.localize(datetime(nxt.year, nxt.month, nxt.day))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
