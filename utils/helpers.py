"""Lenient value parsing shared by the JSON endpoints and the bulk importers."""
import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation


def clean_str(value):
    """Trimmed string or None for empty/NaN input"""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    value = str(value).strip()
    return value or None


def truthy(v):
    """Convert various boolean representations to Python bool"""
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    return str(v).strip().lower() in ("1", "true", "yes", "y", "on")


def safe_int(value, default=None):
    """Safely convert value to integer, returning default for empty/invalid values"""
    text = clean_str(value)
    if text is None:
        return default
    try:
        return int(float(text))  # Handle decimals like "30.0"
    except (ValueError, TypeError, OverflowError):
        return default


def safe_float(value, default=None):
    """Safely convert value to float, returning default for empty/invalid/NaN values"""
    text = clean_str(value)
    if text is None:
        return default
    try:
        result = float(text)
    except (ValueError, TypeError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def safe_decimal(value, places=2):
    """Round a float to a Decimal for Numeric columns"""
    if value is None:
        return None
    try:
        return Decimal(str(round(float(value), places)))
    except (InvalidOperation, ValueError, TypeError):
        return None


def safe_date(value, default=None):
    """Accept date objects or ISO 'YYYY-MM-DD' strings"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = clean_str(value)
    if text is None:
        return default
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d").date()
    except ValueError:
        return default


def parse_date_field(value, field, default=None):
    """Like safe_date, but a non-empty value that isn't a date is a validation error"""
    from errors import ValidationError
    if clean_str(value) is None:
        return default
    parsed = safe_date(value)
    if parsed is None:
        raise ValidationError(f"Invalid {field}, expected YYYY-MM-DD")
    return parsed
