from datetime import timezone
from sqlalchemy.types import TypeDecorator, DateTime, String


class UTCDateTime(TypeDecorator):
    """
    Stores UTC timestamps.
    - Postgres: timezone-aware UTC datetimes
    - SQLite: naive UTC datetimes, returned as aware UTC on read
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None

        # Naive values are taken to be UTC already
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)

        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class LowerCaseString(TypeDecorator):
    """
    String column that trims and lower-cases on write.
    Used for vocabulary columns (roles, customer types, statuses) so
    'Retail' and 'retail ' land as the same value.
    """
    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value).strip().lower()
