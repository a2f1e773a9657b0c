from sqlalchemy import Column, Boolean, String
from db_types import UTCDateTime
from timezone_utils import get_utc_now


class TimestampMixin:
    """
    Adds created_at / updated_at columns maintained on insert and update.

    Usage:
        class Route(db.Model, TimestampMixin):
            ...
    """
    created_at = Column(UTCDateTime(), nullable=False, default=get_utc_now)
    updated_at = Column(UTCDateTime(), nullable=False, default=get_utc_now, onupdate=get_utc_now)


class ActivatableMixin:
    """
    Mixin for master data that is switched off instead of deleted
    (customers, products, price entries, routes).
    Inactive rows stay available to orders and reports that already reference them.
    """
    is_active = Column(Boolean, nullable=False, default=True, server_default='true')
    disabled_at = Column(UTCDateTime(), nullable=True)
    disabled_reason = Column(String(255), nullable=True)

    def disable(self, reason=None):
        """
        Disable/deactivate this record.

        Args:
            reason: Optional reason for disabling
        """
        self.is_active = False
        self.disabled_at = get_utc_now()
        self.disabled_reason = reason

    def enable(self):
        """Re-enable/reactivate this record"""
        self.is_active = True
        self.disabled_at = None
        self.disabled_reason = None
