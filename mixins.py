from sqlalchemy import Column, DateTime, String, Boolean
from datetime import datetime, timezone


class ActivatableMixin:
    """
    Mixin for reference rows that can be switched off without deleting them
    (keyword rules, age overrides, classic title overrides). Inactive rows
    stay in the table for audit but are ignored by classification.

    Usage:
        class ClassificationKeyword(db.Model, ActivatableMixin):
            ...
    """
    is_active = Column(Boolean, nullable=False, default=True, server_default='1')
    disabled_at = Column(DateTime, nullable=True)
    disabled_reason = Column(String(255), nullable=True)

    def disable(self, reason=None):
        """
        Deactivate this row.

        Args:
            reason: Optional reason for disabling
        """
        self.is_active = False
        self.disabled_at = datetime.now(timezone.utc).replace(tzinfo=None)
        self.disabled_reason = reason

    def enable(self):
        """Re-activate this row"""
        self.is_active = True
        self.disabled_at = None
        self.disabled_reason = None
