"""
Timestamp handling shared by every model.

The database keeps UTC only. Values handed back to Python are always aware
UTC datetimes, whatever the backend did with the zone on the way in.
"""
from datetime import datetime, timezone

from sqlalchemy import Column
from sqlalchemy.types import TypeDecorator, DateTime


def utc_now():
    return datetime.now(timezone.utc)


def as_utc(value):
    """Naive values are taken to already be UTC; aware ones are converted."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    timestamptz on Postgres. SQLite has no zone support, so values are stored
    naive and tagged as UTC again when read.
    """
    impl = DateTime
    cache_ok = True

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('timezone', True)
        super().__init__(*args, **kwargs)

    def process_bind_param(self, value, dialect):
        value = as_utc(value)
        if value is not None and dialect.name == 'sqlite':
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        return as_utc(value)


def utc_column(default_now=False, on_update=False, nullable=True):
    """UTCDateTime column, optionally stamped on insert and refreshed on update"""
    return Column(
        UTCDateTime(),
        default=utc_now if default_now else None,
        onupdate=utc_now if on_update else None,
        nullable=nullable,
    )
