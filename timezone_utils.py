"""
Timezone helpers for intake batch numbering
"""
import pytz
from sqlalchemy.sql import text

from db_types import utc_now

DEFAULT_TIMEZONE = 'Europe/Athens'


def get_system_timezone():
    """Get the configured warehouse timezone, defaults to Europe/Athens"""
    from app import db
    try:
        # Raw SQL keeps this importable from models without a circular import
        result = db.session.execute(
            text("SELECT value FROM settings WHERE key = 'system_timezone'")
        ).fetchone()
        timezone_str = result[0] if result else DEFAULT_TIMEZONE
        return pytz.timezone(timezone_str)
    except Exception:
        return pytz.timezone(DEFAULT_TIMEZONE)


def get_local_time():
    """Get current time in the configured timezone"""
    return utc_now().astimezone(get_system_timezone())
