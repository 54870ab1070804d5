"""Datetime utilities.

Usage:
    from libs.common.datetime_utils import club_today, to_mmddyyyy

    effective = max(requested_start, club_today())
"""

import time
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from libs.common.config import get_settings


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def club_today() -> date:
    """Return today's date in the clubs' local timezone."""
    tz = ZoneInfo(get_settings().TIMEZONE)
    return datetime.now(tz).date()


def epoch_millis() -> int:
    return int(time.time() * 1000)


def to_mmddyyyy(value: date, sep: str = "/") -> str:
    """Format a date the way the legacy store expects: ``MM/DD/YYYY``."""
    return f"{value.month:02d}{sep}{value.day:02d}{sep}{value.year:04d}"
