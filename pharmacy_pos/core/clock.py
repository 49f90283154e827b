# pharmacy_pos/core/clock.py
from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from pharmacy_pos.core.config import settings


def store_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def now_local() -> datetime:
    """Wall-clock time at the store, naive (DATETIME columns carry no zone)."""
    return datetime.now(timezone.utc).astimezone(store_tz()).replace(tzinfo=None)


def today_local() -> date:
    # Expiry checks, stock alerts and invoice days all count from this date
    return now_local().date()
