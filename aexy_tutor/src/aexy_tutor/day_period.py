"""
Calendar Day Helpers

Streak and quota bookkeeping work at day granularity. Days are identified
by their ISO date string (YYYY-MM-DD) in UTC, the same format the profiles
table stores in last_login_date and last_conversation_date.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

DayId = str


def _utc_now(now: Optional[datetime] = None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        # Naive datetimes are taken as UTC
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def today(now: Optional[datetime] = None) -> DayId:
    """Return today's day id (UTC)."""
    return _utc_now(now).date().isoformat()


def yesterday(now: Optional[datetime] = None) -> DayId:
    """Return the day id of the day before today (UTC)."""
    return (_utc_now(now).date() - timedelta(days=1)).isoformat()
