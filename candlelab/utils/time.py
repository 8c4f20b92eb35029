"""Time helper utilities."""
from __future__ import annotations

from datetime import date, datetime, time, timezone

import pandas as pd


def iso_to_unix(value: str) -> int:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed) into unix seconds.

    Naive timestamps are treated as UTC.
    """
    stamp = pd.Timestamp(value)
    if stamp.tzinfo is None:
        stamp = stamp.tz_localize("UTC")
    return int(stamp.timestamp())


def session_open(day: date | None = None, hour: int = 9) -> datetime:
    """Return the local session open (``hour``:00) for ``day`` (today by default)."""
    day = day or date.today()
    return datetime.combine(day, time(hour=hour))


def day_bounds_utc(start_date: str, end_date: str) -> tuple[datetime, datetime]:
    """Expand ``YYYY-MM-DD`` dates to the first and last instant of the range in UTC."""
    start = datetime.combine(date.fromisoformat(start_date), time.min, tzinfo=timezone.utc)
    end = datetime.combine(date.fromisoformat(end_date), time.max, tzinfo=timezone.utc)
    return start, end
