# Overview: UTC timestamp helpers shared by models, services and routes.

from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO-8601 string to a UTC-naive datetime.

    - None / "" -> None
    - "...Z" or "...+/-HH:MM" is converted to UTC
    - naive values are taken as UTC already
    - a bare date is midnight, or 23:59:59.999999 with end_of_day=True

    Raises ValueError for anything else.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if end_of_day and "T" not in s and " " not in s:
        dt = datetime.combine(dt.date(), time.max)

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_date_window(
    since: Optional[str], until: Optional[str]
) -> tuple[Optional[datetime], Optional[datetime]]:
    """
    Inclusive [since, until] filter bounds from query-string values.

    A bare-date `until` covers that whole day.
    """
    start = parse_iso_datetime(since)
    end = parse_iso_datetime(until, end_of_day=True)
    if start and end and start > end:
        raise ValueError("since must not be after until")
    return start, end


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with trailing 'Z', to the second. Naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
