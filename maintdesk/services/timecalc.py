from __future__ import annotations
from datetime import datetime, timedelta, timezone

SECONDS_PER_DAY = 24 * 3600


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Serialize as UTC with a trailing ``Z``, millisecond precision."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(ts: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp string.
    Naive values are taken as UTC. Returns None if ts is falsy.
    """
    if not ts:
        return None
    dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def days_between(start_iso: str | None, now: datetime) -> float:
    """Fractional days from ``start_iso`` to ``now`` (not floored, may be negative)."""
    start = parse_iso(start_iso)
    if start is None:
        return 0.0
    return (now - start).total_seconds() / SECONDS_PER_DAY


def add_days(dt: datetime, days: int | float) -> datetime:
    return dt + timedelta(days=days)


def within_last_days(ts: str | None, days: int, now: datetime) -> bool:
    moment = parse_iso(ts)
    if moment is None:
        return False
    return (now - moment).total_seconds() <= days * SECONDS_PER_DAY
