"""
Server-side time authority for exam sessions.

The deadline is never stored. It is always derived from the session's
``started_at`` and the exam's ``time_limit`` (minutes) as read from the
catalog, so a client cannot move it. All datetimes handled here are naive
UTC, matching what the database columns hold.
"""
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC (remove tzinfo). If already naive, assume UTC and return as-is.
    Returns None if input is None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # assume naive datetimes are already UTC
        return dt
    # convert to UTC and drop tzinfo
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def deadline_for(started_at: datetime, time_limit_minutes: int) -> datetime:
    return to_naive_utc(started_at) + timedelta(minutes=time_limit_minutes)


def remaining_seconds(deadline: datetime, now: datetime | None = None) -> int:
    now = to_naive_utc(now) if now is not None else utcnow()
    return max(0, int((to_naive_utc(deadline) - now).total_seconds()))


def is_expired(started_at: datetime, time_limit_minutes: int, now: datetime | None = None,
               grace_seconds: int = 0) -> bool:
    """True once ``now`` is past the deadline plus ``grace_seconds``."""
    now = to_naive_utc(now) if now is not None else utcnow()
    cutoff = deadline_for(started_at, time_limit_minutes) + timedelta(seconds=grace_seconds)
    return now > cutoff


def is_within_window(available_from: datetime | None, available_to: datetime | None,
                     now: datetime | None = None) -> bool:
    now = to_naive_utc(now) if now is not None else utcnow()
    if available_from is not None and to_naive_utc(available_from) > now:
        return False
    if available_to is not None and to_naive_utc(available_to) < now:
        return False
    return True
