"""
UTC datetime utilities for consistent timezone handling.

Every timestamp the engine writes (started_at, completed_at, validation
decisions, due dates) is timezone-aware UTC. Use these helpers instead of
datetime.now() or date.today().
"""

from datetime import UTC, date, datetime, timedelta


def utc_now() -> datetime:
    """
    Return the current UTC datetime with timezone info.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(UTC)


def utc_today() -> date:
    """Return today's date in UTC (the calendar day task due dates count from)."""
    return utc_now().date()


def due_date_after(days: int | None, *, start: date | None = None) -> date | None:
    """
    Compute a task due date as start + days.

    Task templates without a default duration produce tasks without a due
    date. Negative durations are treated as zero.

    Args:
        days: Default duration in days from the task template, or None
        start: Day to count from; defaults to utc_today()

    Returns:
        Due date, or None when no duration is configured
    """
    if days is None:
        return None
    base = start or utc_today()
    return base + timedelta(days=max(days, 0))

