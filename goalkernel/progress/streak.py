"""Completion streak maintenance.

A streak counts consecutive-day transitions between completions: the first
completion leaves it at 0, a completion on the following calendar day makes it
1, and so on. Days are cut in the server's configured zone, never per user.
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from goalkernel.config import settings


def _tz(tz_name: str | None) -> ZoneInfo:
    return ZoneInfo(tz_name or settings.default_tz)


def local_day(moment: datetime, tz_name: str | None = None) -> date:
    return moment.astimezone(_tz(tz_name)).date()


def day_difference(last: datetime, now: datetime, tz_name: str | None = None) -> int:
    """Whole calendar days between `last` and `now` (negative if `last` is later)."""
    return (local_day(now, tz_name) - local_day(last, tz_name)).days


def next_streak(
    streak: int,
    last_action_completed: datetime | None,
    now: datetime,
    tz_name: str | None = None,
) -> int:
    """Streak after an action is completed at `now`.

    `last_action_completed` is the previous completion, before it is overwritten.
    - no previous completion → unchanged
    - previous completion yesterday → streak + 1
    - a day or more missed → 0
    - same day (or clock skew into the future) → unchanged
    """
    if last_action_completed is None:
        return streak
    diff = day_difference(last_action_completed, now, tz_name)
    if diff == 1:
        return streak + 1
    if diff > 1:
        return 0
    return streak


def expire_streak(
    streak: int,
    last_action_completed: datetime | None,
    now: datetime,
    tz_name: str | None = None,
) -> int:
    """Read-side decay: drop to 0 once a full day has been missed. Never increments."""
    if last_action_completed is None or streak == 0:
        return streak
    if day_difference(last_action_completed, now, tz_name) > 1:
        return 0
    return streak
