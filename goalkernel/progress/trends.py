"""Windowed trend analytics over a goal — read only.

Rates whose denominator is an elapsed time can legitimately hit zero (a goal
created and queried in the same instant). Those cases raise
ComputationGuardError internally and are reported as 0.0; they never escape.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta
from typing import Iterable

from goalkernel.progress.errors import ComputationGuardError, ValidationError
from goalkernel.progress.models import (
    DailyAction,
    Goal,
    HistoryType,
    Milestone,
    Timeframe,
    TrendReport,
    Trends,
    utcnow,
)
from goalkernel.progress.history import HistoryLog

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0
TREND_HISTORY_TYPES = (HistoryType.modified, HistoryType.milestone)


def _one_month_before(moment: datetime) -> datetime:
    year, month = moment.year, moment.month - 1
    if month == 0:
        year, month = year - 1, 12
    _, last = calendar.monthrange(year, month)
    return moment.replace(year=year, month=month, day=min(moment.day, last))


def parse_timeframe(value: Timeframe | str) -> Timeframe:
    try:
        return Timeframe(value)
    except ValueError:
        raise ValidationError(f"Invalid timeframe: {value!r} (expected week, month or all)")


def resolve_start_date(goal: Goal, timeframe: Timeframe | str, now: datetime) -> datetime:
    tf = parse_timeframe(timeframe)
    if tf == Timeframe.week:
        return now - timedelta(days=7)
    if tf == Timeframe.month:
        return _one_month_before(now)
    return goal.created_at


def elapsed_days(start: datetime, now: datetime) -> float:
    return (now - start).total_seconds() / SECONDS_PER_DAY


def _divide(numerator: float, denominator: float, what: str) -> float:
    if denominator <= 0:
        raise ComputationGuardError(f"{what}: non-positive denominator {denominator}")
    return numerator / denominator


def progress_rate(overall_progress: int, start: datetime, now: datetime) -> float:
    """Percentage points per day since `start`."""
    try:
        return _divide(overall_progress, elapsed_days(start, now), "progress_rate")
    except ComputationGuardError as exc:
        logger.debug("%s; reporting 0.0", exc)
        return 0.0


def _completed_since(actions: list[DailyAction], start: datetime) -> int:
    return sum(1 for a in actions if a.completed_at is not None and a.completed_at >= start)


def consistency_score(actions: list[DailyAction], start: datetime) -> float:
    """Share (0-100) of actions with a completion at or after `start`."""
    if not actions:
        return 0.0
    return (_completed_since(actions, start) / len(actions)) * 100.0


def action_completion_rate(actions: list[DailyAction], start: datetime) -> float:
    """Share (0-100) of actions completed at or after `start`.

    Currently the same formula as consistency_score; kept separate on purpose.
    """
    if not actions:
        return 0.0
    return (_completed_since(actions, start) / len(actions)) * 100.0


def milestone_frequency(milestones: Iterable[Milestone], start: datetime, now: datetime) -> float:
    """Milestones achieved per week since `start`."""
    count = sum(1 for m in milestones if m.achieved_at >= start)
    try:
        return _divide(count, elapsed_days(start, now) / 7.0, "milestone_frequency")
    except ComputationGuardError as exc:
        logger.debug("%s; reporting 0.0", exc)
        return 0.0


def expected_progress(created_at: datetime, target_date: datetime, now: datetime) -> float:
    """Linear share of the goal's lifetime that has elapsed, as a percentage."""
    total = (target_date - created_at).total_seconds()
    if total <= 0:
        raise ValidationError("target_date must be after created_at")
    return ((now - created_at).total_seconds() / total) * 100.0


def is_on_track(goal: Goal, now: datetime | None = None) -> bool:
    now = now or utcnow()
    return goal.progress.overall_progress >= expected_progress(goal.created_at, goal.target_date, now)


def analyze(goal: Goal, timeframe: Timeframe | str = Timeframe.week, now: datetime | None = None) -> TrendReport:
    """Trend report for `goal` over the window selected by `timeframe`."""
    now = now or utcnow()
    tf = parse_timeframe(timeframe)
    start = resolve_start_date(goal, tf, now)
    overall = goal.progress.overall_progress

    trends = Trends(
        progress_rate=progress_rate(overall, start, now),
        consistency_score=consistency_score(goal.daily_actions, start),
        action_completion_rate=action_completion_rate(goal.daily_actions, start),
        milestone_frequency=milestone_frequency(goal.progress.milestones, start, now),
    )

    return TrendReport(
        goal_id=goal.id,
        timeframe=tf,
        start_date=start,
        generated_at=now,
        trends=trends,
        history=HistoryLog(goal.history).since(start, TREND_HISTORY_TYPES),
        current_progress=overall,
        is_on_track=is_on_track(goal, now),
    )
