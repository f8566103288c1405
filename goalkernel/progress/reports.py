"""Read-only reports built from goal snapshots: chart data and the dashboard summary."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from goalkernel.progress.errors import GoalEngineError
from goalkernel.progress.models import (
    ActionCompletionPoint,
    Goal,
    GoalStatus,
    MetricProgressPoint,
    MilestonePoint,
    ProgressSummary,
    RecentMilestone,
    VisualizationData,
    utcnow,
)
from goalkernel.progress.trends import is_on_track

logger = logging.getLogger(__name__)


def visualization_data(goal: Goal, now: datetime | None = None) -> VisualizationData:
    now = now or utcnow()
    return VisualizationData(
        goal_id=goal.id,
        metric_progress=[
            MetricProgressPoint(name=m.name, current=m.current_value, target=m.target, progress=m.progress)
            for m in goal.metrics
        ],
        action_completion=[
            ActionCompletionPoint(title=a.title, completed=a.completed, completed_at=a.completed_at)
            for a in goal.daily_actions
        ],
        milestone_timeline=[
            MilestonePoint(name=m.name, achieved_at=m.achieved_at) for m in goal.progress.milestones
        ],
        overall_progress=goal.progress.overall_progress,
        streak=goal.progress.streak,
        time_remaining_seconds=(goal.target_date - now).total_seconds(),
    )


def progress_summary(
    owner_id: str,
    goals: Iterable[Goal],
    now: datetime | None = None,
    recent_limit: int = 5,
) -> ProgressSummary:
    """Dashboard fan-out over all of an owner's goals.

    Every goal is counted. A goal whose schedule cannot be evaluated is left
    out of the on-track figure with a warning; the others are still evaluated.
    """
    now = now or utcnow()
    goals = list(goals)
    summary = ProgressSummary(owner_id=owner_id, generated_at=now)
    recent: list[RecentMilestone] = []

    for goal in goals:
        recent.extend(
            RecentMilestone(
                goal_id=goal.id,
                goal_title=goal.title,
                name=m.name,
                threshold=m.threshold,
                achieved_at=m.achieved_at,
            )
            for m in goal.progress.milestones
        )
        if goal.status != GoalStatus.active:
            continue
        try:
            on_track = is_on_track(goal, now)
        except GoalEngineError as exc:
            logger.warning("skipping goal %s in on-track count: %s", goal.id, exc)
            summary.warnings.append(f"Goal {goal.id} skipped: {exc}")
            continue
        if on_track:
            summary.on_track_goals += 1

    summary.total_goals = len(goals)
    summary.active_goals = sum(1 for g in goals if g.status == GoalStatus.active)
    summary.completed_goals = sum(1 for g in goals if g.status == GoalStatus.completed)
    if goals:
        summary.average_progress = sum(g.progress.overall_progress for g in goals) / len(goals)
        summary.total_streak = sum(g.progress.streak for g in goals)

    recent.sort(key=lambda r: r.achieved_at, reverse=True)
    summary.recent_milestones = recent[:recent_limit]
    return summary
