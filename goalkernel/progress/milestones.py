"""Milestone detection against a fixed threshold ladder.

A threshold fires when overall progress reaches it and its name has never been
recorded for the goal. Recorded milestones are permanent, so a goal whose
progress drops and recovers never sees the same milestone twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from goalkernel.progress.history import HistoryLog
from goalkernel.progress.models import Goal, HistoryType, Milestone, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MilestoneThreshold:
    threshold: int  # overall progress percentage
    name: str

    @property
    def description(self) -> str:
        return f"Reached {self.threshold}% of goal"


# Ascending; names are unique.
MILESTONE_LADDER: tuple[MilestoneThreshold, ...] = (
    MilestoneThreshold(threshold=25, name="Quarter Complete"),
    MilestoneThreshold(threshold=50, name="Halfway There"),
    MilestoneThreshold(threshold=75, name="Three Quarters Complete"),
    MilestoneThreshold(threshold=90, name="Almost There"),
    MilestoneThreshold(threshold=100, name="Goal Achieved"),
)


def detect_new_milestones(
    overall_progress: int,
    achieved_names: Iterable[str],
    now: datetime | None = None,
) -> list[Milestone]:
    """Milestones newly crossed at `overall_progress`, in ascending threshold order."""
    achieved = set(achieved_names)
    achieved_at = now or utcnow()
    return [
        Milestone(
            name=step.name,
            threshold=step.threshold,
            description=step.description,
            achieved_at=achieved_at,
        )
        for step in MILESTONE_LADDER
        if overall_progress >= step.threshold and step.name not in achieved
    ]


def record_milestones(goal: Goal, history: HistoryLog, now: datetime | None = None) -> list[Milestone]:
    """Detect, store and log new milestones on `goal`. Returns what was added."""
    new = detect_new_milestones(
        goal.progress.overall_progress,
        (m.name for m in goal.progress.milestones),
        now,
    )
    for milestone in new:
        goal.progress.milestones.append(milestone)
        history.append(
            HistoryType.milestone,
            f"Achieved milestone: {milestone.name}",
            {
                "milestone": milestone.name,
                "threshold": milestone.threshold,
                "overall_progress": goal.progress.overall_progress,
            },
            now=milestone.achieved_at,
        )
    if new:
        logger.info(
            "goal %s reached milestone(s): %s",
            goal.id,
            ", ".join(m.name for m in new),
        )
    return new
