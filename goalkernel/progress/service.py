"""GoalProgressService — every write to a goal goes through here.

Each public operation is one load → mutate a private copy → validate → save
cycle. Validation failures are raised before the store is touched, and the
loaded object itself is never modified, so a goal is never left half-updated.

Write path per mutation:
    aggregate progress → maintain streak → detect milestones (logged) → save
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Callable, Mapping, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from goalkernel.config import settings
from goalkernel.progress import reports, trends
from goalkernel.progress.aggregator import overall_progress
from goalkernel.progress.errors import NotFoundError, ValidationError
from goalkernel.progress.history import HistoryLog
from goalkernel.progress.milestones import record_milestones
from goalkernel.progress.models import (
    DailyActionInput,
    Goal,
    GoalCreate,
    GoalPatch,
    GoalStatus,
    HistoryType,
    MetricInput,
    ProgressSummary,
    Timeframe,
    TrendReport,
    VisualizationData,
    as_utc,
    utcnow,
)
from goalkernel.progress.store import GoalStore
from goalkernel.progress.streak import day_difference, expire_streak, next_streak

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _coerce(model_cls: type[M], data: M | Mapping[str, Any]) -> M:
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def _validated(goal: Goal) -> Goal:
    """Re-run every model validator over a mutated goal before it is saved."""
    try:
        return Goal.model_validate(goal.model_dump())
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


class GoalProgressService:
    def __init__(
        self,
        store: GoalStore,
        clock: Callable[[], datetime] = utcnow,
        tz_name: str | None = None,
    ):
        self.store = store
        self.clock = clock
        self.tz_name = tz_name or settings.default_tz

    # -----------------------------------------------------------------------
    # internals
    # -----------------------------------------------------------------------

    def _now(self) -> datetime:
        return as_utc(self.clock())

    async def _load(self, goal_id: str, owner_id: str) -> Goal:
        goal = await self.store.find_by_id(goal_id, owner_id)
        if goal is None:
            raise NotFoundError("Goal", goal_id)
        return goal.model_copy(deep=True)

    def _refresh(self, goal: Goal, history: HistoryLog, now: datetime) -> None:
        progress = goal.progress
        progress.overall_progress = overall_progress(goal.metrics)
        progress.streak = expire_streak(progress.streak, progress.last_action_completed, now, self.tz_name)
        progress.last_updated = now
        record_milestones(goal, history, now)

    async def _commit(self, goal: Goal) -> Goal:
        return await self.store.save(_validated(goal))

    # -----------------------------------------------------------------------
    # writes
    # -----------------------------------------------------------------------

    async def create_goal(self, owner_id: str, data: GoalCreate | Mapping[str, Any]) -> Goal:
        payload = _coerce(GoalCreate, data)
        now = self._now()
        if payload.target_date <= now:
            raise ValidationError("Target date must be in the future")

        try:
            goal = Goal(owner_id=owner_id, created_at=now, **payload.model_dump())
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc
        goal.progress.last_updated = now
        HistoryLog(goal.history).append(
            HistoryType.created,
            "Goal created",
            {"category": goal.category.value, "target_date": goal.target_date.isoformat()},
            now=now,
        )
        logger.info("creating goal %s for owner %s", goal.id, owner_id)
        return await self.store.add(goal)

    async def record_metric_update(
        self,
        goal_id: str,
        owner_id: str,
        metric_id: str,
        new_value: float,
    ) -> Goal:
        if isinstance(new_value, bool) or not isinstance(new_value, (int, float)) or not math.isfinite(new_value):
            raise ValidationError(f"Metric value must be a finite number (got {new_value!r})")
        if new_value < 0:
            raise ValidationError("Metric value must be greater than or equal to 0")

        goal = await self._load(goal_id, owner_id)
        metric = goal.find_metric(metric_id)
        if metric is None:
            raise NotFoundError("Metric", metric_id)

        now = self._now()
        history = HistoryLog(goal.history)
        previous = metric.current_value
        metric.current_value = float(new_value)
        history.append(
            HistoryType.modified,
            "Metric progress updated",
            {
                "metric_id": metric_id,
                "previous_value": previous,
                "new_value": metric.current_value,
                "progress": metric.progress,
            },
            now=now,
        )
        self._refresh(goal, history, now)
        logger.info("goal %s metric %s: %s -> %s", goal_id, metric_id, previous, metric.current_value)
        return await self._commit(goal)

    async def record_action_completion(
        self,
        goal_id: str,
        owner_id: str,
        action_id: str,
        completed: bool,
    ) -> Goal:
        if not isinstance(completed, bool):
            raise ValidationError(f"completed must be a boolean (got {completed!r})")

        goal = await self._load(goal_id, owner_id)
        action = goal.find_action(action_id)
        if action is None:
            raise NotFoundError("Action", action_id)

        now = self._now()
        history = HistoryLog(goal.history)
        progress = goal.progress
        # A completion left over from an earlier day counts as a fresh one.
        became_complete = completed and (
            not action.completed
            or action.completed_at is None
            or day_difference(action.completed_at, now, self.tz_name) > 0
        )

        if became_complete:
            action.completed = True
            action.completed_at = now
            # Compare against the previous completion, then stamp this one.
            progress.streak = next_streak(progress.streak, progress.last_action_completed, now, self.tz_name)
            progress.last_action_completed = now
        elif not completed:
            action.completed = False
            action.completed_at = None

        history.append(
            HistoryType.modified,
            "Daily action status updated",
            {"action_id": action_id, "completed": completed, "streak": progress.streak},
            now=now,
        )
        self._refresh(goal, history, now)
        logger.info("goal %s action %s completed=%s streak=%s", goal_id, action_id, completed, progress.streak)
        return await self._commit(goal)

    async def apply_modification(
        self,
        goal_id: str,
        owner_id: str,
        patch: GoalPatch | Mapping[str, Any],
        note: str | None = None,
    ) -> Goal:
        patch = _coerce(GoalPatch, patch)
        note = note.strip() if note else None
        fields = patch.changed_fields()
        if not fields and not note:
            raise ValidationError("Modification contains no changes")

        now = self._now()
        if patch.target_date is not None and patch.target_date <= now:
            raise ValidationError("Target date must be in the future")

        goal = await self._load(goal_id, owner_id)
        changes: dict[str, dict[str, Any]] = {}
        for field in fields:
            value = getattr(patch, field)
            if field == "metrics":
                value = [m.to_metric() for m in value]
            elif field == "daily_actions":
                value = [a.to_action() for a in value]

            before = goal.model_dump(mode="json", include={field})[field]
            setattr(goal, field, value)
            after = goal.model_dump(mode="json", include={field})[field]
            if before != after:
                changes[field] = {"from": before, "to": after}

        if not changes and not note:
            raise ValidationError("Modification does not change the goal")

        history = HistoryLog(goal.history)
        history.append(HistoryType.modified, "Goal modified", {"changes": changes, "note": note}, now=now)
        self._refresh(goal, history, now)
        logger.info("goal %s modified: %s", goal_id, ", ".join(changes) or "note only")
        return await self._commit(goal)

    async def add_metric(self, goal_id: str, owner_id: str, data: MetricInput | Mapping[str, Any]) -> Goal:
        payload = _coerce(MetricInput, data)
        goal = await self._load(goal_id, owner_id)
        now = self._now()
        metric = payload.to_metric()
        goal.metrics.append(metric)

        history = HistoryLog(goal.history)
        history.append(HistoryType.modified, "New metric added", {"metric": metric.model_dump(mode="json")}, now=now)
        self._refresh(goal, history, now)
        return await self._commit(goal)

    async def add_daily_action(
        self,
        goal_id: str,
        owner_id: str,
        data: DailyActionInput | Mapping[str, Any],
    ) -> Goal:
        payload = _coerce(DailyActionInput, data)
        goal = await self._load(goal_id, owner_id)
        now = self._now()
        action = payload.to_action()
        goal.daily_actions.append(action)

        HistoryLog(goal.history).append(
            HistoryType.modified,
            "New daily action added",
            {"action": action.model_dump(mode="json")},
            now=now,
        )
        return await self._commit(goal)

    async def change_status(
        self,
        goal_id: str,
        owner_id: str,
        status: GoalStatus | str,
        reason: str | None = None,
    ) -> Goal:
        try:
            new_status = GoalStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status!r}")

        goal = await self._load(goal_id, owner_id)
        old_status = goal.status
        if new_status == old_status:
            raise ValidationError(f"Goal is already {old_status.value}")

        now = self._now()
        goal.status = new_status
        HistoryLog(goal.history).append(
            HistoryType.status_change,
            f"Status changed from {old_status.value} to {new_status.value}",
            {"from": old_status.value, "to": new_status.value, "reason": reason},
            now=now,
        )
        logger.info("goal %s status %s -> %s", goal_id, old_status.value, new_status.value)
        return await self._commit(goal)

    # -----------------------------------------------------------------------
    # reads
    # -----------------------------------------------------------------------

    async def get_goal(self, goal_id: str, owner_id: str) -> Goal:
        return await self._load(goal_id, owner_id)

    async def list_goals(self, owner_id: str) -> list[Goal]:
        return await self.store.list_for_owner(owner_id)

    async def get_progress_trends(
        self,
        goal_id: str,
        owner_id: str,
        timeframe: Timeframe | str | None = None,
    ) -> TrendReport:
        goal = await self._load(goal_id, owner_id)
        return trends.analyze(goal, timeframe or settings.trends_default_timeframe, self._now())

    async def get_visualization_data(self, goal_id: str, owner_id: str) -> VisualizationData:
        goal = await self._load(goal_id, owner_id)
        return reports.visualization_data(goal, self._now())

    async def get_progress_summary(self, owner_id: str) -> ProgressSummary:
        goals = await self.store.list_for_owner(owner_id)
        return reports.progress_summary(
            owner_id,
            goals,
            self._now(),
            recent_limit=settings.summary_recent_milestones,
        )
