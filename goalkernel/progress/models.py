"""Goal aggregate, its value types, and the engine's input/report contracts (Pydantic v2)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, Field, computed_field, field_validator, model_validator

from goalkernel.progress.aggregator import metric_progress

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC so every comparison is aware-vs-aware.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _unique_days(days: list[int]) -> list[int]:
    if len(set(days)) != len(days):
        raise ValueError("scheduled_days must not contain duplicates")
    return days


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
ScheduledDay = Annotated[int, Field(ge=0, le=6)]
ScheduledDays = Annotated[list[ScheduledDay], AfterValidator(_unique_days)]


class GoalCategory(str, Enum):
    fitness = "fitness"
    career = "career"
    personal = "personal"
    health = "health"
    other = "other"


class GoalStatus(str, Enum):
    active = "active"
    completed = "completed"
    failed = "failed"
    paused = "paused"


class ActionFrequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    custom = "custom"


class HistoryType(str, Enum):
    created = "created"
    modified = "modified"
    milestone = "milestone"
    status_change = "status_change"


class Timeframe(str, Enum):
    week = "week"
    month = "month"
    all = "all"


# ---------------------------------------------------------------------------
# Goal aggregate
# ---------------------------------------------------------------------------


class Metric(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1, max_length=50)
    target: float = Field(gt=0)
    current_value: float = Field(default=0.0, ge=0)
    unit: str = Field(min_length=1, max_length=20)

    model_config = {"str_strip_whitespace": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def progress(self) -> float:
        return metric_progress(self.current_value, self.target)


class DailyAction(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    frequency: ActionFrequency = ActionFrequency.daily
    scheduled_days: ScheduledDays = Field(default_factory=list)
    scheduled_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    requires_check_in: bool = False
    completed: bool = False
    completed_at: UtcDatetime | None = None

    model_config = {"str_strip_whitespace": True}

    @model_validator(mode="after")
    def _completed_at_iff_completed(self) -> "DailyAction":
        if self.completed != (self.completed_at is not None):
            raise ValueError("completed_at must be set if and only if completed is true")
        return self


class Milestone(BaseModel):
    name: str
    threshold: int
    description: str = ""
    achieved_at: UtcDatetime


class HistoryEntry(BaseModel):
    type: HistoryType
    description: str
    timestamp: UtcDatetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class GoalProgress(BaseModel):
    overall_progress: int = Field(default=0, ge=0, le=100)
    last_updated: UtcDatetime = Field(default_factory=utcnow)
    streak: int = Field(default=0, ge=0)
    last_action_completed: UtcDatetime | None = None
    milestones: list[Milestone] = Field(default_factory=list)

    @field_validator("milestones")
    @classmethod
    def _unique_names(cls, milestones: list[Milestone]) -> list[Milestone]:
        names = [m.name for m in milestones]
        if len(set(names)) != len(names):
            raise ValueError("milestone names must be unique per goal")
        return milestones


class Goal(BaseModel):
    """The aggregate: one user's goal with its inputs, snapshot and log."""

    id: str = Field(default_factory=_new_id)
    owner_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    category: GoalCategory
    created_at: UtcDatetime = Field(default_factory=utcnow)
    target_date: UtcDatetime
    status: GoalStatus = GoalStatus.active

    metrics: list[Metric] = Field(default_factory=list)
    daily_actions: list[DailyAction] = Field(default_factory=list)
    progress: GoalProgress = Field(default_factory=GoalProgress)
    history: list[HistoryEntry] = Field(default_factory=list)

    version: int = 0  # bumped by the store on every successful save

    model_config = {"str_strip_whitespace": True}

    @model_validator(mode="after")
    def _target_after_creation(self) -> "Goal":
        if self.target_date <= self.created_at:
            raise ValueError("target_date must be after created_at")
        return self

    def find_metric(self, metric_id: str) -> Metric | None:
        return next((m for m in self.metrics if m.id == metric_id), None)

    def find_action(self, action_id: str) -> DailyAction | None:
        return next((a for a in self.daily_actions if a.id == action_id), None)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class MetricInput(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    target: float = Field(gt=0)
    unit: str = Field(min_length=1, max_length=20)
    current_value: float = Field(default=0.0, ge=0)

    model_config = {"str_strip_whitespace": True, "extra": "forbid"}

    def to_metric(self) -> Metric:
        return Metric(**self.model_dump())


class DailyActionInput(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    frequency: ActionFrequency = ActionFrequency.daily
    scheduled_days: ScheduledDays = Field(default_factory=list)
    scheduled_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    requires_check_in: bool = False

    model_config = {"str_strip_whitespace": True, "extra": "forbid"}

    def to_action(self) -> DailyAction:
        return DailyAction(**self.model_dump())


class GoalCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    category: GoalCategory
    target_date: UtcDatetime

    model_config = {"str_strip_whitespace": True, "extra": "forbid"}


class GoalPatch(BaseModel):
    """Enumerated set of fields a modification may touch.

    Unknown keys are rejected. A field present with a null value is rejected too:
    every patchable field is required on the goal.
    """

    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    category: GoalCategory | None = None
    target_date: UtcDatetime | None = None
    metrics: list[MetricInput] | None = None
    daily_actions: list[DailyActionInput] | None = None

    model_config = {"str_strip_whitespace": True, "extra": "forbid"}

    @model_validator(mode="after")
    def _no_explicit_nulls(self) -> "GoalPatch":
        nulls = sorted(name for name in self.model_fields_set if getattr(self, name) is None)
        if nulls:
            raise ValueError(f"fields cannot be null: {', '.join(nulls)}")
        return self

    def changed_fields(self) -> list[str]:
        return [name for name in type(self).model_fields if name in self.model_fields_set]


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class Trends(BaseModel):
    progress_rate: float = 0.0  # percentage points per day
    consistency_score: float = 0.0  # 0-100
    action_completion_rate: float = 0.0  # 0-100
    milestone_frequency: float = 0.0  # milestones per week


class TrendReport(BaseModel):
    id: str = Field(default_factory=_new_id)
    goal_id: str
    timeframe: Timeframe
    start_date: datetime
    generated_at: datetime = Field(default_factory=utcnow)
    trends: Trends = Field(default_factory=Trends)
    history: list[HistoryEntry] = Field(default_factory=list)
    current_progress: int = 0
    is_on_track: bool = False


class MetricProgressPoint(BaseModel):
    name: str
    current: float
    target: float
    progress: float


class ActionCompletionPoint(BaseModel):
    title: str
    completed: bool
    completed_at: datetime | None = None


class MilestonePoint(BaseModel):
    name: str
    achieved_at: datetime


class VisualizationData(BaseModel):
    goal_id: str
    metric_progress: list[MetricProgressPoint] = Field(default_factory=list)
    action_completion: list[ActionCompletionPoint] = Field(default_factory=list)
    milestone_timeline: list[MilestonePoint] = Field(default_factory=list)
    overall_progress: int = 0
    streak: int = 0
    time_remaining_seconds: float = 0.0  # negative once target_date has passed


class RecentMilestone(BaseModel):
    goal_id: str
    goal_title: str
    name: str
    threshold: int
    achieved_at: datetime


class ProgressSummary(BaseModel):
    owner_id: str
    generated_at: datetime = Field(default_factory=utcnow)
    total_goals: int = 0
    active_goals: int = 0
    completed_goals: int = 0
    on_track_goals: int = 0  # active goals at or ahead of linear schedule
    average_progress: float = 0.0
    total_streak: int = 0
    recent_milestones: list[RecentMilestone] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
