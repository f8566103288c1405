"""Goals HTTP router — thin mapping of service operations onto REST endpoints.

No authentication happens here; the owner id is whatever the upstream gateway
put in the X-User-Id header.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from goalkernel.db import get_session
from goalkernel.progress.models import (
    DailyActionInput,
    Goal,
    GoalCreate,
    GoalPatch,
    GoalStatus,
    MetricInput,
    ProgressSummary,
    Timeframe,
    TrendReport,
    VisualizationData,
)
from goalkernel.progress.service import GoalProgressService
from goalkernel.progress.store import GoalStore, SqlGoalStore

router = APIRouter(prefix="/goals", tags=["goals"])


class MetricValueUpdate(BaseModel):
    value: float = Field(ge=0)


class ActionCompletionUpdate(BaseModel):
    completed: bool


class ModificationRequest(BaseModel):
    changes: GoalPatch = Field(default_factory=GoalPatch)
    note: str | None = Field(default=None, max_length=1000)


class StatusChangeRequest(BaseModel):
    status: GoalStatus
    reason: str | None = Field(default=None, max_length=500)


def get_store(session: AsyncSession = Depends(get_session)) -> GoalStore:
    return SqlGoalStore(session)


def get_service(store: GoalStore = Depends(get_store)) -> GoalProgressService:
    return GoalProgressService(store)


def get_owner_id(x_user_id: str = Header(..., alias="X-User-Id", min_length=1)) -> str:
    return x_user_id


# ---------------------------------------------------------------------------
# /goals
# ---------------------------------------------------------------------------


@router.post("", response_model=Goal, status_code=201)
async def create_goal(
    body: GoalCreate,
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> Goal:
    return await service.create_goal(owner_id, body)


@router.get("", response_model=list[Goal])
async def list_goals(
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> list[Goal]:
    return await service.list_goals(owner_id)


@router.get("/summary", response_model=ProgressSummary)
async def progress_summary(
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> ProgressSummary:
    return await service.get_progress_summary(owner_id)


@router.get("/{goal_id}", response_model=Goal)
async def get_goal(
    goal_id: str,
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> Goal:
    return await service.get_goal(goal_id, owner_id)


@router.patch("/{goal_id}", response_model=Goal)
async def modify_goal(
    goal_id: str,
    body: ModificationRequest,
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> Goal:
    return await service.apply_modification(goal_id, owner_id, body.changes, body.note)


@router.post("/{goal_id}/status", response_model=Goal)
async def change_status(
    goal_id: str,
    body: StatusChangeRequest,
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> Goal:
    return await service.change_status(goal_id, owner_id, body.status, body.reason)


# ---------------------------------------------------------------------------
# /goals/{id}/metrics, /goals/{id}/actions
# ---------------------------------------------------------------------------


@router.post("/{goal_id}/metrics", response_model=Goal)
async def add_metric(
    goal_id: str,
    body: MetricInput,
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> Goal:
    return await service.add_metric(goal_id, owner_id, body)


@router.put("/{goal_id}/metrics/{metric_id}", response_model=Goal)
async def update_metric(
    goal_id: str,
    metric_id: str,
    body: MetricValueUpdate,
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> Goal:
    return await service.record_metric_update(goal_id, owner_id, metric_id, body.value)


@router.post("/{goal_id}/actions", response_model=Goal)
async def add_daily_action(
    goal_id: str,
    body: DailyActionInput,
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> Goal:
    return await service.add_daily_action(goal_id, owner_id, body)


@router.put("/{goal_id}/actions/{action_id}", response_model=Goal)
async def update_action(
    goal_id: str,
    action_id: str,
    body: ActionCompletionUpdate,
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> Goal:
    return await service.record_action_completion(goal_id, owner_id, action_id, body.completed)


# ---------------------------------------------------------------------------
# /goals/{id}/trends, /goals/{id}/visualization
# ---------------------------------------------------------------------------


@router.get("/{goal_id}/trends", response_model=TrendReport)
async def goal_trends(
    goal_id: str,
    timeframe: Timeframe | None = Query(default=None, description="week | month | all"),
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> TrendReport:
    return await service.get_progress_trends(goal_id, owner_id, timeframe)


@router.get("/{goal_id}/visualization", response_model=VisualizationData)
async def goal_visualization(
    goal_id: str,
    owner_id: str = Depends(get_owner_id),
    service: GoalProgressService = Depends(get_service),
) -> VisualizationData:
    return await service.get_visualization_data(goal_id, owner_id)
