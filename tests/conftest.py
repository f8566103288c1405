"""Shared fixtures for the test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from goalkernel.main import app
from goalkernel.progress.errors import ConcurrentModificationError
from goalkernel.progress.models import (
    DailyAction,
    Goal,
    GoalCategory,
    HistoryEntry,
    HistoryType,
    Metric,
)
from goalkernel.progress.router import get_store
from goalkernel.progress.service import GoalProgressService
from goalkernel.progress.store import GoalStore

NOW = datetime(2026, 2, 15, 12, 0, tzinfo=timezone.utc)
OWNER = "user-1"


# ---------------------------------------------------------------------------
# Fakes (no real Postgres needed)
# ---------------------------------------------------------------------------

class InMemoryGoalStore(GoalStore):
    """Dict-backed store with the same versioning contract as SqlGoalStore."""

    def __init__(self):
        self._goals: dict[str, Goal] = {}
        self.saves = 0

    async def find_by_id(self, goal_id: str, owner_id: str) -> Goal | None:
        goal = self._goals.get(goal_id)
        if goal is None or goal.owner_id != owner_id:
            return None
        return goal.model_copy(deep=True)

    async def save(self, goal: Goal) -> Goal:
        current = self._goals.get(goal.id)
        if current is None or current.version != goal.version:
            raise ConcurrentModificationError(goal.id, goal.version)
        stored = goal.model_copy(update={"version": goal.version + 1}, deep=True)
        self._goals[goal.id] = stored
        self.saves += 1
        return stored.model_copy(deep=True)

    async def add(self, goal: Goal) -> Goal:
        stored = goal.model_copy(update={"version": 1}, deep=True)
        self._goals[goal.id] = stored
        return stored.model_copy(deep=True)

    async def list_for_owner(self, owner_id: str) -> list[Goal]:
        goals = [g.model_copy(deep=True) for g in self._goals.values() if g.owner_id == owner_id]
        return sorted(goals, key=lambda g: g.created_at, reverse=True)

    def put(self, goal: Goal) -> Goal:
        """Seed a goal directly, bypassing the service."""
        stored = goal.model_copy(update={"version": goal.version or 1}, deep=True)
        self._goals[goal.id] = stored
        return stored


class FakeClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_goal(
    *,
    goal_id: str = "goal-1",
    owner_id: str = OWNER,
    created_at: datetime | None = None,
    target_date: datetime | None = None,
    metrics: list[Metric] | None = None,
    actions: list[DailyAction] | None = None,
    **overrides: Any,
) -> Goal:
    created = created_at or NOW - timedelta(days=10)
    goal = Goal(
        id=goal_id,
        owner_id=owner_id,
        title="Run a marathon",
        description="Build up to 42 km",
        category=GoalCategory.fitness,
        created_at=created,
        target_date=target_date or created + timedelta(days=100),
        metrics=metrics or [],
        daily_actions=actions or [],
        history=[HistoryEntry(type=HistoryType.created, description="Goal created", timestamp=created)],
        **overrides,
    )
    return goal


def make_metric(metric_id: str, target: float, current: float = 0.0, name: str = "Distance") -> Metric:
    return Metric(id=metric_id, name=name, target=target, current_value=current, unit="km")


def make_action(action_id: str, completed_at: datetime | None = None, title: str = "Morning run") -> DailyAction:
    return DailyAction(
        id=action_id,
        title=title,
        completed=completed_at is not None,
        completed_at=completed_at,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def store():
    return InMemoryGoalStore()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def service(store, clock):
    return GoalProgressService(store, clock=clock, tz_name="UTC")


@pytest.fixture()
def override_store(store):
    """Override the FastAPI dependency so no real DB is needed."""
    app.dependency_overrides[get_store] = lambda: store
    yield store
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_store):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers={"X-User-Id": OWNER}) as ac:
        yield ac
