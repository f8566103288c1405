"""Goal store: the port the service persists through, plus the SQL adapter.

One JSONB document per goal row, with optimistic versioning: `save` only
succeeds when the stored version still matches the version the goal was loaded
with, so two writers racing on one goal cannot lose an update.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from goalkernel.progress.errors import ConcurrentModificationError
from goalkernel.progress.models import Goal

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS goals (
        id          text PRIMARY KEY,
        owner_id    text NOT NULL,
        version     integer NOT NULL,
        created_at  timestamptz NOT NULL,
        updated_at  timestamptz NOT NULL DEFAULT now(),
        document    jsonb NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS goals_owner_idx ON goals (owner_id, created_at DESC)",
)


class GoalStore(ABC):
    @abstractmethod
    async def find_by_id(self, goal_id: str, owner_id: str) -> Goal | None:
        """Goal with this id owned by `owner_id`, or None."""

    @abstractmethod
    async def save(self, goal: Goal) -> Goal:
        """Persist an existing goal; returns it with the new version.

        Raises ConcurrentModificationError when the stored version moved on.
        """

    @abstractmethod
    async def add(self, goal: Goal) -> Goal:
        """Persist a new goal; returns it with its first version."""

    @abstractmethod
    async def list_for_owner(self, owner_id: str) -> list[Goal]:
        """All goals of `owner_id`, newest first."""


def _document(goal: Goal) -> str:
    return goal.model_dump_json(exclude={"version"})


def _row_to_goal(row: dict[str, Any]) -> Goal:
    doc = row["document"]
    if isinstance(doc, (str, bytes)):
        doc = json.loads(doc)
    doc["version"] = row["version"]
    return Goal.model_validate(doc)


class SqlGoalStore(GoalStore):
    """Goal store over an AsyncSession (PostgreSQL, JSONB documents)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, goal_id: str, owner_id: str) -> Goal | None:
        query = (
            "SELECT id, owner_id, version, document "
            "FROM goals "
            "WHERE id = :goal_id AND owner_id = :owner_id"
        )
        result = await self.session.execute(text(query), {"goal_id": goal_id, "owner_id": owner_id})
        row = result.fetchone()
        if row is None:
            return None
        return _row_to_goal(dict(zip(result.keys(), row)))

    async def list_for_owner(self, owner_id: str) -> list[Goal]:
        query = (
            "SELECT id, owner_id, version, document "
            "FROM goals "
            "WHERE owner_id = :owner_id "
            "ORDER BY created_at DESC"
        )
        result = await self.session.execute(text(query), {"owner_id": owner_id})
        columns = result.keys()
        return [_row_to_goal(dict(zip(columns, r))) for r in result.fetchall()]

    async def add(self, goal: Goal) -> Goal:
        query = (
            "INSERT INTO goals (id, owner_id, version, created_at, document) "
            "VALUES (:goal_id, :owner_id, 1, :created_at, CAST(:document AS JSONB))"
        )
        params = {
            "goal_id": goal.id,
            "owner_id": goal.owner_id,
            "created_at": goal.created_at,
            "document": _document(goal),
        }
        await self.session.execute(text(query), params)
        await self.session.commit()
        logger.info("stored new goal %s for owner %s", goal.id, goal.owner_id)
        return goal.model_copy(update={"version": 1})

    async def save(self, goal: Goal) -> Goal:
        query = (
            "UPDATE goals "
            "SET document = CAST(:document AS JSONB), version = version + 1, updated_at = now() "
            "WHERE id = :goal_id AND owner_id = :owner_id AND version = :version "
            "RETURNING version"
        )
        params = {
            "goal_id": goal.id,
            "owner_id": goal.owner_id,
            "version": goal.version,
            "document": _document(goal),
        }
        result = await self.session.execute(text(query), params)
        row = result.fetchone()
        if row is None:
            await self.session.rollback()
            logger.warning("version conflict saving goal %s at version %s", goal.id, goal.version)
            raise ConcurrentModificationError(goal.id, goal.version)
        await self.session.commit()
        return goal.model_copy(update={"version": row[0]})
