"""Typed errors raised by the progress engine.

The HTTP adapter is the only place these are mapped to status codes.
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError


class GoalEngineError(Exception):
    """Base class for every error raised by the engine."""


class NotFoundError(GoalEngineError):
    """A goal, metric or action id does not resolve for the given owner."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class ValidationError(GoalEngineError):
    """Input rejected before any state was changed."""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or [message]
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        messages = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ()))
            messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return cls("; ".join(messages) or "Invalid input", messages)


class ComputationGuardError(GoalEngineError):
    """A rate or frequency would divide by zero.

    Raised inside the trend functions and converted to 0.0 before it leaves them.
    """


class ConcurrentModificationError(GoalEngineError):
    """The stored goal changed between load and save."""

    def __init__(self, goal_id: str, expected_version: int):
        self.goal_id = goal_id
        self.expected_version = expected_version
        super().__init__(f"Goal {goal_id} was modified concurrently (expected version {expected_version})")
