"""Append-only history ledger for a goal.

Entries are only ever appended; there is no update, reorder or delete path.
Trend analytics read from here, and milestone records can be rebuilt from it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Iterator

from goalkernel.progress.models import HistoryEntry, HistoryType, Milestone, as_utc, utcnow

logger = logging.getLogger(__name__)


class HistoryLog:
    """View over a goal's `history` list that only allows appends."""

    def __init__(self, entries: list[HistoryEntry]):
        self._entries = entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(tuple(self._entries))

    @property
    def last(self) -> HistoryEntry | None:
        return self._entries[-1] if self._entries else None

    def append(
        self,
        entry_type: HistoryType,
        description: str,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> HistoryEntry:
        timestamp = as_utc(now) if now else utcnow()
        # Keep the ledger time-ordered even if the clock steps backwards.
        if self._entries and timestamp < self._entries[-1].timestamp:
            timestamp = self._entries[-1].timestamp

        entry = HistoryEntry(
            type=entry_type,
            description=description,
            timestamp=timestamp,
            metadata=dict(metadata or {}),
        )
        self._entries.append(entry)
        logger.debug("history append type=%s description=%r", entry_type.value, description)
        return entry

    def since(
        self,
        start: datetime,
        types: Iterable[HistoryType] | None = None,
    ) -> list[HistoryEntry]:
        """Entries at or after `start`, optionally restricted to `types`, oldest first."""
        wanted = set(types) if types is not None else None
        return [
            e for e in self._entries
            if e.timestamp >= start and (wanted is None or e.type in wanted)
        ]


def rebuild_milestones(entries: Iterable[HistoryEntry]) -> list[Milestone]:
    """Replay `milestone` entries into milestone records, first occurrence wins."""
    seen: set[str] = set()
    rebuilt: list[Milestone] = []
    for entry in entries:
        if entry.type != HistoryType.milestone:
            continue
        name = entry.metadata.get("milestone")
        if not name or name in seen:
            continue
        seen.add(name)
        threshold = int(entry.metadata.get("threshold", 0))
        rebuilt.append(
            Milestone(
                name=name,
                threshold=threshold,
                description=f"Reached {threshold}% of goal",
                achieved_at=entry.timestamp,
            )
        )
    return rebuilt
