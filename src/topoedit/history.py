"""Linear undo/redo history of whole-graph snapshots."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Iterable

from topoedit.model import Edge, Node

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistorySnapshot:
    """Deep copy of the graph at one point in time. Never mutated after creation."""

    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]

    @classmethod
    def capture(cls, nodes: Iterable[Node], edges: Iterable[Edge]) -> HistorySnapshot:
        return cls(nodes=tuple(copy.deepcopy(list(nodes))), edges=tuple(copy.deepcopy(list(edges))))

    def restore(self) -> tuple[list[Node], list[Edge]]:
        """Fresh working copies, so later edits never reach the snapshot."""
        return copy.deepcopy(list(self.nodes)), copy.deepcopy(list(self.edges))


class History:
    """Snapshots plus a cursor.

    The cursor is a valid index, or -1 only while the list is empty. Committing
    drops every snapshot after the cursor (no branching). With ``limit`` set, the
    oldest snapshots are discarded once the list grows past it; by default the
    history grows without bound for the length of the session.
    """

    def __init__(self, limit: int | None = None) -> None:
        if limit is not None and limit < 1:
            raise ValueError(f"history limit must be >= 1, got {limit}")
        self.limit = limit
        self._snapshots: list[HistorySnapshot] = []
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> HistorySnapshot | None:
        return self._snapshots[self._cursor] if self._snapshots else None

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._snapshots) - 1

    def commit(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> HistorySnapshot:
        snapshot = HistorySnapshot.capture(nodes, edges)
        dropped = len(self._snapshots) - (self._cursor + 1)
        del self._snapshots[self._cursor + 1 :]
        self._snapshots.append(snapshot)
        if self.limit is not None and len(self._snapshots) > self.limit:
            del self._snapshots[: len(self._snapshots) - self.limit]
        self._cursor = len(self._snapshots) - 1
        if dropped:
            logger.debug("history: discarded %d redo snapshot(s)", dropped)
        return snapshot

    def undo(self) -> HistorySnapshot | None:
        """Step back one snapshot; None (and no move) at the oldest one."""
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._snapshots[self._cursor]

    def redo(self) -> HistorySnapshot | None:
        """Step forward one snapshot; None (and no move) at the newest one."""
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._snapshots[self._cursor]

    def clear(self) -> None:
        self._snapshots.clear()
        self._cursor = -1
