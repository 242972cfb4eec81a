"""Alignment guides and snapping for a node being dragged.

Both entry points are pure: ``compute_guides`` reports which guide lines to show
for a tentative position and ``snap_position`` returns the corrected position.
``DragTracker`` combines them for the duration of one drag gesture.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from topoedit.model import NODE_HEIGHT, NODE_WIDTH, Node, NodeKind, Position

logger = logging.getLogger(__name__)

ALIGNMENT_THRESHOLD: float = 8.0


@dataclass
class AlignmentGuides:
    """Guide coordinates: ``x`` holds vertical lines, ``y`` horizontal ones."""

    x: list[float] = field(default_factory=list)
    y: list[float] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.x and not self.y


def _axis_match(
    start: float,
    size: float,
    other_start: float,
    other_size: float,
    threshold: float,
) -> tuple[float, float] | None:
    """Check the five relations along one axis, in priority order.

    Returns ``(guide, snapped_start)`` for the first relation within
    ``threshold``, or None. ``guide`` is the other node's coordinate and
    ``snapped_start`` puts the matching part of the dragged box exactly on it.
    """
    center = start + size / 2
    end = start + size
    other_center = other_start + other_size / 2
    other_end = other_start + other_size

    if abs(center - other_center) <= threshold:
        return other_center, other_center - size / 2
    if abs(start - other_start) <= threshold:
        return other_start, other_start
    if abs(end - other_end) <= threshold:
        return other_end, other_end - size
    if abs(start - other_center) <= threshold:
        return other_center, other_center
    if abs(end - other_center) <= threshold:
        return other_center, other_center - size
    return None


def _axis_snap(
    start: float,
    size: float,
    other_start: float,
    other_size: float,
    threshold: float,
    current: float,
) -> float:
    """Snapped start along one axis against one node, or ``current`` if nothing matches."""
    if abs(start - other_start) <= threshold:
        return other_start
    hit = _axis_match(start, size, other_start, other_size, threshold)
    return current if hit is None else hit[1]


def _candidates(dragged_id: str, nodes: Iterable[Node]) -> list[Node]:
    return [n for n in nodes if n.id != dragged_id and n.kind is not NodeKind.TEXTBOX]


def _dragged_size(dragged_id: str, nodes: list[Node]) -> tuple[float, float]:
    for n in nodes:
        if n.id == dragged_id:
            return n.width, n.height
    return NODE_WIDTH, NODE_HEIGHT


def compute_guides(
    dragged_id: str,
    position: Position,
    nodes: Iterable[Node],
    threshold: float = ALIGNMENT_THRESHOLD,
) -> AlignmentGuides:
    """Guide lines for ``dragged_id`` tentatively placed at ``position``.

    Textbox nodes never produce guides. Coordinates are de-duplicated, keeping
    first-seen order.
    """
    all_nodes = list(nodes)
    width, height = _dragged_size(dragged_id, all_nodes)
    guides = AlignmentGuides()

    for other in _candidates(dragged_id, all_nodes):
        hit_x = _axis_match(position.x, width, other.position.x, other.width, threshold)
        if hit_x is not None and hit_x[0] not in guides.x:
            guides.x.append(hit_x[0])
        hit_y = _axis_match(position.y, height, other.position.y, other.height, threshold)
        if hit_y is not None and hit_y[0] not in guides.y:
            guides.y.append(hit_y[0])

    return guides


def snap_position(
    dragged_id: str,
    position: Position,
    nodes: Iterable[Node],
    threshold: float = ALIGNMENT_THRESHOLD,
) -> Position:
    """Snap-corrected position; the input comes back unchanged when nothing is
    within ``threshold``. When several nodes match, the last one wins.

    Per node, the relations are tried in guide order, except that a left (top)
    edge match overrides a centre match, so left edges always land exactly on
    the other node's left edge even when the two widths differ.
    """
    all_nodes = list(nodes)
    width, height = _dragged_size(dragged_id, all_nodes)
    snapped_x = position.x
    snapped_y = position.y

    for other in _candidates(dragged_id, all_nodes):
        snapped_x = _axis_snap(position.x, width, other.position.x, other.width, threshold, snapped_x)
        snapped_y = _axis_snap(position.y, height, other.position.y, other.height, threshold, snapped_y)

    return Position(snapped_x, snapped_y)


class DragTracker:
    """In-flight drag state: guides exist only between ``drag`` and ``end``."""

    def __init__(self, threshold: float = ALIGNMENT_THRESHOLD) -> None:
        self.threshold = threshold
        self.dragged_id: str | None = None
        self.guides = AlignmentGuides()

    @property
    def active(self) -> bool:
        return self.dragged_id is not None

    def drag(self, node_id: str, position: Position, nodes: Iterable[Node]) -> Position:
        """Record a drag step and return the position the node should take."""
        all_nodes = list(nodes)
        self.dragged_id = node_id
        self.guides = compute_guides(node_id, position, all_nodes, self.threshold)
        return snap_position(node_id, position, all_nodes, self.threshold)

    def end(self) -> None:
        if self.dragged_id is not None:
            logger.debug("drag of %s ended", self.dragged_id)
        self.dragged_id = None
        self.guides = AlignmentGuides()
