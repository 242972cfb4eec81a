"""Layout types shared across layout strategies and the store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from topoedit.model import Edge, Node


class LayoutKind(Enum):
    HIERARCHICAL = "hierarchical"
    HORIZONTAL = "horizontal"
    SMART = "smart"
    GRID = "grid"
    FORCE = "force"  # circular placement, kept under the toolbar's name
    WAREHOUSE = "warehouse"


@dataclass
class LayoutNode:
    """A positioned node (or dummy) in a layered layout; (x, y) is top-left."""

    id: str
    layer: int
    order: int
    x: float
    y: float
    width: float
    height: float
    dummy: bool = False


@dataclass
class LayoutResult:
    """What every strategy returns: fresh node and edge lists."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)


# Dummy ids start with this; the ``dummy`` node attribute is what marks them
DUMMY_PREFIX = "__dummy_"
