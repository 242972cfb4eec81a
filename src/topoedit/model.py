"""Graph data model: node/edge records for a warehouse topology.

Node and edge records are frozen dataclasses. Updates build a fresh object:
``apply_node_patch`` / ``apply_edge_patch`` go through ``dataclasses.replace``.
Only the ``attrs`` dicts remain mutable, so treat records handed out by the
store as read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable

# ─── Enums ────────────────────────────────────────────────────────────────────


class NodeType(Enum):
    """Physical role of a topology node."""

    SIMPLE = "simple"
    SCANNER = "scanner"
    EJECT = "eject"
    FEED = "feed"
    PTLZONE = "ptlzone"
    SBLZONE = "sblzone"
    ASRS_INFEED = "asrs-infeed"
    ASRS_EJECT = "asrs-eject"

    @classmethod
    def parse(cls, text: object) -> NodeType:
        """Normalise a type name case-insensitively; unknown names become SIMPLE."""
        if isinstance(text, NodeType):
            return text
        if not isinstance(text, str):
            return cls.SIMPLE
        key = text.strip().lower().replace("_", "-")
        for member in cls:
            if member.value == key:
                return member
        return cls.SIMPLE

    @property
    def wire_name(self) -> str:
        """Name used in the exchanged JSON format (upper case)."""
        return self.value.upper()


class NodeKind(Enum):
    """Custom topology nodes vs free-text annotation boxes."""

    CUSTOM = "custom"
    TEXTBOX = "textbox"


class PathType(Enum):
    STRAIGHT = "straight"
    LSHAPED = "lshaped"


# ─── Constants ────────────────────────────────────────────────────────────────

NODE_WIDTH: float = 64.0
NODE_HEIGHT: float = 64.0

DEFAULT_DISTANCE: float = 0.5
DEFAULT_CAPACITY: int = 1

EDGE_COLORS: dict[str, str] = {
    "default": "#666666",
    "blue": "#3b82f6",
    "red": "#ef4444",
    "green": "#22c55e",
}


# ─── Records ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Position:
    """A point on the canvas (canvas units)."""

    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class NodeData:
    code: str
    type: NodeType = NodeType.SIMPLE
    cmd: int = 0
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Node:
    """A topology node.

    ``id`` is the stable internal identity; ``data.code`` is the operator-facing
    name and is not required to be unique. ``width``/``height`` are the rendered
    footprint, used by alignment guides. ``text`` only matters for textbox nodes.
    """

    id: str
    data: NodeData
    position: Position = field(default_factory=Position)
    kind: NodeKind = NodeKind.CUSTOM
    width: float = NODE_WIDTH
    height: float = NODE_HEIGHT
    text: str = ""

    @property
    def is_custom(self) -> bool:
        return self.kind is NodeKind.CUSTOM


@dataclass(frozen=True)
class EdgeStyle:
    stroke_color: str = EDGE_COLORS["default"]
    stroke_width: float = 2.0


@dataclass(frozen=True)
class EdgeData:
    distance: float = DEFAULT_DISTANCE
    capacity: int = DEFAULT_CAPACITY
    default: bool = False
    attrs: dict[str, str] = field(default_factory=dict)
    path_type: PathType = PathType.STRAIGHT


@dataclass(frozen=True)
class EdgeRouting:
    """Rendering hint attached by some layouts (bent/step path)."""

    path: str = "smoothstep"
    offset: float = 20.0
    border_radius: float = 10.0


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str
    label: str | None = None
    style: EdgeStyle = field(default_factory=EdgeStyle)
    data: EdgeData = field(default_factory=EdgeData)
    routing: EdgeRouting | None = None


@dataclass
class Connection:
    """A request to connect two nodes (what a drag between handles produces)."""

    source: str
    target: str
    label: str | None = None


# ─── Partial updates ──────────────────────────────────────────────────────────


@dataclass
class NodePatch:
    """Typed partial update for a node. ``None`` fields keep the old value.

    ``attrs`` is merged over the existing attrs unless ``replace_attrs`` is set.
    """

    position: Position | None = None
    code: str | None = None
    type: NodeType | None = None
    cmd: int | None = None
    attrs: dict[str, str] | None = None
    replace_attrs: bool = False
    width: float | None = None
    height: float | None = None
    text: str | None = None


@dataclass
class EdgePatch:
    """Typed partial update for an edge. ``None`` fields keep the old value."""

    label: str | None = None
    stroke_color: str | None = None
    stroke_width: float | None = None
    distance: float | None = None
    capacity: int | None = None
    default: bool | None = None
    attrs: dict[str, str] | None = None
    replace_attrs: bool = False
    path_type: PathType | None = None


def _merge_attrs(old: dict[str, str], new: dict[str, str] | None, replace_all: bool) -> dict[str, str]:
    if new is None:
        return dict(old)
    if replace_all:
        return dict(new)
    merged = dict(old)
    merged.update(new)
    return merged


def apply_node_patch(node: Node, patch: NodePatch) -> Node:
    """Return a new Node with ``patch`` applied; ``node`` is left untouched."""
    data = replace(
        node.data,
        code=patch.code if patch.code is not None else node.data.code,
        type=patch.type if patch.type is not None else node.data.type,
        cmd=patch.cmd if patch.cmd is not None else node.data.cmd,
        attrs=_merge_attrs(node.data.attrs, patch.attrs, patch.replace_attrs),
    )
    position = patch.position if patch.position is not None else node.position
    return replace(
        node,
        data=data,
        position=Position(position.x, position.y),
        width=patch.width if patch.width is not None else node.width,
        height=patch.height if patch.height is not None else node.height,
        text=patch.text if patch.text is not None else node.text,
    )


def apply_edge_patch(edge: Edge, patch: EdgePatch) -> Edge:
    """Return a new Edge with ``patch`` applied.

    Raises:
        ValueError: if the patched distance/capacity would be out of range.
    """
    style = replace(
        edge.style,
        stroke_color=patch.stroke_color if patch.stroke_color is not None else edge.style.stroke_color,
        stroke_width=patch.stroke_width if patch.stroke_width is not None else edge.style.stroke_width,
    )
    data = replace(
        edge.data,
        distance=patch.distance if patch.distance is not None else edge.data.distance,
        capacity=patch.capacity if patch.capacity is not None else edge.data.capacity,
        default=patch.default if patch.default is not None else edge.data.default,
        attrs=_merge_attrs(edge.data.attrs, patch.attrs, patch.replace_attrs),
        path_type=patch.path_type if patch.path_type is not None else edge.data.path_type,
    )
    validate_edge_data(data)
    return replace(
        edge,
        label=patch.label if patch.label is not None else edge.label,
        style=style,
        data=data,
    )


# ─── Validation predicates ────────────────────────────────────────────────────


def is_self_loop(source: str, target: str) -> bool:
    return source == target


def has_connection(edges: Iterable[Edge], source: str, target: str) -> bool:
    """True if an edge source → target already exists (direction-sensitive)."""
    return any(e.source == source and e.target == target for e in edges)


def validate_edge_data(data: EdgeData) -> None:
    """Raise ValueError if ``data`` violates distance ≥ 0 or capacity ≥ 1."""
    if data.distance < 0:
        raise ValueError(f"edge distance must be >= 0, got {data.distance}")
    if data.capacity < 1:
        raise ValueError(f"edge capacity must be >= 1, got {data.capacity}")


def is_code_unique(code: str, nodes: Iterable[Node], exclude_id: str | None = None) -> bool:
    """Advisory check: no other node already uses ``code``."""
    return not any(n.data.code == code and n.id != exclude_id for n in nodes)


# ─── Factories & labels ───────────────────────────────────────────────────────


def create_node(node_type: NodeType, node_id: str, position: Position | None = None) -> Node:
    """Build a fresh custom node the way the palette does.

    The code is ``"{type}_{id}"``; ``cmd`` is taken from the last three digits of
    the code, falling back to the numeric id modulo 1000.
    """
    code = f"{node_type.value}_{node_id}"
    tail = code[-3:]
    if tail.isdigit() and int(tail) != 0:
        cmd = int(tail)
    elif node_id.isdigit():
        cmd = int(node_id) % 1000
    else:
        cmd = 0
    return Node(
        id=node_id,
        data=NodeData(code=code, type=node_type, cmd=cmd, attrs={}),
        position=position or Position(100.0, 100.0),
    )


def create_text_box(node_id: str, position: Position, text: str = "") -> Node:
    return Node(
        id=node_id,
        data=NodeData(code=""),
        position=Position(position.x, position.y),
        kind=NodeKind.TEXTBOX,
        width=200.0,
        height=60.0,
        text=text,
    )


def node_label(node: Node) -> str:
    """Code, plus a second line listing the attrs flagged ``"true"``."""
    flags = [key for key, value in node.data.attrs.items() if value == "true"]
    if flags:
        return f"{node.data.code}\n{', '.join(flags)}"
    return node.data.code
