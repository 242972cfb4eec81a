"""Topology JSON interchange.

Wire shape::

    {
      "whId": 1712345678901,
      "nodes": [{"code": "61001", "type": "SCANNER", "cmd": 1, "attrs": {}}],
      "edges": [{"from": "61001", "to": "S2", "distance": 0.5, "attrs": {},
                 "default": false, "capacity": 1}],
      "loops": []
    }

Nodes are referenced by ``code`` on the wire; internal ids are assigned fresh
on import. Textbox annotations never leave the editor.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from topoedit.errors import TopologyImportError
from topoedit.model import (
    DEFAULT_CAPACITY,
    DEFAULT_DISTANCE,
    Edge,
    EdgeData,
    EdgeStyle,
    Node,
    NodeData,
    NodeType,
    Position,
)

logger = logging.getLogger(__name__)

# Import grid: 5 nodes per row, 120 x 100 pitch, starting at (100, 100)
IMPORT_COLUMNS = 5
IMPORT_PITCH = (120.0, 100.0)
IMPORT_ORIGIN = (100.0, 100.0)


# ─── Export ───────────────────────────────────────────────────────────────────


def export_topology(nodes: Iterable[Node], edges: Iterable[Edge], wh_id: int | None = None) -> dict[str, Any]:
    """Build the interchange dict from editor state.

    Only custom nodes are written, and only edges whose two endpoints are
    custom nodes. ``whId`` defaults to the current time in epoch milliseconds.
    """
    custom = [n for n in nodes if n.is_custom]
    code_of = {n.id: n.data.code for n in custom}

    out_edges: list[dict[str, Any]] = []
    for edge in edges:
        if edge.source not in code_of or edge.target not in code_of:
            continue
        out_edges.append(
            {
                "from": code_of[edge.source],
                "to": code_of[edge.target],
                "distance": edge.data.distance,
                "attrs": dict(edge.data.attrs),
                "default": edge.data.default,
                "capacity": edge.data.capacity,
            }
        )

    return {
        "whId": wh_id if wh_id is not None else int(time.time() * 1000),
        "nodes": [
            {
                "code": n.data.code,
                "type": n.data.type.wire_name,
                "cmd": n.data.cmd,
                "attrs": dict(n.data.attrs),
            }
            for n in custom
        ],
        "edges": out_edges,
        "loops": [],
    }


def dumps(nodes: Iterable[Node], edges: Iterable[Edge], wh_id: int | None = None, indent: int | None = 2) -> str:
    return json.dumps(export_topology(nodes, edges, wh_id), indent=indent)


def save_file(path: Path, nodes: Iterable[Node], edges: Iterable[Edge], wh_id: int | None = None) -> None:
    path.write_text(dumps(nodes, edges, wh_id) + "\n", encoding="utf-8")


# ─── Wire models ──────────────────────────────────────────────────────────────


def _number_to_str(value: Any) -> Any:
    # Codes such as 61001 often arrive as JSON numbers
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _str_attrs(value: Any) -> Any:
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    return value


class WireNode(BaseModel):
    """One entry of ``nodes``; every field is optional on the wire."""

    code: str | None = None
    type: str | None = None
    cmd: int | None = None
    attrs: dict[str, str] = Field(default_factory=dict)

    @field_validator("code", "type", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return _number_to_str(v)

    @field_validator("attrs", mode="before")
    @classmethod
    def coerce_attrs(cls, v: Any) -> Any:
        return _str_attrs(v)


class WireEdge(BaseModel):
    """One entry of ``edges``; endpoints are node codes."""

    model_config = ConfigDict(populate_by_name=True)

    source: str | None = Field(None, alias="from")
    target: str | None = Field(None, alias="to")
    distance: float = Field(DEFAULT_DISTANCE, ge=0)
    capacity: int = Field(DEFAULT_CAPACITY, ge=1)
    default: bool = False
    attrs: dict[str, str] = Field(default_factory=dict)

    @field_validator("source", "target", mode="before")
    @classmethod
    def coerce_endpoint(cls, v: Any) -> Any:
        return _number_to_str(v)

    @field_validator("attrs", mode="before")
    @classmethod
    def coerce_attrs(cls, v: Any) -> Any:
        return _str_attrs(v)

    def to_edge_data(self) -> EdgeData:
        return EdgeData(distance=self.distance, capacity=self.capacity, default=self.default, attrs=dict(self.attrs))


class WireTopology(BaseModel):
    """The whole interchange document."""

    model_config = ConfigDict(populate_by_name=True)

    wh_id: int | str | None = Field(None, alias="whId")
    nodes: list[WireNode] = Field(default_factory=list)
    edges: list[WireEdge] = Field(default_factory=list)
    loops: list[Any] = Field(default_factory=list)

    @field_validator("nodes", "edges", "loops", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


# ─── Import ───────────────────────────────────────────────────────────────────


def _import_node(wire: WireNode, index: int) -> Node:
    ox, oy = IMPORT_ORIGIN
    px, py = IMPORT_PITCH
    return Node(
        id=str(index + 1),
        data=NodeData(
            code=wire.code or f"node_{index}",
            type=NodeType.parse(wire.type or "SIMPLE"),
            cmd=index if wire.cmd is None else wire.cmd,
            attrs=dict(wire.attrs),
        ),
        position=Position(ox + (index % IMPORT_COLUMNS) * px, oy + (index // IMPORT_COLUMNS) * py),
    )


def import_topology(payload: Any) -> tuple[list[Node], list[Edge]]:
    """Turn an interchange dict into fresh nodes and edges.

    Nodes get ids ``"1".."n"`` and a grid placement; run a layout afterwards for
    anything better. When two nodes share a code, edges resolve to the first.
    Edges naming an unknown code, self-loops and repeated ``(from, to)`` pairs
    are dropped.

    Raises:
        TopologyImportError: if the payload does not validate as a topology.
    """
    try:
        topology = WireTopology.model_validate(payload)
    except ValidationError as exc:
        raise TopologyImportError(f"invalid topology: {exc}") from exc

    nodes = [_import_node(wire, i) for i, wire in enumerate(topology.nodes)]

    id_by_code: dict[str, str] = {}
    for node in nodes:
        id_by_code.setdefault(node.data.code, node.id)

    edges: list[Edge] = []
    seen: set[tuple[str, str]] = set()
    for i, wire in enumerate(topology.edges):
        source = id_by_code.get(wire.source) if wire.source is not None else None
        target = id_by_code.get(wire.target) if wire.target is not None else None
        if source is None or target is None:
            logger.debug("edges[%d]: unknown endpoint %r -> %r, dropped", i, wire.source, wire.target)
            continue
        if source == target or (source, target) in seen:
            logger.debug("edges[%d]: self-loop or repeated connection, dropped", i)
            continue
        seen.add((source, target))
        edges.append(
            Edge(
                id=f"e-{source}-{target}-{i}",
                source=source,
                target=target,
                style=EdgeStyle(),
                data=wire.to_edge_data(),
            )
        )

    logger.debug("imported %d nodes, %d edges", len(nodes), len(edges))
    return nodes, edges


def loads(text: str) -> tuple[list[Node], list[Edge]]:
    """Parse topology JSON text.

    Raises:
        TopologyImportError: on invalid JSON or an invalid topology.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TopologyImportError(f"invalid JSON: {exc}") from exc
    return import_topology(payload)


def load_file(path: Path) -> tuple[list[Node], list[Edge]]:
    return loads(path.read_text(encoding="utf-8"))
