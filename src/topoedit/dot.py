"""Best-effort DOT text importer.

Understands the subset that warehouse tooling emits, one statement per line::

    digraph G {
      61001 [shape=circle label=<61001<br/>ptlFeed<br/>zone:A>]
      S2 [shape=box]
      61001 -> S2 [label=main color=blue penwidth=3]
    }

Anything else is skipped. The result is positioned with the hierarchical
layout so it can go straight into ``GraphStore.set_graph``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from topoedit.config import LayoutConfig
from topoedit.layout.engine import hierarchical_layout
from topoedit.model import EDGE_COLORS, Edge, EdgeData, EdgeStyle, Node, NodeData, NodeType

logger = logging.getLogger(__name__)

NODE_RE = re.compile(r"^\s*(\w+)\s*\[([^\]]+)\]")
EDGE_RE = re.compile(r"^\s*(\w+)\s*->\s*(\w+)\s*(?:\[([^\]]+)\])?")
ATTR_RE = re.compile(r'(\w+)\s*=\s*("[^"]*"|[^;\s,]+)')
LEADING_INT_RE = re.compile(r"^\s*[+-]?\d+")

SHAPE_TYPES: dict[str, NodeType] = {
    "circle": NodeType.SCANNER,
    "doublecircle": NodeType.SCANNER,
    "box": NodeType.EJECT,
}


def parse_attributes(text: str) -> dict[str, str]:
    """``key=value`` pairs from a bracket list; quotes and outer ``<>`` stripped."""
    attrs: dict[str, str] = {}
    for key, value in ATTR_RE.findall(text or ""):
        if value.startswith('"') and value.endswith('"') and len(value) >= 2:
            value = value[1:-1]
        else:
            if value.startswith("<"):
                value = value[1:]
            if value.endswith(">"):
                value = value[:-1]
        attrs[key] = value
    return attrs


def parse_label(label: str, fallback_code: str) -> tuple[str, dict[str, str]]:
    """Split an HTML-ish label on ``<br/>``.

    The first part is the code; ``key:value`` parts become attrs and bare parts
    become ``"true"`` flags.
    """
    parts = label.split("<br/>")
    code = parts[0].strip() or fallback_code
    attrs: dict[str, str] = {}
    for part in parts[1:]:
        part = part.strip()
        if not part:
            continue
        if ":" in part:
            key, value = part.split(":", 1)
            attrs[key.strip()] = value.strip()
        else:
            attrs[part] = "true"
    return code, attrs


def _cmd_from_code(code: str) -> int:
    match = LEADING_INT_RE.match(code)
    return int(match.group(0)) if match else 0


def _make_node(node_id: str, attrs: dict[str, str]) -> Node:
    code, label_attrs = parse_label(attrs.get("label", node_id), node_id)
    node_type = SHAPE_TYPES.get(attrs.get("shape", ""), NodeType.SIMPLE)
    return Node(id=node_id, data=NodeData(code=code, type=node_type, cmd=_cmd_from_code(code), attrs=label_attrs))


def _make_edge(index: int, source: str, target: str, attrs: dict[str, str]) -> Edge:
    color = EDGE_COLORS["blue"] if attrs.get("color") == "blue" else EDGE_COLORS["default"]
    try:
        width = float(attrs["penwidth"]) if "penwidth" in attrs else 2.0
    except ValueError:
        logger.debug("edge %s -> %s: bad penwidth %r, using 2", source, target, attrs["penwidth"])
        width = 2.0
    return Edge(
        id=f"e-{source}-{target}-{index}",
        source=source,
        target=target,
        label=attrs.get("label"),
        style=EdgeStyle(stroke_color=color, stroke_width=width),
        data=EdgeData(),
    )


def parse_dot(text: str, config: LayoutConfig | None = None) -> tuple[list[Node], list[Edge]]:
    """Parse DOT text into positioned nodes and edges.

    Edge endpoints that were never declared become simple nodes. Self-loops and
    repeated connections are dropped. Text with nothing recognisable yields an
    empty graph.
    """
    declared: dict[str, Node] = {}
    raw_edges: list[tuple[str, str, dict[str, str]]] = []

    for line in text.splitlines():
        line = line.strip()
        if "->" in line:
            match = EDGE_RE.match(line)
            if match:
                raw_edges.append((match.group(1), match.group(2), parse_attributes(match.group(3) or "")))
        elif "[" in line and not line.startswith(("node", "digraph", "graph", "edge")):
            match = NODE_RE.match(line)
            if match:
                declared[match.group(1)] = _make_node(match.group(1), parse_attributes(match.group(2)))

    nodes = list(declared.values())
    edges: list[Edge] = []
    seen: set[tuple[str, str]] = set()
    for index, (source, target, attrs) in enumerate(raw_edges):
        for endpoint in (source, target):
            if endpoint not in declared:
                declared[endpoint] = _make_node(endpoint, {})
                nodes.append(declared[endpoint])
        if source == target or (source, target) in seen:
            logger.debug("dot: dropped self-loop or repeated edge %s -> %s", source, target)
            continue
        seen.add((source, target))
        edges.append(_make_edge(index, source, target, attrs))

    if not nodes:
        return [], []

    laid_out = hierarchical_layout(nodes, edges, config)
    positions = {n.id: n.position for n in laid_out.nodes}
    nodes = [replace(node, position=positions[node.id]) for node in nodes]
    logger.debug("dot: parsed %d nodes, %d edges", len(nodes), len(edges))
    return nodes, edges
