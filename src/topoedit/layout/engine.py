"""Layout strategies.

All strategies share one signature, ``(nodes, edges, config=None) ->
LayoutResult``, return fresh node/edge objects, and never mutate their inputs.
"""

from __future__ import annotations

import copy
import logging
import math
import time
from dataclasses import replace
from typing import Callable, Sequence

from topoedit.config import LayoutConfig, get_layout_config
from topoedit.layout.sugiyama import layered_positions
from topoedit.layout.types import LayoutKind, LayoutResult
from topoedit.model import Edge, EdgeRouting, Node, NodeType, Position

logger = logging.getLogger(__name__)

Strategy = Callable[[Sequence[Node], Sequence[Edge], LayoutConfig | None], LayoutResult]


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _reposition(nodes: Sequence[Node], positions: dict[str, Position]) -> list[Node]:
    """Deep copies of ``nodes`` with positions taken from ``positions``."""
    result: list[Node] = []
    for node in nodes:
        pos = positions.get(node.id, node.position)
        result.append(replace(copy.deepcopy(node), position=Position(pos.x, pos.y)))
    return result


def _copy_edges(edges: Sequence[Edge]) -> list[Edge]:
    return [copy.deepcopy(e) for e in edges]


def _step_edges(edges: Sequence[Edge], offset: float, border_radius: float, stroke_width: float | None) -> list[Edge]:
    """Attach a bent/step routing hint; ``stroke_width`` None keeps the current width."""
    result: list[Edge] = []
    for edge in _copy_edges(edges):
        style = edge.style if stroke_width is None else replace(edge.style, stroke_width=stroke_width)
        routing = EdgeRouting(path="smoothstep", offset=offset, border_radius=border_radius)
        result.append(replace(edge, style=style, routing=routing))
    return result


# ─── Layered Strategies ───────────────────────────────────────────────────────


def hierarchical_layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Rank-based top-to-bottom layout; spacing shrinks as the graph grows."""
    cfg = config or get_layout_config()
    if not nodes:
        return LayoutResult()
    positions = layered_positions(
        list(nodes),
        list(edges),
        spacing=cfg.hierarchical_tiers.pick(len(nodes)),
        node_size=cfg.hierarchical_node_size,
        horizontal=False,
        margin=cfg.margin,
        max_passes=cfg.max_ordering_passes,
    )
    return LayoutResult(
        nodes=_reposition(nodes, positions),
        edges=_step_edges(edges, offset=20.0, border_radius=10.0, stroke_width=2.0),
    )


def horizontal_layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Left-to-right variant of ``hierarchical_layout``.

    Graphs above ``warehouse_threshold`` nodes go to ``warehouse_flow_layout``,
    which reads better for long conveyor lines than a very wide rank layout.
    """
    cfg = config or get_layout_config()
    if not nodes:
        return LayoutResult()
    if len(nodes) > cfg.warehouse_threshold:
        logger.debug("horizontal layout: %d nodes, using warehouse flow", len(nodes))
        return warehouse_flow_layout(nodes, edges, cfg)

    node_size = (
        cfg.horizontal_compact_node_size if len(nodes) > cfg.horizontal_compact_over else cfg.horizontal_node_size
    )
    positions = layered_positions(
        list(nodes),
        list(edges),
        spacing=cfg.horizontal_tiers.pick(len(nodes)),
        node_size=node_size,
        horizontal=True,
        margin=cfg.margin,
        max_passes=cfg.max_ordering_passes,
    )
    return LayoutResult(
        nodes=_reposition(nodes, positions),
        edges=_step_edges(edges, offset=20.0, border_radius=10.0, stroke_width=2.0),
    )


def edge_weight(edge: Edge, by_id: dict[str, Node], config: LayoutConfig | None = None) -> float:
    """Importance of an edge for the smart ordering.

    1 by default, raised when either endpoint is a scanner, highest for edges
    flagged ``default``.
    """
    cfg = config or get_layout_config()
    weight = 1.0
    source = by_id.get(edge.source)
    target = by_id.get(edge.target)
    if (source is not None and source.data.type is NodeType.SCANNER) or (
        target is not None and target.data.type is NodeType.SCANNER
    ):
        weight = cfg.scanner_edge_weight
    if edge.data.default:
        weight = cfg.default_edge_weight
    return weight


def smart_layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Crossing-aware left-to-right layout for warehouse flow.

    Same pipeline as the hierarchical layout, but the median ordering is
    weighted by ``edge_weight`` so scanner and default paths get straightened
    first. Edges are returned unchanged.
    """
    cfg = config or get_layout_config()
    if not nodes:
        return LayoutResult()
    positions = layered_positions(
        list(nodes),
        list(edges),
        spacing=cfg.smart_tiers.pick(len(nodes)),
        node_size=cfg.smart_node_size,
        horizontal=True,
        margin=cfg.smart_margin,
        weight_fn=lambda edge, by_id: edge_weight(edge, by_id, cfg),
        max_passes=cfg.max_ordering_passes,
    )
    return LayoutResult(nodes=_reposition(nodes, positions), edges=_copy_edges(edges))


# ─── Placement Fallbacks ──────────────────────────────────────────────────────


def grid_layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Row-major grid with ``ceil(sqrt(n))`` columns."""
    cfg = config or get_layout_config()
    if not nodes:
        return LayoutResult()
    cols = math.ceil(math.sqrt(len(nodes)))
    ox, oy = cfg.grid_origin
    positions = {
        node.id: Position(ox + (i % cols) * cfg.grid_spacing, oy + (i // cols) * cfg.grid_spacing)
        for i, node in enumerate(nodes)
    }
    return LayoutResult(nodes=_reposition(nodes, positions), edges=_copy_edges(edges))


def radial_layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Nodes evenly spaced on a circle, ``angle = 2π·i/n``."""
    cfg = config or get_layout_config()
    if not nodes:
        return LayoutResult()
    cx, cy = cfg.radial_center
    n = len(nodes)
    positions: dict[str, Position] = {}
    for i, node in enumerate(nodes):
        angle = 2 * math.pi * i / n
        positions[node.id] = Position(cx + math.cos(angle) * cfg.radial_radius, cy + math.sin(angle) * cfg.radial_radius)
    return LayoutResult(nodes=_reposition(nodes, positions), edges=_copy_edges(edges))


# ─── Warehouse Flow (Chain Tracing) ───────────────────────────────────────────


def is_entry_node(node: Node, has_incoming: bool, config: LayoutConfig | None = None) -> bool:
    """Entry points for chain tracing: no incoming edge, a feeder code prefix,
    a feed-control attribute, or a feed/zone node type."""
    cfg = config or get_layout_config()
    if not has_incoming:
        return True
    if node.data.code.startswith(cfg.feeder_code_prefixes):
        return True
    if any(node.data.attrs.get(key) == "true" for key in cfg.feeder_attrs):
        return True
    return node.data.type in (NodeType.FEED, NodeType.PTLZONE, NodeType.SBLZONE)


def trace_chains(nodes: Sequence[Node], edges: Sequence[Edge], config: LayoutConfig | None = None) -> list[list[str]]:
    """Split the graph into flow chains; every node lands in exactly one chain.

    From each entry node (then from each node still unvisited) follow the first
    outgoing edge to an unvisited node until none is left. The visited set is
    the only cycle guard. Chains come back in discovery order.
    """
    cfg = config or get_layout_config()
    known = {n.id for n in nodes}
    outgoing: dict[str, list[str]] = {}
    has_incoming: set[str] = set()
    for edge in edges:
        if edge.source not in known or edge.target not in known:
            continue
        outgoing.setdefault(edge.source, []).append(edge.target)
        has_incoming.add(edge.target)

    visited: set[str] = set()

    def trace(start: str) -> list[str]:
        chain = [start]
        visited.add(start)
        current = start
        while True:
            nxt = next((t for t in outgoing.get(current, []) if t not in visited), None)
            if nxt is None:
                break
            chain.append(nxt)
            visited.add(nxt)
            current = nxt
        return chain

    chains: list[list[str]] = []
    for node in nodes:
        if node.id not in visited and is_entry_node(node, node.id in has_incoming, cfg):
            chains.append(trace(node.id))
    for node in nodes:
        if node.id not in visited:
            chains.append(trace(node.id))
    return chains


def warehouse_flow_layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """One row per flow chain, longest chain on top."""
    cfg = config or get_layout_config()
    if not nodes:
        return LayoutResult()
    chains = trace_chains(nodes, edges, cfg)
    chains.sort(key=len, reverse=True)

    ox, oy = cfg.chain_origin
    positions: dict[str, Position] = {}
    for row, chain in enumerate(chains):
        for col, node_id in enumerate(chain):
            positions[node_id] = Position(ox + col * cfg.chain_node_pitch, oy + row * cfg.chain_row_pitch)

    logger.debug("warehouse flow: %d nodes in %d chains", len(nodes), len(chains))
    return LayoutResult(
        nodes=_reposition(nodes, positions),
        edges=_step_edges(edges, offset=10.0, border_radius=8.0, stroke_width=None),
    )


# ─── Dispatch ─────────────────────────────────────────────────────────────────

STRATEGIES: dict[LayoutKind, Strategy] = {
    LayoutKind.HIERARCHICAL: hierarchical_layout,
    LayoutKind.HORIZONTAL: horizontal_layout,
    LayoutKind.SMART: smart_layout,
    LayoutKind.GRID: grid_layout,
    LayoutKind.FORCE: radial_layout,
    LayoutKind.WAREHOUSE: warehouse_flow_layout,
}


def apply_layout(
    kind: LayoutKind | str,
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Run the strategy registered for ``kind``.

    Raises:
        ValueError: if ``kind`` names no strategy.
    """
    layout_kind = LayoutKind(kind) if isinstance(kind, str) else kind
    started = time.perf_counter()
    result = STRATEGIES[layout_kind](nodes, edges, config)
    logger.debug(
        "%s layout: %d nodes, %d edges in %.1f ms",
        layout_kind.value,
        len(nodes),
        len(edges),
        (time.perf_counter() - started) * 1000,
    )
    return result
