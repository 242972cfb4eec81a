"""Layered (Sugiyama-style) layout pipeline.

Phases:
  1. Graph construction  (nodes in input order, dangling edges dropped)
  2. Cycle removal       (greedy-FAS with input-order tie breaking)
  3. Rank assignment     (longest path from source-less nodes)
  4. Dummy node insertion for edges spanning several ranks
  5. Crossing minimization (weighted median heuristic)
  6. Coordinate assignment (canvas units, vertical or horizontal)

Every phase is deterministic for a given input order: no set iteration, stable
sorts only.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Callable, Iterable

import networkx as nx

from topoedit.config import Spacing
from topoedit.layout.types import DUMMY_PREFIX, LayoutNode
from topoedit.model import Edge, Node, Position

WeightFn = Callable[[Edge, dict[str, Node]], float]

# ─── Graph Construction ───────────────────────────────────────────────────────


def build_digraph(
    nodes: Iterable[Node],
    edges: Iterable[Edge],
    node_size: tuple[float, float] | None = None,
    weight_fn: WeightFn | None = None,
) -> nx.DiGraph:
    """Build the DiGraph the pipeline works on.

    Node attributes: ``width``, ``height`` (``node_size`` when given, else the
    node's own footprint). Edge attribute: ``weight`` (1.0 unless ``weight_fn``
    says otherwise). Edges whose endpoints are missing and self-loops are
    ignored; parallel edges collapse into one carrying the largest weight.
    """
    g: nx.DiGraph = nx.DiGraph()
    by_id: dict[str, Node] = {}
    for node in nodes:
        width, height = node_size if node_size is not None else (node.width, node.height)
        g.add_node(node.id, width=width, height=height)
        by_id[node.id] = node

    for edge in edges:
        if edge.source not in by_id or edge.target not in by_id:
            continue
        if edge.source == edge.target:
            continue
        weight = weight_fn(edge, by_id) if weight_fn is not None else 1.0
        if g.has_edge(edge.source, edge.target):
            prev = g.edges[edge.source, edge.target]["weight"]
            g.edges[edge.source, edge.target]["weight"] = max(prev, weight)
        else:
            g.add_edge(edge.source, edge.target, weight=weight)
    return g


# ─── Cycle Removal (Greedy-FAS) ───────────────────────────────────────────────


def greedy_fas_ordering(graph: nx.DiGraph) -> list[str]:
    """Compute a node ordering using the greedy-FAS heuristic.

    Returns a list of node ids in an ordering that minimizes back-edges.
    Nodes earlier in the ordering should have outgoing edges going forward.

    Algorithm (Eades, Lin, Smyth 1993):
    - Maintain dynamic in/out degree counters updated as nodes are removed.
    - Repeatedly:
        1. Move all sinks (out_deg == 0) to s2.
        2. Move all sources (in_deg == 0) to s1.
        3. Of remaining nodes in cycles, pick max (out - in) and add to s1.
    - Final ordering: s1 + reversed(s2).

    ``active`` is an insertion-ordered dict so ties resolve by input order.
    """
    active: dict[str, None] = dict.fromkeys(graph.nodes)

    out_deg: dict[str, int] = {n: graph.out_degree(n) for n in graph.nodes}
    in_deg: dict[str, int] = {n: graph.in_degree(n) for n in graph.nodes}

    s1: list[str] = []
    s2: list[str] = []

    while active:
        changed = True
        while changed:
            sinks = [n for n in active if out_deg[n] == 0]
            changed = bool(sinks)
            for sink in sinks:
                del active[sink]
                s2.append(sink)
                for pred in graph.predecessors(sink):
                    if pred in active:
                        out_deg[pred] -= 1

        changed = True
        while changed:
            sources = [n for n in active if in_deg[n] == 0]
            changed = bool(sources)
            for source in sources:
                del active[source]
                s1.append(source)
                for succ in graph.successors(source):
                    if succ in active:
                        in_deg[succ] -= 1

        if active:
            # max() keeps the first of equal keys, i.e. the earliest input node.
            best = max(active, key=lambda n: out_deg[n] - in_deg[n])
            del active[best]
            s1.append(best)
            for succ in graph.successors(best):
                if succ in active:
                    in_deg[succ] -= 1
            for pred in graph.predecessors(best):
                if pred in active:
                    out_deg[pred] -= 1

    s2.reverse()
    s1.extend(s2)
    return s1


def remove_cycles(graph: nx.DiGraph) -> tuple[nx.DiGraph, list[tuple[str, str]]]:
    """Return a DAG copy of ``graph`` with back-edges reversed.

    Returns ``(dag, reversed_edges)``; ``reversed_edges`` lists the original
    (src, tgt) pairs that were flipped, in edge order; self-loops are listed
    there too and dropped from the DAG. When both directions of a
    pair exist the flipped edge merges into the forward one (max weight).
    """
    dag: nx.DiGraph = nx.DiGraph()
    for node_id in graph.nodes:
        dag.add_node(node_id, **graph.nodes[node_id])

    if graph.number_of_nodes() == 0:
        return dag, []

    position = {node: pos for pos, node in enumerate(greedy_fas_ordering(graph))}
    reversed_edges: list[tuple[str, str]] = []

    for src, tgt, attrs in graph.edges(data=True):
        if src == tgt:
            reversed_edges.append((src, tgt))
            continue
        if position[src] > position[tgt]:
            reversed_edges.append((src, tgt))
            src, tgt = tgt, src
        if dag.has_edge(src, tgt):
            cur = dag.edges[src, tgt]
            cur["weight"] = max(cur.get("weight", 1.0), attrs.get("weight", 1.0))
        else:
            dag.add_edge(src, tgt, **attrs)

    return dag, reversed_edges


# ─── Rank Assignment ──────────────────────────────────────────────────────────


class LayerAssignment:
    """Result of rank assignment: each node gets a layer (rank).

    Layer 0 holds the nodes without incoming edges. Computed on the cycle-free
    copy produced by ``remove_cycles``.

    Attributes:
        layers: Maps node id → layer index.
        layer_count: Total number of layers.
        reversed_edges: Edges reversed during cycle removal.
    """

    def __init__(
        self,
        layers: dict[str, int],
        layer_count: int,
        reversed_edges: list[tuple[str, str]],
    ) -> None:
        self.layers = layers
        self.layer_count = layer_count
        self.reversed_edges = reversed_edges

    @classmethod
    def assign(cls, graph: nx.DiGraph) -> LayerAssignment:
        """Longest-path ranking by fixed-point iteration.

        For each edge u→v in the DAG, rank[v] = max(rank[v], rank[u]+1), repeated
        until stable. O(V * E) worst case, fast in practice.
        """
        dag, reversed_edges = remove_cycles(graph)
        layers: dict[str, int] = {node_id: 0 for node_id in graph.nodes}

        changed = True
        while changed:
            changed = False
            for src, tgt in dag.edges():
                if layers[tgt] < layers[src] + 1:
                    layers[tgt] = layers[src] + 1
                    changed = True

        layer_count = (max(layers.values()) + 1) if layers else 0
        return cls(layers=layers, layer_count=layer_count, reversed_edges=reversed_edges)


# ─── Dummy Node Insertion ─────────────────────────────────────────────────────


@dataclass
class DummyEdge:
    """A long edge replaced by a chain of dummy nodes, one per skipped layer."""

    original_src: str
    original_tgt: str
    dummy_ids: list[str]


@dataclass
class AugmentedGraph:
    """The DAG with dummy nodes: every edge now joins adjacent layers."""

    graph: nx.DiGraph
    layers: dict[str, int]
    layer_count: int
    dummy_edges: list[DummyEdge] = field(default_factory=list)


def insert_dummy_nodes(dag: nx.DiGraph, la: LayerAssignment) -> AugmentedGraph:
    """Replace each edge u → v with layer[v] - layer[u] > 1 by
    u → d₁ → … → dₖ → v, where dᵢ lives in layer ``layer[u] + i``.

    Dummy nodes have zero size and inherit the weight of the edge they stand in
    for, so heavy paths stay heavy across every layer they cross.
    """
    g: nx.DiGraph = nx.DiGraph()
    for node_id in dag.nodes:
        g.add_node(node_id, **dag.nodes[node_id])

    layers: dict[str, int] = copy.copy(la.layers)
    dummy_edges: list[DummyEdge] = []

    for edge_counter, (src_id, tgt_id, attrs) in enumerate(list(dag.edges(data=True))):
        weight = attrs.get("weight", 1.0)
        span = layers[tgt_id] - layers[src_id]

        if span <= 1:
            g.add_edge(src_id, tgt_id, weight=weight)
            continue

        dummy_ids: list[str] = []
        chain_prev = src_id
        for i in range(span - 1):
            dummy_id = f"{DUMMY_PREFIX}{edge_counter}_{i}"
            while dummy_id in g:
                dummy_id += "_"
            g.add_node(dummy_id, width=0.0, height=0.0, dummy=True)
            layers[dummy_id] = layers[src_id] + i + 1
            dummy_ids.append(dummy_id)
            g.add_edge(chain_prev, dummy_id, weight=weight)
            chain_prev = dummy_id
        g.add_edge(chain_prev, tgt_id, weight=weight)

        dummy_edges.append(DummyEdge(original_src=src_id, original_tgt=tgt_id, dummy_ids=dummy_ids))

    layer_count = (max(layers.values()) + 1) if layers else 0
    return AugmentedGraph(graph=g, layers=layers, layer_count=layer_count, dummy_edges=dummy_edges)


# ─── Crossing Minimization (Median) ───────────────────────────────────────────


def weighted_median(points: list[tuple[float, float]]) -> float:
    """Median of ``(position, weight)`` pairs.

    With unit weights this is the ordinary median (the mean of the two middle
    values for an even count).
    """
    ordered = sorted(points)
    total = sum(w for _, w in ordered)
    half = total / 2
    running = 0.0
    for i, (pos, w) in enumerate(ordered):
        running += w
        if running == half and i + 1 < len(ordered):
            return (pos + ordered[i + 1][0]) / 2
        if running >= half:
            return pos
    return ordered[-1][0]


def _median_key(
    node_id: str,
    graph: nx.DiGraph,
    neighbor_pos: dict[str, int],
    direction: str,
    current: int,
) -> float:
    """Weighted median position of a node's neighbours in the adjacent layer.

    direction: "incoming" to look at predecessors, "outgoing" for successors.
    A node with no neighbour there keeps its current slot.
    """
    if direction == "incoming":
        neighbours = [(nb, graph.edges[nb, node_id]["weight"]) for nb in graph.predecessors(node_id)]
    else:
        neighbours = [(nb, graph.edges[node_id, nb]["weight"]) for nb in graph.successors(node_id)]

    points = [(float(neighbor_pos[nb]), w) for nb, w in neighbours if nb in neighbor_pos]
    if not points:
        return float(current)
    return weighted_median(points)


def count_crossings(ordering: list[list[str]], graph: nx.DiGraph, weighted: bool = False) -> float:
    """Count edge crossings between consecutive layers (inversion count).

    With ``weighted`` each crossing counts as the product of the two edge weights.
    """
    total = 0.0
    for l_idx in range(len(ordering) - 1):
        tgt_pos: dict[str, int] = {nid: i for i, nid in enumerate(ordering[l_idx + 1])}
        segs: list[tuple[int, int, float]] = []
        for sp, src_id in enumerate(ordering[l_idx]):
            if src_id not in graph:
                continue
            for nb in graph.successors(src_id):
                if nb in tgt_pos:
                    w = graph.edges[src_id, nb].get("weight", 1.0) if weighted else 1.0
                    segs.append((sp, tgt_pos[nb], w))
        for i in range(len(segs)):
            for j in range(i + 1, len(segs)):
                a, b = segs[i], segs[j]
                if (a[0] < b[0] and a[1] > b[1]) or (a[0] > b[0] and a[1] < b[1]):
                    total += a[2] * b[2]
    return total


def minimise_crossings(aug: AugmentedGraph, max_passes: int = 24, weighted: bool = False) -> list[list[str]]:
    """Reduce edge crossings with the iterative median heuristic.

    Initial order: by layer, then graph insertion order. Each pass runs a
    top-down sweep (predecessor medians) then a bottom-up sweep (successor
    medians). Passes stop once the crossing count stops improving or
    ``max_passes`` is hit; the best ordering seen is returned.

    Returns one inner list per layer.
    """
    layer_count = aug.layer_count
    ordering: list[list[str]] = [[] for _ in range(layer_count)]
    for node_id in aug.graph.nodes:
        ordering[aug.layers[node_id]].append(node_id)

    best = count_crossings(ordering, aug.graph, weighted)
    best_ordering = [list(layer) for layer in ordering]
    if best == 0:
        return best_ordering

    for _pass in range(max_passes):
        for layer_idx in range(1, layer_count):
            prev = {nid: i for i, nid in enumerate(ordering[layer_idx - 1])}
            cur = {nid: i for i, nid in enumerate(ordering[layer_idx])}
            ordering[layer_idx].sort(
                key=lambda a, p=prev, c=cur: _median_key(a, aug.graph, p, "incoming", c[a])
            )

        for layer_idx in range(layer_count - 2, -1, -1):
            nxt = {nid: i for i, nid in enumerate(ordering[layer_idx + 1])}
            cur = {nid: i for i, nid in enumerate(ordering[layer_idx])}
            ordering[layer_idx].sort(
                key=lambda a, n=nxt, c=cur: _median_key(a, aug.graph, n, "outgoing", c[a])
            )

        new = count_crossings(ordering, aug.graph, weighted)
        if new >= best:
            break
        best = new
        best_ordering = [list(layer) for layer in ordering]
        if best == 0:
            break

    return best_ordering


# ─── Coordinate Assignment ────────────────────────────────────────────────────


def assign_coordinates(
    ordering: list[list[str]],
    aug: AugmentedGraph,
    spacing: Spacing,
    horizontal: bool = False,
    margin: float = 0.0,
) -> list[LayoutNode]:
    """Assign canvas coordinates (top-left corners) to every node.

    Vertical layout: ranks advance along y, nodes spread along x. Horizontal
    swaps the two axes. Each rank is as deep as its largest node; within a rank
    nodes sit ``spacing.node_gap`` apart and the rank is centred on the widest
    rank. A refinement pass then shifts whole ranks (by at most one gap) so
    their centres line up with their neighbours in the previous/next rank.
    """
    def dims(node_id: str) -> tuple[float, float]:
        """(spread extent, rank extent) for a node."""
        attrs = aug.graph.nodes[node_id]
        width = attrs.get("width", 0.0)
        height = attrs.get("height", 0.0)
        return (height, width) if horizontal else (width, height)

    gap = spacing.node_gap

    layer_depth: list[float] = [max((dims(n)[1] for n in layer), default=0.0) for layer in ordering]
    layer_pos: list[float] = []
    cursor = 0.0
    for depth in layer_depth:
        layer_pos.append(cursor)
        cursor += depth + spacing.rank_gap

    layer_extent: list[float] = []
    for layer_nodes in ordering:
        total = sum(dims(n)[0] for n in layer_nodes)
        total += gap * (len(layer_nodes) - 1) if len(layer_nodes) > 1 else 0.0
        layer_extent.append(total)
    center = max(layer_extent, default=0.0) / 2

    placed: list[LayoutNode] = []
    for layer_idx, layer_nodes in enumerate(ordering):
        offset = center - layer_extent[layer_idx] / 2
        for order, node_id in enumerate(layer_nodes):
            attrs = aug.graph.nodes[node_id]
            placed.append(
                LayoutNode(
                    id=node_id,
                    layer=layer_idx,
                    order=order,
                    x=offset,
                    y=layer_pos[layer_idx],
                    width=attrs.get("width", 0.0),
                    height=attrs.get("height", 0.0),
                    dummy=attrs.get("dummy", False),
                )
            )
            offset += dims(node_id)[0] + gap

    node_idx: dict[str, int] = {n.id: i for i, n in enumerate(placed)}

    def mid(node_id: str) -> float:
        n = placed[node_idx[node_id]]
        return n.x + dims(node_id)[0] / 2

    def shift_layer(layer_idx: int, neighbours: Callable[[str], Iterable[str]]) -> None:
        own = 0.0
        other = 0.0
        count = 0
        for node_id in ordering[layer_idx]:
            for nb in neighbours(node_id):
                if nb in node_idx and not placed[node_idx[nb]].dummy:
                    own += mid(node_id)
                    other += mid(nb)
                    count += 1
        if count == 0:
            return
        shift = (other - own) / count
        if abs(shift) > gap:
            return
        for node_id in ordering[layer_idx]:
            placed[node_idx[node_id]].x += shift

    for layer_idx in range(1, len(ordering)):
        shift_layer(layer_idx, aug.graph.predecessors)
    for layer_idx in range(len(ordering) - 2, -1, -1):
        shift_layer(layer_idx, aug.graph.successors)

    # Normalize: smallest spread coordinate lands on the margin.
    if placed:
        min_spread = min(n.x for n in placed)
        for n in placed:
            n.x = n.x - min_spread + margin
            n.y = n.y + margin

    if horizontal:
        for n in placed:
            n.x, n.y = n.y, n.x

    return placed


# ─── Full Pipeline ────────────────────────────────────────────────────────────


def layered_positions(
    nodes: list[Node],
    edges: list[Edge],
    spacing: Spacing,
    node_size: tuple[float, float] | None = None,
    horizontal: bool = False,
    margin: float = 0.0,
    weight_fn: WeightFn | None = None,
    max_passes: int = 24,
) -> dict[str, Position]:
    """Run the whole pipeline and return the top-left position of every real node."""
    graph = build_digraph(nodes, edges, node_size, weight_fn)
    la = LayerAssignment.assign(graph)
    dag, _ = remove_cycles(graph)
    aug = insert_dummy_nodes(dag, la)
    ordering = minimise_crossings(aug, max_passes, weighted=weight_fn is not None)
    placed = assign_coordinates(ordering, aug, spacing, horizontal, margin)
    return {n.id: Position(n.x, n.y) for n in placed if not n.dummy}
