"""Graph store: the single owner of an editing session's state.

One ``GraphStore`` per session: nodes, edges, selection, history and
clipboard live on the instance, and every mutation goes through its methods.
Mutations commit a history snapshot (see ``_commit``); selection changes and
undo/redo do not. Subscribers registered with ``subscribe`` are called after
every state change.
"""

from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable

from topoedit.alignment import DragTracker
from topoedit.config import EditorConfig
from topoedit.errors import ConnectionRejection, ConnectionResult
from topoedit.history import History
from topoedit.layout.engine import apply_layout
from topoedit.layout.types import LayoutKind, LayoutResult
from topoedit.model import (
    Connection,
    Edge,
    EdgeData,
    EdgePatch,
    EdgeStyle,
    Node,
    NodePatch,
    NodeType,
    Position,
    apply_edge_patch,
    apply_node_patch,
    create_node,
    create_text_box,
    has_connection,
    is_code_unique,
    is_self_loop,
)

logger = logging.getLogger(__name__)

Listener = Callable[["GraphStore", str], None]


@dataclass
class Selection:
    """Primary selection (at most one node or one edge) plus multi-select sets.

    The two are independent; bulk operations prefer the multi-select sets when
    they are non-empty.
    """

    node_id: str | None = None
    edge_id: str | None = None
    node_ids: list[str] = field(default_factory=list)
    edge_ids: list[str] = field(default_factory=list)

    def has_multi(self) -> bool:
        return bool(self.node_ids or self.edge_ids)


@dataclass
class Clipboard:
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.nodes


class GraphStore:
    """Stateful editing session over a warehouse topology graph."""

    def __init__(self, config: EditorConfig | None = None, id_prefix: str = "n") -> None:
        self.config = config or EditorConfig()
        self.id_prefix = id_prefix
        self._nodes: list[Node] = []
        self._edges: list[Edge] = []
        self._selection = Selection()
        self._clipboard = Clipboard()
        self._ids = itertools.count(1)
        self._listeners: list[Listener] = []
        self.history = History(limit=self.config.history_limit)
        self.drag = DragTracker(threshold=self.config.alignment_threshold)
        self.history.commit(self._nodes, self._edges)

    # ─── Read access ──────────────────────────────────────────────────────────

    @property
    def nodes(self) -> tuple[Node, ...]:
        """Current nodes. Records are frozen; change them through the store."""
        return tuple(self._nodes)

    @property
    def edges(self) -> tuple[Edge, ...]:
        return tuple(self._edges)

    @property
    def selection(self) -> Selection:
        return copy.deepcopy(self._selection)

    @property
    def clipboard(self) -> Clipboard:
        return copy.deepcopy(self._clipboard)

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def get_node(self, node_id: str | None) -> Node | None:
        return next((n for n in self._nodes if n.id == node_id), None)

    def get_edge(self, edge_id: str | None) -> Edge | None:
        return next((e for e in self._edges if e.id == edge_id), None)

    @property
    def selected_node(self) -> Node | None:
        return self.get_node(self._selection.node_id)

    @property
    def selected_edge(self) -> Edge | None:
        return self.get_edge(self._selection.edge_id)

    @property
    def multi_selected_nodes(self) -> list[Node]:
        wanted = set(self._selection.node_ids)
        return [n for n in self._nodes if n.id in wanted]

    @property
    def multi_selected_edges(self) -> list[Edge]:
        wanted = set(self._selection.edge_ids)
        return [e for e in self._edges if e.id in wanted]

    # ─── Observers ────────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(store, action)``; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, action: str) -> None:
        for listener in list(self._listeners):
            listener(self, action)

    # ─── Internals ────────────────────────────────────────────────────────────

    def _commit(self, action: str) -> None:
        """Snapshot the graph into history, then tell subscribers."""
        self.history.commit(self._nodes, self._edges)
        logger.debug(
            "%s: %d nodes, %d edges (history %d/%d)",
            action,
            len(self._nodes),
            len(self._edges),
            self.history.cursor + 1,
            len(self.history),
        )
        self._notify(action)

    def _fresh_node_id(self, taken: set[str] | None = None) -> str:
        used = {n.id for n in self._nodes} | (taken or set())
        while True:
            candidate = f"{self.id_prefix}{next(self._ids)}"
            if candidate not in used:
                return candidate

    def _fresh_edge_id(self, source: str, target: str, taken: set[str] | None = None) -> str:
        used = {e.id for e in self._edges} | (taken or set())
        while True:
            candidate = f"e-{source}-{target}-{next(self._ids)}"
            if candidate not in used:
                return candidate

    def _forget(self, node_ids: Iterable[str] = (), edge_ids: Iterable[str] = ()) -> None:
        """Drop deleted ids from the selection."""
        gone_nodes = set(node_ids)
        gone_edges = set(edge_ids)
        sel = self._selection
        if sel.node_id in gone_nodes:
            sel.node_id = None
        if sel.edge_id in gone_edges:
            sel.edge_id = None
        sel.node_ids = [i for i in sel.node_ids if i not in gone_nodes]
        sel.edge_ids = [i for i in sel.edge_ids if i not in gone_edges]

    def _remove(self, node_ids: set[str], edge_ids: set[str]) -> tuple[int, int]:
        """Remove nodes (cascading to incident edges) and edges; returns counts."""
        before_nodes = len(self._nodes)
        before_edges = len(self._edges)
        self._nodes = [n for n in self._nodes if n.id not in node_ids]
        cascaded = {e.id for e in self._edges if e.source in node_ids or e.target in node_ids}
        removed_edges = edge_ids | cascaded
        self._edges = [e for e in self._edges if e.id not in removed_edges]
        self._forget(node_ids, removed_edges)
        return before_nodes - len(self._nodes), before_edges - len(self._edges)

    # ─── Node operations ──────────────────────────────────────────────────────

    def add_node(self, node: Node) -> Node:
        """Append ``node`` and make it the primary selection.

        Raises:
            ValueError: if a node with the same id already exists.
        """
        if self.get_node(node.id) is not None:
            raise ValueError(f"node id {node.id!r} already exists")
        if node.is_custom and not is_code_unique(node.data.code, self._nodes):
            logger.warning("node code %r is already in use", node.data.code)
        stored = copy.deepcopy(node)
        self._nodes.append(stored)
        self._selection.node_id = stored.id
        self._selection.edge_id = None
        self._commit("add_node")
        return stored

    def new_node(self, node_type: NodeType, position: Position | None = None) -> Node:
        """Create a palette node with a fresh id and add it."""
        return self.add_node(create_node(node_type, self._fresh_node_id(), position))

    def add_text_box(self, position: Position, text: str = "") -> Node:
        return self.add_node(create_text_box(self._fresh_node_id(), position, text))

    def update_node(self, node_id: str, patch: NodePatch) -> Node | None:
        """Apply ``patch`` to a node; unknown ids are a no-op returning None."""
        for i, node in enumerate(self._nodes):
            if node.id == node_id:
                updated = apply_node_patch(node, patch)
                if patch.code is not None and not is_code_unique(patch.code, self._nodes, exclude_id=node_id):
                    logger.warning("node code %r is already in use", patch.code)
                self._nodes[i] = updated
                self._commit("update_node")
                return updated
        return None

    def move_node(self, node_id: str, position: Position) -> Node | None:
        return self.update_node(node_id, NodePatch(position=Position(position.x, position.y)))

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and every edge that starts or ends at it."""
        if self.get_node(node_id) is None:
            return False
        _, cascaded = self._remove({node_id}, set())
        logger.debug("delete_node %s removed %d incident edge(s)", node_id, cascaded)
        self._commit("delete_node")
        return True

    def duplicate_node(self, node_id: str) -> Node | None:
        """Copy a node with a fresh id, offset position and ``_copy`` code suffix.

        Incident edges are not duplicated. Unknown ids are a no-op.
        """
        original = self.get_node(node_id)
        if original is None:
            return None
        dx, dy = self.config.duplicate_offset
        clone = copy.deepcopy(original)
        clone = replace(
            clone,
            id=self._fresh_node_id(),
            position=Position(original.position.x + dx, original.position.y + dy),
            data=replace(clone.data, code=f"{original.data.code}{self.config.copy_suffix}"),
        )
        self._nodes.append(clone)
        self._selection.node_id = clone.id
        self._selection.edge_id = None
        self._commit("duplicate_node")
        return clone

    # ─── Edge operations ──────────────────────────────────────────────────────

    def validate_connection(self, connection: Connection) -> ConnectionRejection | None:
        """Why ``connection`` would be refused, or None if it is acceptable."""
        if is_self_loop(connection.source, connection.target):
            return ConnectionRejection.SELF_LOOP
        if self.get_node(connection.source) is None or self.get_node(connection.target) is None:
            return ConnectionRejection.MISSING_ENDPOINT
        if has_connection(self._edges, connection.source, connection.target):
            return ConnectionRejection.DUPLICATE
        return None

    def add_edge(self, connection: Connection) -> ConnectionResult:
        """Connect two nodes. Self-loops, duplicates (same direction) and unknown
        endpoints are refused without touching the store."""
        reason = self.validate_connection(connection)
        if reason is not None:
            logger.warning("connection %s -> %s refused: %s", connection.source, connection.target, reason.value)
            return ConnectionResult(ok=False, reason=reason)

        edge = Edge(
            id=self._fresh_edge_id(connection.source, connection.target),
            source=connection.source,
            target=connection.target,
            label=connection.label,
            style=EdgeStyle(),
            data=EdgeData(),
        )
        self._edges.append(edge)
        self._commit("add_edge")
        return ConnectionResult(ok=True, edge_id=edge.id)

    def update_edge(self, edge_id: str, patch: EdgePatch) -> Edge | None:
        """Apply ``patch`` to an edge; unknown ids are a no-op returning None.

        Raises:
            ValueError: if the patch sets distance < 0 or capacity < 1.
        """
        for i, edge in enumerate(self._edges):
            if edge.id == edge_id:
                updated = apply_edge_patch(edge, patch)
                self._edges[i] = updated
                self._commit("update_edge")
                return updated
        return None

    def delete_edge(self, edge_id: str) -> bool:
        if self.get_edge(edge_id) is None:
            return False
        self._remove(set(), {edge_id})
        self._commit("delete_edge")
        return True

    # ─── Bulk operations ──────────────────────────────────────────────────────

    def set_graph(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """Replace the whole graph (import). Edges with a missing endpoint are dropped."""
        new_nodes = copy.deepcopy(list(nodes))
        ids = {n.id for n in new_nodes}
        new_edges = [copy.deepcopy(e) for e in edges if e.source in ids and e.target in ids]
        self._nodes = new_nodes
        self._edges = new_edges
        self._selection = Selection()
        self._commit("set_graph")

    def clear(self) -> None:
        self.set_graph([], [])

    def apply_layout(self, kind: LayoutKind | str) -> bool:
        """Reposition every node with a layout strategy; no-op on an empty graph."""
        if not self._nodes:
            return False
        result = apply_layout(kind, self._nodes, self._edges, self.config.layout)
        return self.apply_layout_result(result)

    def apply_layout_result(self, result: LayoutResult) -> bool:
        """Take node positions (and edge hints) from ``result``.

        Only positions are read from the result nodes; ids the store does not
        know are ignored.
        """
        if not self._nodes:
            return False
        positions = {n.id: n.position for n in result.nodes}
        self._nodes = [
            replace(n, position=Position(positions[n.id].x, positions[n.id].y)) if n.id in positions else n
            for n in self._nodes
        ]
        hinted = {e.id: e for e in result.edges}
        self._edges = [copy.deepcopy(hinted[e.id]) if e.id in hinted else e for e in self._edges]
        self._commit("layout")
        return True

    # ─── Drag ─────────────────────────────────────────────────────────────────

    def drag_node(self, node_id: str, position: Position) -> Position | None:
        """Move a node mid-drag: snap, update guides, do NOT commit.

        Returns the snapped position, or None for an unknown node.
        """
        if self.get_node(node_id) is None:
            return None
        snapped = self.drag.drag(node_id, position, self._nodes)
        self._nodes = [replace(n, position=snapped) if n.id == node_id else n for n in self._nodes]
        self._notify("drag")
        return snapped

    def end_drag(self) -> None:
        """Finish the drag: clear guides and commit the final position."""
        node_id = self.drag.dragged_id
        self.drag.end()
        if node_id is not None and self.get_node(node_id) is not None:
            self._commit("move_node")
        else:
            self._notify("drag_end")

    # ─── Selection ────────────────────────────────────────────────────────────

    def select(self, node_id: str | None = None, edge_id: str | None = None) -> None:
        """Set the primary selection (node wins over edge); no args clears it.

        Never committed to history.
        """
        sel = self._selection
        if node_id is not None and self.get_node(node_id) is not None:
            sel.node_id, sel.edge_id = node_id, None
        elif edge_id is not None and self.get_edge(edge_id) is not None:
            sel.node_id, sel.edge_id = None, edge_id
        else:
            sel.node_id, sel.edge_id = None, None
        self._notify("select")

    def set_multi_selected(self, node_ids: Iterable[str] = (), edge_ids: Iterable[str] = ()) -> None:
        known_nodes = {n.id for n in self._nodes}
        known_edges = {e.id for e in self._edges}
        self._selection.node_ids = [i for i in dict.fromkeys(node_ids) if i in known_nodes]
        self._selection.edge_ids = [i for i in dict.fromkeys(edge_ids) if i in known_edges]
        self._notify("select")

    def toggle_multi_selected(self, element_id: str) -> None:
        sel = self._selection
        if self.get_node(element_id) is not None:
            target = sel.node_ids
        elif self.get_edge(element_id) is not None:
            target = sel.edge_ids
        else:
            return
        if element_id in target:
            target.remove(element_id)
        else:
            target.append(element_id)
        self._notify("select")

    def clear_selection(self) -> None:
        self._selection = Selection()
        self._notify("select")

    def effective_selection(self) -> tuple[list[str], list[str]]:
        """(node_ids, edge_ids) that bulk operations act on."""
        sel = self._selection
        if sel.has_multi():
            return list(sel.node_ids), list(sel.edge_ids)
        node_ids = [sel.node_id] if sel.node_id is not None else []
        edge_ids = [sel.edge_id] if sel.edge_id is not None else []
        return node_ids, edge_ids

    def delete_selected(self) -> bool:
        node_ids, edge_ids = self.effective_selection()
        node_set = {i for i in node_ids if self.get_node(i) is not None}
        edge_set = {i for i in edge_ids if self.get_edge(i) is not None}
        if not node_set and not edge_set:
            return False
        removed_nodes, removed_edges = self._remove(node_set, edge_set)
        logger.debug("delete_selected removed %d node(s), %d edge(s)", removed_nodes, removed_edges)
        self._commit("delete_selected")
        return True

    # ─── Clipboard ────────────────────────────────────────────────────────────

    def copy_selected(self) -> bool:
        """Copy the effective selection; edges come along when both ends are copied."""
        node_ids, _ = self.effective_selection()
        wanted = set(node_ids)
        nodes = [copy.deepcopy(n) for n in self._nodes if n.id in wanted]
        if not nodes:
            return False
        copied = {n.id for n in nodes}
        edges = [copy.deepcopy(e) for e in self._edges if e.source in copied and e.target in copied]
        self._clipboard = Clipboard(nodes=nodes, edges=edges)
        logger.debug("copied %d node(s), %d edge(s)", len(nodes), len(edges))
        return True

    def paste(self) -> list[Node]:
        """Paste the clipboard with fresh ids, offset from the originals.

        Every paste of the same clipboard is an independent copy. Edges whose
        remapped endpoint is neither a pasted node nor a node in the graph are
        dropped. Pasted elements become the selection.
        """
        if self._clipboard.is_empty():
            return []
        dx, dy = self.config.paste_offset

        id_map: dict[str, str] = {}
        pasted_nodes: list[Node] = []
        for node in self._clipboard.nodes:
            new_id = self._fresh_node_id(taken=set(id_map.values()))
            id_map[node.id] = new_id
            clone = copy.deepcopy(node)
            clone = replace(clone, id=new_id, position=Position(node.position.x + dx, node.position.y + dy))
            pasted_nodes.append(clone)

        resolvable = {n.id for n in self._nodes} | set(id_map.values())
        pasted_edges: list[Edge] = []
        dropped = 0
        for edge in self._clipboard.edges:
            source = id_map.get(edge.source, edge.source)
            target = id_map.get(edge.target, edge.target)
            if source not in resolvable or target not in resolvable:
                dropped += 1
                continue
            new_id = self._fresh_edge_id(source, target, taken={e.id for e in pasted_edges})
            pasted_edges.append(replace(copy.deepcopy(edge), id=new_id, source=source, target=target))

        if dropped:
            logger.debug("paste dropped %d edge(s) with unresolved endpoints", dropped)

        self._nodes.extend(pasted_nodes)
        self._edges.extend(pasted_edges)
        self._selection = Selection(
            node_id=pasted_nodes[0].id,
            node_ids=[n.id for n in pasted_nodes],
            edge_ids=[e.id for e in pasted_edges],
        )
        self._commit("paste")
        return pasted_nodes

    # ─── History ──────────────────────────────────────────────────────────────

    def undo(self) -> bool:
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self._nodes, self._edges = snapshot.restore()
        self._selection = Selection()
        self.drag.end()
        self._notify("undo")
        return True

    def redo(self) -> bool:
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self._nodes, self._edges = snapshot.restore()
        self._selection = Selection()
        self.drag.end()
        self._notify("redo")
        return True
