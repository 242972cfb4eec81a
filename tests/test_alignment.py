"""Tests for alignment guides and snapping (alignment.py)."""

from __future__ import annotations

from topoedit.alignment import AlignmentGuides, DragTracker, compute_guides, snap_position
from topoedit.model import Node, NodeData, Position, create_text_box

# ─── Helpers ──────────────────────────────────────────────────────────────────


def make_node(node_id: str, x: float, y: float, width: float = 64.0, height: float = 64.0) -> Node:
    return Node(id=node_id, data=NodeData(code=node_id), position=Position(x, y), width=width, height=height)


# ─── compute_guides ───────────────────────────────────────────────────────────


class TestComputeGuides:
    def test_center_alignment(self):
        """Other node centred at x=132; dragged centre at 136 is within 8."""
        nodes = [make_node("A", 100, 100), make_node("B", 300, 300)]
        guides = compute_guides("B", Position(104, 250), nodes)
        assert guides.x == [132.0]
        assert guides.y == []

    def test_left_edge_alignment(self):
        """Different widths: centres differ, left edges match."""
        nodes = [make_node("A", 100, 0, width=200), make_node("B", 0, 300)]
        guides = compute_guides("B", Position(103, 300), nodes)
        assert guides.x == [100.0]

    def test_right_edge_alignment(self):
        nodes = [make_node("A", 100, 0, width=200), make_node("B", 0, 300)]
        guides = compute_guides("B", Position(240, 300), nodes)
        assert guides.x == [300.0]

    def test_outside_threshold(self):
        nodes = [make_node("A", 100, 100), make_node("B", 300, 300)]
        assert compute_guides("B", Position(120, 400), nodes).is_empty()

    def test_boundary_is_inclusive(self):
        nodes = [make_node("A", 100, 100), make_node("B", 300, 300)]
        assert compute_guides("B", Position(108, 400), nodes).x == [132.0]

    def test_dragged_node_excluded(self):
        nodes = [make_node("A", 100, 100)]
        assert compute_guides("A", Position(100, 100), nodes).is_empty()

    def test_textbox_excluded(self):
        nodes = [create_text_box("t1", Position(100, 100)), make_node("B", 300, 300)]
        assert compute_guides("B", Position(100, 100), nodes).is_empty()

    def test_guides_deduplicated(self):
        nodes = [make_node("A", 100, 0), make_node("C", 100, 500), make_node("B", 300, 300)]
        guides = compute_guides("B", Position(101, 250), nodes)
        assert guides.x == [132.0]

    def test_both_axes(self):
        nodes = [make_node("A", 100, 100), make_node("B", 300, 300)]
        guides = compute_guides("B", Position(100, 100), nodes)
        assert guides == AlignmentGuides(x=[132.0], y=[132.0])


# ─── snap_position ────────────────────────────────────────────────────────────


class TestSnapPosition:
    def test_snaps_centre(self):
        nodes = [make_node("A", 100, 100), make_node("B", 300, 300)]
        assert snap_position("B", Position(104, 250), nodes) == Position(100, 250)

    def test_snaps_left_edge(self):
        """Widths 70 and 64: centres are 0 apart at x=3, yet the left edges win."""
        nodes = [make_node("A", 0, 0, width=70), make_node("B", 300, 300)]
        assert snap_position("B", Position(3, 300), nodes).x == 0

    def test_snaps_top_edge(self):
        nodes = [make_node("A", 0, 200, height=80), make_node("B", 300, 300)]
        assert snap_position("B", Position(300, 205), nodes).y == 200

    def test_left_edge_snap_with_wide_neighbour(self):
        nodes = [make_node("A", 100, 0, width=200), make_node("B", 0, 300)]
        assert snap_position("B", Position(103, 300), nodes) == Position(100, 300)

    def test_snaps_right_edge(self):
        nodes = [make_node("A", 100, 0, width=200), make_node("B", 0, 300)]
        assert snap_position("B", Position(240, 300), nodes) == Position(236, 300)

    def test_unchanged_outside_threshold(self):
        nodes = [make_node("A", 100, 100), make_node("B", 300, 300)]
        assert snap_position("B", Position(150, 400), nodes) == Position(150, 400)

    def test_last_match_wins(self):
        """Two candidates within range: the later node decides the x snap."""
        nodes = [make_node("A", 100, 0), make_node("C", 106, 500), make_node("B", 300, 300)]
        assert snap_position("B", Position(103, 250), nodes).x == 106

    def test_does_not_mutate_input(self):
        nodes = [make_node("A", 100, 100), make_node("B", 300, 300)]
        pos = Position(104, 250)
        snap_position("B", pos, nodes)
        assert pos == Position(104, 250)
        assert nodes[1].position == Position(300, 300)


# ─── DragTracker ──────────────────────────────────────────────────────────────


class TestDragTracker:
    def test_drag_records_guides(self):
        tracker = DragTracker()
        nodes = [make_node("A", 100, 100), make_node("B", 300, 300)]
        snapped = tracker.drag("B", Position(104, 250), nodes)
        assert snapped == Position(100, 250)
        assert tracker.active
        assert tracker.dragged_id == "B"
        assert tracker.guides.x == [132.0]

    def test_end_clears(self):
        tracker = DragTracker()
        tracker.drag("B", Position(104, 250), [make_node("A", 100, 100), make_node("B", 300, 300)])
        tracker.end()
        assert not tracker.active
        assert tracker.guides.is_empty()

    def test_end_without_drag(self):
        tracker = DragTracker()
        tracker.end()
        assert tracker.dragged_id is None

    def test_custom_threshold(self):
        tracker = DragTracker(threshold=2.0)
        nodes = [make_node("A", 100, 100), make_node("B", 300, 300)]
        assert tracker.drag("B", Position(104, 250), nodes) == Position(104, 250)
