"""Tests for topology JSON export/import (serialization.py)."""

from __future__ import annotations

import json

import pytest

from topoedit.errors import TopoEditError, TopologyImportError
from topoedit.model import Edge, EdgeData, Node, NodeData, NodeType, Position, create_text_box
from topoedit.serialization import WireEdge, dumps, export_topology, import_topology, load_file, loads, save_file

# ─── Helpers ──────────────────────────────────────────────────────────────────


def sample_graph() -> tuple[list[Node], list[Edge]]:
    nodes = [
        Node(id="n1", data=NodeData(code="61001", type=NodeType.SCANNER, cmd=1, attrs={"ptlFeed": "true"})),
        Node(id="n2", data=NodeData(code="S2", type=NodeType.ASRS_INFEED, cmd=2)),
        create_text_box("t1", Position(0, 0), "note"),
    ]
    edges = [
        Edge(id="e1", source="n1", target="n2", data=EdgeData(distance=1.5, capacity=3, default=True, attrs={"lane": "1"})),
        Edge(id="e2", source="n2", target="t1"),
    ]
    return nodes, edges


def payload(nodes: list[dict], edges: list[dict] | None = None) -> dict:
    return {"whId": 1, "nodes": nodes, "edges": edges or [], "loops": []}


# ─── Export ───────────────────────────────────────────────────────────────────


class TestExport:
    def test_fields(self):
        nodes, edges = sample_graph()
        data = export_topology(nodes, edges, wh_id=42)
        assert data == {
            "whId": 42,
            "nodes": [
                {"code": "61001", "type": "SCANNER", "cmd": 1, "attrs": {"ptlFeed": "true"}},
                {"code": "S2", "type": "ASRS-INFEED", "cmd": 2, "attrs": {}},
            ],
            "edges": [
                {"from": "61001", "to": "S2", "distance": 1.5, "attrs": {"lane": "1"}, "default": True, "capacity": 3},
            ],
            "loops": [],
        }

    def test_default_wh_id_is_epoch_millis(self):
        data = export_topology([], [])
        assert isinstance(data["whId"], int)
        assert data["whId"] > 1_600_000_000_000

    def test_dumps_is_json(self):
        nodes, edges = sample_graph()
        assert json.loads(dumps(nodes, edges, wh_id=7))["whId"] == 7


# ─── Import ───────────────────────────────────────────────────────────────────


class TestImport:
    def test_nodes_get_fresh_ids_and_grid(self):
        raw = [{"code": f"C{i}", "type": "SIMPLE", "cmd": i, "attrs": {}} for i in range(7)]
        nodes, _ = import_topology(payload(raw))
        assert [n.id for n in nodes] == [str(i) for i in range(1, 8)]
        assert nodes[0].position == Position(100, 100)
        assert nodes[4].position == Position(580, 100)
        assert nodes[5].position == Position(100, 200)

    def test_defaults_for_missing_fields(self):
        nodes, _ = import_topology(payload([{}, {"code": "X", "type": "bogus"}]))
        assert nodes[0].data.code == "node_0"
        assert nodes[0].data.cmd == 0
        assert nodes[1].data.cmd == 1
        assert nodes[1].data.type is NodeType.SIMPLE

    def test_type_case_insensitive(self):
        nodes, _ = import_topology(payload([{"code": "A", "type": "scanner"}, {"code": "B", "type": "Asrs-Eject"}]))
        assert nodes[0].data.type is NodeType.SCANNER
        assert nodes[1].data.type is NodeType.ASRS_EJECT

    def test_edges_resolved_by_code(self):
        nodes, edges = import_topology(
            payload(
                [{"code": "A"}, {"code": "B"}],
                [{"from": "A", "to": "B", "distance": 2, "attrs": {"k": "v"}, "default": True, "capacity": 4}],
            )
        )
        (edge,) = edges
        assert (edge.source, edge.target) == ("1", "2")
        assert (edge.data.distance, edge.data.capacity, edge.data.default) == (2.0, 4, True)
        assert edge.data.attrs == {"k": "v"}

    def test_unknown_code_dropped(self):
        _, edges = import_topology(payload([{"code": "A"}], [{"from": "A", "to": "ghost"}]))
        assert edges == []

    def test_duplicate_code_resolves_to_first(self):
        _, edges = import_topology(payload([{"code": "A"}, {"code": "A"}, {"code": "B"}], [{"from": "A", "to": "B"}]))
        assert edges[0].source == "1"

    def test_repeated_pairs_and_self_loops_dropped(self):
        _, edges = import_topology(
            payload(
                [{"code": "A"}, {"code": "B"}],
                [{"from": "A", "to": "B"}, {"from": "A", "to": "B"}, {"from": "A", "to": "A"}, {"from": "B", "to": "A"}],
            )
        )
        assert [(e.source, e.target) for e in edges] == [("1", "2"), ("2", "1")]

    def test_edge_defaults(self):
        _, edges = import_topology(payload([{"code": "A"}, {"code": "B"}], [{"from": "A", "to": "B"}]))
        assert (edges[0].data.distance, edges[0].data.capacity, edges[0].data.default) == (0.5, 1, False)

    def test_edge_fields_coerced_by_value(self):
        """A "false" string is False, and a whole-number string capacity is accepted."""
        _, edges = import_topology(
            payload([{"code": "A"}, {"code": "B"}], [{"from": "A", "to": "B", "default": "false", "capacity": "3"}])
        )
        assert edges[0].data.default is False
        assert edges[0].data.capacity == 3

    def test_numeric_codes_resolve(self):
        nodes, edges = import_topology(
            payload([{"code": 61001, "attrs": {"zone": 4}}, {"code": "S2"}], [{"from": 61001, "to": "S2"}])
        )
        assert nodes[0].data.code == "61001"
        assert nodes[0].data.attrs == {"zone": "4"}
        assert (edges[0].source, edges[0].target) == ("1", "2")

    def test_null_collections(self):
        assert import_topology({"whId": 1, "nodes": None, "edges": None}) == ([], [])

    def test_wire_edge_aliases(self):
        wire = WireEdge.model_validate({"from": "A", "to": "B"})
        assert (wire.source, wire.target) == ("A", "B")
        assert wire.to_edge_data() == EdgeData()

    def test_export_import_keeps_fields(self):
        nodes, edges = sample_graph()
        imported_nodes, imported_edges = loads(dumps(nodes, edges, wh_id=1))
        assert [(n.data.code, n.data.type, n.data.cmd, n.data.attrs) for n in imported_nodes] == [
            ("61001", NodeType.SCANNER, 1, {"ptlFeed": "true"}),
            ("S2", NodeType.ASRS_INFEED, 2, {}),
        ]
        assert len(imported_edges) == 1
        assert imported_edges[0].data == edges[0].data


class TestMalformed:
    @pytest.mark.parametrize("text", ["", "{not json", "[1, 2]", '"topology"'])
    def test_rejected(self, text):
        with pytest.raises(TopologyImportError):
            loads(text)

    def test_bad_nodes_type(self):
        with pytest.raises(TopologyImportError):
            import_topology({"nodes": {"code": "A"}})

    def test_bad_capacity(self):
        with pytest.raises(TopologyImportError):
            import_topology(payload([{"code": "A"}, {"code": "B"}], [{"from": "A", "to": "B", "capacity": 0}]))

    def test_fractional_capacity(self):
        with pytest.raises(TopologyImportError):
            import_topology(payload([{"code": "A"}, {"code": "B"}], [{"from": "A", "to": "B", "capacity": 2.9}]))

    def test_negative_distance(self):
        with pytest.raises(TopologyImportError):
            import_topology(payload([{"code": "A"}, {"code": "B"}], [{"from": "A", "to": "B", "distance": -1}]))

    def test_unreadable_flag(self):
        with pytest.raises(TopologyImportError):
            import_topology(payload([{"code": "A"}, {"code": "B"}], [{"from": "A", "to": "B", "default": "maybe"}]))

    def test_bad_cmd(self):
        with pytest.raises(TopologyImportError):
            import_topology(payload([{"code": "A", "cmd": "first"}]))

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            loads("{")
        assert issubclass(TopologyImportError, TopoEditError)


class TestFiles:
    def test_save_and_load(self, tmp_path):
        nodes, edges = sample_graph()
        path = tmp_path / "topology.json"
        save_file(path, nodes, edges, wh_id=5)
        assert json.loads(path.read_text(encoding="utf-8"))["whId"] == 5
        loaded_nodes, loaded_edges = load_file(path)
        assert len(loaded_nodes) == 2
        assert len(loaded_edges) == 1
