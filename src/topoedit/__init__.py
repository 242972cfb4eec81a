"""Editable warehouse topology graphs: store, layouts, alignment and import/export."""

from topoedit.alignment import AlignmentGuides, DragTracker, compute_guides, snap_position
from topoedit.config import EditorConfig, LayoutConfig, Spacing, get_layout_config, set_layout_config
from topoedit.dot import parse_dot
from topoedit.errors import ConnectionRejection, ConnectionResult, TopoEditError, TopologyImportError
from topoedit.layout import LayoutKind, LayoutResult, apply_layout
from topoedit.model import (
    Connection,
    Edge,
    EdgeData,
    EdgePatch,
    EdgeStyle,
    Node,
    NodeData,
    NodeKind,
    NodePatch,
    NodeType,
    PathType,
    Position,
    create_node,
    create_text_box,
)
from topoedit.serialization import dumps, export_topology, import_topology, load_file, loads, save_file
from topoedit.store import GraphStore

__all__ = [
    "AlignmentGuides",
    "Connection",
    "ConnectionRejection",
    "ConnectionResult",
    "DragTracker",
    "Edge",
    "EdgeData",
    "EdgePatch",
    "EdgeStyle",
    "EditorConfig",
    "GraphStore",
    "LayoutConfig",
    "LayoutKind",
    "LayoutResult",
    "Node",
    "NodeData",
    "NodeKind",
    "NodePatch",
    "NodeType",
    "PathType",
    "Position",
    "Spacing",
    "TopoEditError",
    "TopologyImportError",
    "apply_layout",
    "compute_guides",
    "create_node",
    "create_text_box",
    "dumps",
    "export_topology",
    "get_layout_config",
    "import_topology",
    "load_file",
    "loads",
    "parse_dot",
    "save_file",
    "set_layout_config",
    "snap_position",
]
