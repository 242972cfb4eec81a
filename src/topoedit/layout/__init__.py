"""Layout engine: pure repositioning strategies over (nodes, edges)."""

from topoedit.layout.engine import (
    STRATEGIES,
    apply_layout,
    edge_weight,
    grid_layout,
    hierarchical_layout,
    horizontal_layout,
    radial_layout,
    smart_layout,
    trace_chains,
    warehouse_flow_layout,
)
from topoedit.layout.types import LayoutKind, LayoutNode, LayoutResult

__all__ = [
    "STRATEGIES",
    "LayoutKind",
    "LayoutNode",
    "LayoutResult",
    "apply_layout",
    "edge_weight",
    "grid_layout",
    "hierarchical_layout",
    "horizontal_layout",
    "radial_layout",
    "smart_layout",
    "trace_chains",
    "warehouse_flow_layout",
]
