"""Layout and editor tuning knobs.

The module keeps one process-wide default ``LayoutConfig``; callers that need a
different tuning pass their own instance explicitly instead of mutating it.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field


@dataclass
class Spacing:
    """Gap between nodes inside a rank and gap between consecutive ranks."""

    node_gap: float
    rank_gap: float


@dataclass
class SpacingTiers:
    """Spacing picked by node count: ``large`` above ``large_over``, ``medium``
    above ``medium_over``, ``small`` otherwise."""

    large: Spacing
    medium: Spacing
    small: Spacing
    large_over: int = 100
    medium_over: int = 50

    def pick(self, node_count: int) -> Spacing:
        if node_count > self.large_over:
            return self.large
        if node_count > self.medium_over:
            return self.medium
        return self.small


@dataclass
class LayoutConfig:
    # Hierarchical (top-to-bottom).
    hierarchical_tiers: SpacingTiers = field(
        default_factory=lambda: SpacingTiers(
            large=Spacing(25, 50),
            medium=Spacing(35, 60),
            small=Spacing(50, 80),
        )
    )
    hierarchical_node_size: tuple[float, float] = (120.0, 80.0)

    # Horizontal (left-to-right).
    horizontal_tiers: SpacingTiers = field(
        default_factory=lambda: SpacingTiers(
            large=Spacing(30, 60),
            medium=Spacing(50, 80),
            small=Spacing(80, 120),
        )
    )
    horizontal_node_size: tuple[float, float] = (150.0, 100.0)
    horizontal_compact_node_size: tuple[float, float] = (100.0, 60.0)
    horizontal_compact_over: int = 50

    # Smart (weighted, always left-to-right).
    smart_tiers: SpacingTiers = field(
        default_factory=lambda: SpacingTiers(
            large=Spacing(120, 180),
            medium=Spacing(150, 220),
            small=Spacing(180, 280),
        )
    )
    smart_node_size: tuple[float, float] = (80.0, 80.0)
    smart_margin: float = 80.0
    scanner_edge_weight: float = 3.0
    default_edge_weight: float = 5.0

    margin: float = 10.0
    max_ordering_passes: int = 24

    # Grid / radial fallbacks.
    grid_spacing: float = 150.0
    grid_origin: tuple[float, float] = (100.0, 100.0)
    radial_center: tuple[float, float] = (400.0, 300.0)
    radial_radius: float = 200.0

    # Warehouse flow chain tracing.
    warehouse_threshold: int = 80
    chain_node_pitch: float = 80.0
    chain_row_pitch: float = 120.0
    chain_origin: tuple[float, float] = (50.0, 50.0)
    feeder_code_prefixes: tuple[str, ...] = ("61", "63", "65", "V")
    feeder_attrs: tuple[str, ...] = ("ptlFeed", "ptlFeedControl")


@dataclass
class EditorConfig:
    """Store-side constants: paste/duplicate offsets and snapping."""

    paste_offset: tuple[float, float] = (50.0, 50.0)
    duplicate_offset: tuple[float, float] = (50.0, 50.0)
    copy_suffix: str = "_copy"
    alignment_threshold: float = 8.0
    history_limit: int | None = None
    layout: LayoutConfig = field(default_factory=LayoutConfig)


_LAYOUT_CONFIG = LayoutConfig()


def get_layout_config() -> LayoutConfig:
    return copy.deepcopy(_LAYOUT_CONFIG)


def set_layout_config(config: LayoutConfig) -> None:
    global _LAYOUT_CONFIG
    _LAYOUT_CONFIG = copy.deepcopy(config)
