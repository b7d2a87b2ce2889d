"""
Conversion Configuration.

Layout geometry, round-trip tolerances and the legacy flattening
strategy. Plain dataclasses with defaults; callers pass them
explicitly; the engine reads no environment variables or files.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from unitflow.workflow.legacy_adapter import FlatteningPolicy


@dataclass
class BranchLayoutConfig:
    """Geometry of condition and loop containers (pixels)."""

    min_parent_width: float = 320
    min_parent_height: float = 200
    header_height: float = 80
    child_spacing: float = 70
    branch_gap: float = 20
    padding: float = 15
    child_height: float = 50
    child_width: float = 130
    loop_indent: float = 10
    loop_width_reduction: float = 40

    @classmethod
    def get_config_name(cls) -> str:
        return "branch_layout"


@dataclass
class LayeredLayoutConfig:
    """Rank-based placement of top-level nodes (pixels)."""

    direction: str = "TB"
    node_spacing: float = 60
    rank_spacing: float = 120
    margin_x: float = 50
    margin_y: float = 50
    node_width: float = 200
    node_height: float = 60
    compound_width: float = 320
    compound_height: float = 200
    # A top-level node counts as user-positioned past this distance from origin
    position_threshold: float = 10
    # Vertical stacking used when layout is skipped
    fallback_x: float = 400
    fallback_start_y: float = 100
    fallback_spacing: float = 120
    # Callback area
    callback_area_gap: float = 100
    callback_start_x: float = 700
    callback_spacing: float = 300
    callback_step_spacing: float = 100

    def __post_init__(self) -> None:
        if self.direction not in ("TB", "LR"):
            raise ValueError(f"Unsupported layout direction: {self.direction!r}")

    @classmethod
    def get_config_name(cls) -> str:
        return "layered_layout"


@dataclass
class RoundTripOptions:
    position_tolerance: float = 1.0
    validate_config: bool = True
    validate_callbacks: bool = True

    @classmethod
    def get_config_name(cls) -> str:
        return "round_trip"


def _default_flattening() -> "FlatteningPolicy":
    from unitflow.workflow.legacy_adapter import SiblingFlattening
    return SiblingFlattening()


@dataclass
class ConversionConfig:
    """Everything the conversion pipeline can be tuned with."""

    branch_layout: BranchLayoutConfig = field(default_factory=BranchLayoutConfig)
    layered_layout: LayeredLayoutConfig = field(default_factory=LayeredLayoutConfig)
    flattening_policy: "FlatteningPolicy" = field(default_factory=_default_flattening)

    @classmethod
    def default(cls) -> "ConversionConfig":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for diagnostics."""
        return {
            BranchLayoutConfig.get_config_name(): asdict(self.branch_layout),
            LayeredLayoutConfig.get_config_name(): asdict(self.layered_layout),
            "flattening_policy": type(self.flattening_policy).__name__,
        }
