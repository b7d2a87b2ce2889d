"""
Branch Layout — child placement inside condition and loop containers.

Condition (then/else side by side)::

    ┌────────────────────────────┐
    │  IF condition              │
    ├─────────────┬──────────────┤
    │ THEN        │  ELSE        │
    │ - Child1    │  - Child1    │
    │ - Child2    │              │
    └─────────────┴──────────────┘

Loop / match (single column)::

    ┌──────────────────────┐
    │  FOR EACH item       │
    ├──────────────────────┤
    │  - Child1            │
    │  - Child2            │
    └──────────────────────┘

Pure geometry over child lists: no edges, no ordering. Child positions
are relative to the parent. Both condition columns share each row's
height so asymmetric branches stay aligned.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import AbstractSet, Dict, List, Optional, Sequence, Tuple

from unitflow.config.conversion_config import BranchLayoutConfig
from unitflow.workflow.node_kinds import CompoundKind
from unitflow.workflow.workflow_model import Position, VisualNode

logger = getLogger(__name__)

THEN_MARKER = "_then_"
ELSE_MARKER = "_else_"
LOOP_MARKER = "_loop_"


@dataclass
class CompoundLayoutResult:
    """Positioned children plus the footprint the parent needs."""

    children: List[VisualNode]
    parent_width: float
    parent_height: float


def _footprint(node: VisualNode, cfg: BranchLayoutConfig) -> Tuple[float, float]:
    return (
        node.width if node.width is not None else cfg.child_width,
        node.height if node.height is not None else cfg.child_height,
    )


def _row_height(heights: Sequence[float], cfg: BranchLayoutConfig) -> float:
    # A row of plain children is exactly one child_spacing tall.
    gap = cfg.child_spacing - cfg.child_height
    return max([cfg.child_spacing] + [h + gap for h in heights])


def _place(
    child: VisualNode,
    parent: VisualNode,
    x: float,
    y: float,
    keep_positions: AbstractSet[str],
) -> VisualNode:
    update = {"parent_id": parent.id, "contained_in_parent": True}
    if child.id not in keep_positions:
        update["position"] = Position(x=x, y=y)
    return child.model_copy(update=update)


def layout_branch_children(
    parent: VisualNode,
    then_children: Sequence[VisualNode],
    else_children: Sequence[VisualNode],
    config: Optional[BranchLayoutConfig] = None,
    keep_positions: AbstractSet[str] = frozenset(),
) -> CompoundLayoutResult:
    """Two columns: ``then`` on the left, ``else`` on the right."""
    cfg = config or BranchLayoutConfig()

    row_count = max(len(then_children), len(else_children), 1)
    row_heights: List[float] = []
    for row in range(row_count):
        heights = [
            _footprint(column[row], cfg)[1]
            for column in (then_children, else_children)
            if row < len(column)
        ]
        row_heights.append(_row_height(heights, cfg))

    column_width = max(
        [cfg.child_width]
        + [_footprint(c, cfg)[0] for c in (*then_children, *else_children)]
    )

    row_offsets = [cfg.header_height + sum(row_heights[:row]) for row in range(row_count)]
    else_x = cfg.padding + column_width + cfg.branch_gap

    positioned = [
        _place(child, parent, cfg.padding, row_offsets[row], keep_positions)
        for row, child in enumerate(then_children)
    ] + [
        _place(child, parent, else_x, row_offsets[row], keep_positions)
        for row, child in enumerate(else_children)
    ]

    height = max(
        cfg.min_parent_height,
        cfg.header_height + sum(row_heights) + cfg.padding * 2,
    )
    width = max(
        cfg.min_parent_width,
        column_width * 2 + cfg.branch_gap + cfg.padding * 2,
    )
    return CompoundLayoutResult(children=positioned, parent_width=width, parent_height=height)


def layout_loop_children(
    parent: VisualNode,
    children: Sequence[VisualNode],
    config: Optional[BranchLayoutConfig] = None,
    keep_positions: AbstractSet[str] = frozenset(),
) -> CompoundLayoutResult:
    """Single narrower column, stacked top to bottom."""
    cfg = config or BranchLayoutConfig()

    row_heights = [_row_height([_footprint(c, cfg)[1]], cfg) for c in children]
    body_height = sum(row_heights) if row_heights else cfg.child_spacing

    x = cfg.padding + cfg.loop_indent
    positioned: List[VisualNode] = []
    y = cfg.header_height
    for child, row_height in zip(children, row_heights):
        positioned.append(_place(child, parent, x, y, keep_positions))
        y += row_height

    widest = max([cfg.child_width] + [_footprint(c, cfg)[0] for c in children])
    width = max(
        cfg.min_parent_width - cfg.loop_width_reduction,
        cfg.child_width + cfg.padding * 2,
        widest + cfg.padding * 2 + cfg.loop_indent,
    )
    height = max(
        cfg.min_parent_height,
        cfg.header_height + body_height + cfg.padding * 2,
    )
    return CompoundLayoutResult(children=positioned, parent_width=width, parent_height=height)


def _depth(node: VisualNode, by_id: Dict[str, VisualNode]) -> int:
    depth = 0
    seen = {node.id}
    current = node
    while current.parent_id is not None and current.parent_id in by_id:
        current = by_id[current.parent_id]
        if current.id in seen:
            break
        seen.add(current.id)
        depth += 1
    return depth


def apply_compound_layout(
    nodes: Sequence[VisualNode],
    config: Optional[BranchLayoutConfig] = None,
    keep_positions: AbstractSet[str] = frozenset(),
) -> List[VisualNode]:
    """Position children and size every compound node.

    Containers are processed deepest first so a nested container's
    footprint is final before its parent is sized. Child ids listed in
    *keep_positions* keep their current (user-saved) position.
    """
    cfg = config or BranchLayoutConfig()
    by_id: Dict[str, VisualNode] = {n.id: n for n in nodes}
    children_of: Dict[str, List[str]] = {}
    for node in nodes:
        if node.parent_id is not None:
            children_of.setdefault(node.parent_id, []).append(node.id)

    compounds = [n for n in nodes if CompoundKind.lookup(n.kind) is not None]
    compounds.sort(key=lambda n: _depth(n, by_id), reverse=True)

    for compound in compounds:
        parent = by_id[compound.id]
        children = [by_id[cid] for cid in children_of.get(parent.id, [])]

        if parent.kind == CompoundKind.CONDITION.value:
            then_children = [c for c in children if c.id.startswith(parent.id + THEN_MARKER)]
            else_children = [c for c in children if c.id.startswith(parent.id + ELSE_MARKER)]
            result = layout_branch_children(parent, then_children, else_children, cfg, keep_positions)
        else:
            result = layout_loop_children(parent, children, cfg, keep_positions)

        for child in result.children:
            by_id[child.id] = child
        by_id[parent.id] = parent.model_copy(
            update={"width": result.parent_width, "height": result.parent_height}
        )

    logger.debug(f"Compound layout sized {len(compounds)} container(s)")
    return [by_id[n.id] for n in nodes]
