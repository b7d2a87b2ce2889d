"""
Layered Layout — rank-based placement of top-level nodes.

Only top-level workflow nodes take part: children of compound nodes
are placed by ``branch_layout`` and callback nodes go to their own area
below the main flow. Only ``dependency`` edges between top-level nodes
define ranks (longest-path layering); branch, loop and callback edges
are illustrative.

``auto_layout`` fixes the pass order: compound sizing first, so the
layering pass works with final compound footprints.
"""

from __future__ import annotations

from logging import getLogger
from typing import AbstractSet, Any, Dict, List, Optional, Sequence, Tuple

import networkx as nx

from unitflow.config.conversion_config import BranchLayoutConfig, LayeredLayoutConfig
from unitflow.workflow.branch_layout import apply_compound_layout
from unitflow.workflow.node_kinds import CompoundKind
from unitflow.workflow.topological_sort import order_dependency_graph
from unitflow.workflow.workflow_model import EdgeKind, Position, VisualEdge, VisualNode

logger = getLogger(__name__)


def is_callback_node(node: VisualNode) -> bool:
    return node.data.get("is_callback") is True


def is_callback_step_node(node: VisualNode) -> bool:
    return node.data.get("is_callback_step") is True or node.data.get("parent_callback_id") is not None


def _is_main_top_level(node: VisualNode) -> bool:
    return node.parent_id is None and not is_callback_node(node) and not is_callback_step_node(node)


def node_dimensions(node: VisualNode, config: Optional[LayeredLayoutConfig] = None) -> Tuple[float, float]:
    cfg = config or LayeredLayoutConfig()
    if node.width is not None and node.height is not None:
        return node.width, node.height
    if CompoundKind.lookup(node.kind) is not None:
        return cfg.compound_width, cfg.compound_height
    return cfg.node_width, cfg.node_height


def _with_positions(nodes: Sequence[VisualNode], updates: Dict[str, Position]) -> List[VisualNode]:
    return [
        n.model_copy(update={"position": updates[n.id]}) if n.id in updates else n
        for n in nodes
    ]


def should_apply_layout(
    nodes: Sequence[VisualNode],
    config: Optional[LayeredLayoutConfig] = None,
) -> bool:
    """True when no top-level node sits meaningfully away from the origin."""
    cfg = config or LayeredLayoutConfig()
    top_level = [n for n in nodes if n.parent_id is None]
    if not top_level:
        return False
    return not any(
        abs(n.position.x) > cfg.position_threshold or abs(n.position.y) > cfg.position_threshold
        for n in top_level
    )


# ============================================================================
# Layering
# ============================================================================


def _build_dependency_graph(
    nodes: Sequence[VisualNode],
    edges: Sequence[VisualEdge],
) -> nx.DiGraph:
    graph = nx.DiGraph()
    for node in nodes:
        graph.add_node(node.id)
    for edge in edges:
        if edge.kind != EdgeKind.DEPENDENCY:
            continue
        if edge.source in graph and edge.target in graph and edge.source != edge.target:
            graph.add_edge(edge.source, edge.target)
    return graph


def compute_ranks(
    nodes: Sequence[VisualNode],
    edges: Sequence[VisualEdge],
) -> Dict[str, int]:
    """Longest-path rank of every node; ties keep the input order."""
    order = {node.id: index for index, node in enumerate(nodes)}
    graph = _build_dependency_graph(nodes, edges)
    ranks: Dict[str, int] = {}
    for node_id in order_dependency_graph(graph, order):
        ranks[node_id] = max((ranks[p] + 1 for p in graph.predecessors(node_id)), default=0)
    return ranks


def apply_layered_layout(
    nodes: Sequence[VisualNode],
    edges: Sequence[VisualEdge],
    config: Optional[LayeredLayoutConfig] = None,
) -> List[VisualNode]:
    """Place main top-level nodes rank by rank; other nodes are returned unchanged."""
    cfg = config or LayeredLayoutConfig()
    main = [n for n in nodes if _is_main_top_level(n)]
    if not main:
        return list(nodes)

    ranks = compute_ranks(main, edges)
    layers: Dict[int, List[VisualNode]] = {}
    for node in main:
        layers.setdefault(ranks[node.id], []).append(node)

    horizontal = cfg.direction == "LR"

    def along(node: VisualNode) -> float:
        # extent within a rank
        w, h = node_dimensions(node, cfg)
        return h if horizontal else w

    def across(node: VisualNode) -> float:
        # extent between ranks
        w, h = node_dimensions(node, cfg)
        return w if horizontal else h

    layer_lengths = {
        rank: sum(along(n) for n in members) + cfg.node_spacing * (len(members) - 1)
        for rank, members in layers.items()
    }
    longest = max(layer_lengths.values())

    positions: Dict[str, Position] = {}
    rank_offset = cfg.margin_x if horizontal else cfg.margin_y
    for rank in sorted(layers):
        members = layers[rank]
        depth = max(across(n) for n in members)
        cursor = (cfg.margin_y if horizontal else cfg.margin_x) + (longest - layer_lengths[rank]) / 2
        for node in members:
            centered = rank_offset + (depth - across(node)) / 2
            if horizontal:
                positions[node.id] = Position(x=centered, y=cursor)
            else:
                positions[node.id] = Position(x=cursor, y=centered)
            cursor += along(node) + cfg.node_spacing
        rank_offset += depth + cfg.rank_spacing

    logger.debug(f"Layered layout: {len(main)} node(s) in {len(layers)} rank(s)")
    return _with_positions(nodes, positions)


# ============================================================================
# Fallback and callback placement
# ============================================================================


def apply_fallback_positions(
    nodes: Sequence[VisualNode],
    config: Optional[LayeredLayoutConfig] = None,
    keep_positions: AbstractSet[str] = frozenset(),
) -> List[VisualNode]:
    """Stack unpositioned top-level nodes vertically in list order."""
    cfg = config or LayeredLayoutConfig()
    gap = cfg.fallback_spacing - cfg.node_height
    y = cfg.fallback_start_y
    updates: Dict[str, Position] = {}
    for node in nodes:
        if not _is_main_top_level(node):
            continue
        if node.id not in keep_positions:
            updates[node.id] = Position(x=cfg.fallback_x, y=y)
        y += max(cfg.fallback_spacing, node_dimensions(node, cfg)[1] + gap)
    return _with_positions(nodes, updates)


def place_callback_nodes(
    nodes: Sequence[VisualNode],
    config: Optional[LayeredLayoutConfig] = None,
    keep_positions: AbstractSet[str] = frozenset(),
) -> List[VisualNode]:
    """Put callbacks in a row below the main flow, their steps stacked under each.

    Each callback owns a column. Rows advance by at least
    ``callback_step_spacing`` and columns by at least ``callback_spacing``;
    taller or wider nodes (sized containers) push followers further so
    nothing overlaps.
    """
    cfg = config or LayeredLayoutConfig()
    main = [n for n in nodes if _is_main_top_level(n)]
    if main:
        area_y = max(n.position.y + node_dimensions(n, cfg)[1] for n in main) + cfg.callback_area_gap
    else:
        area_y = cfg.fallback_start_y

    row_gap = cfg.callback_step_spacing - cfg.node_height
    column_gap = cfg.callback_spacing - cfg.node_width

    updates: Dict[str, Position] = {}
    x = cfg.callback_start_x
    for callback in (n for n in nodes if is_callback_node(n)):
        callback_id = callback.data.get("callback_id")
        column = [callback] + [
            n for n in nodes
            if is_callback_step_node(n) and n.data.get("parent_callback_id") == callback_id
        ]
        y = area_y
        for member in column:
            if member.id not in keep_positions:
                updates[member.id] = Position(x=x, y=y)
            y += max(cfg.callback_step_spacing, node_dimensions(member, cfg)[1] + row_gap)
        widest = max(node_dimensions(member, cfg)[0] for member in column)
        x += max(cfg.callback_spacing, widest + column_gap)
    return _with_positions(nodes, updates)


def auto_layout(
    nodes: Sequence[VisualNode],
    edges: Sequence[VisualEdge],
    branch_config: Optional[BranchLayoutConfig] = None,
    layered_config: Optional[LayeredLayoutConfig] = None,
    keep_positions: AbstractSet[str] = frozenset(),
) -> List[VisualNode]:
    """Full layout pipeline.

    1. Size compound nodes and place their children (deepest first).
    2. If no top-level node carries a meaningful position, layer the
       top-level nodes; otherwise only fill in unpositioned ones.
    3. Place callback nodes below the main flow.
    """
    if not nodes:
        return []
    layered_config = layered_config or LayeredLayoutConfig()

    laid_out = apply_compound_layout(nodes, branch_config, keep_positions)
    if should_apply_layout(laid_out, layered_config):
        laid_out = apply_layered_layout(laid_out, edges, layered_config)
        logger.info(f"Auto-layout applied to {len(laid_out)} node(s)")
    else:
        laid_out = apply_fallback_positions(laid_out, layered_config, keep_positions)
    return place_callback_nodes(laid_out, layered_config, keep_positions)


def get_layout_info(
    nodes: Sequence[VisualNode],
    edges: Sequence[VisualEdge],
) -> Dict[str, Any]:
    """Counts used when debugging layout problems."""
    top_level_ids = {n.id for n in nodes if n.parent_id is None}
    return {
        "node_count": len(nodes),
        "edge_count": sum(
            1 for e in edges if e.source in top_level_ids and e.target in top_level_ids
        ),
        "top_level_count": len(top_level_ids),
        "child_count": len(nodes) - len(top_level_ids),
    }


# ============================================================================
# Alignment
# ============================================================================

HORIZONTAL_ALIGNMENTS = ("left", "center", "right")
VERTICAL_ALIGNMENTS = ("top", "middle", "bottom")


def _selected(nodes: Sequence[VisualNode], node_ids: AbstractSet[str]) -> List[VisualNode]:
    # Child positions are relative to their container; only top-level nodes move.
    return [n for n in nodes if n.id in node_ids and n.parent_id is None]


def align_nodes_horizontal(
    nodes: Sequence[VisualNode],
    node_ids: AbstractSet[str],
    alignment: str = "left",
    config: Optional[LayeredLayoutConfig] = None,
) -> List[VisualNode]:
    """Line up the selected nodes' left edges, centres or right edges.

    Needs at least two selected top-level nodes; otherwise *nodes* is
    returned unchanged.
    """
    if alignment not in HORIZONTAL_ALIGNMENTS:
        raise ValueError(f"Unsupported horizontal alignment: {alignment!r}")
    cfg = config or LayeredLayoutConfig()
    selected = _selected(nodes, node_ids)
    if len(selected) < 2:
        return list(nodes)

    left = min(n.position.x for n in selected)
    right = max(n.position.x + node_dimensions(n, cfg)[0] for n in selected)
    updates: Dict[str, Position] = {}
    for node in selected:
        width = node_dimensions(node, cfg)[0]
        if alignment == "left":
            x = left
        elif alignment == "center":
            x = (left + right) / 2 - width / 2
        else:
            x = right - width
        updates[node.id] = Position(x=x, y=node.position.y)
    return _with_positions(nodes, updates)


def align_nodes_vertical(
    nodes: Sequence[VisualNode],
    node_ids: AbstractSet[str],
    alignment: str = "top",
    config: Optional[LayeredLayoutConfig] = None,
) -> List[VisualNode]:
    """Line up the selected nodes' top edges, middles or bottom edges."""
    if alignment not in VERTICAL_ALIGNMENTS:
        raise ValueError(f"Unsupported vertical alignment: {alignment!r}")
    cfg = config or LayeredLayoutConfig()
    selected = _selected(nodes, node_ids)
    if len(selected) < 2:
        return list(nodes)

    top = min(n.position.y for n in selected)
    bottom = max(n.position.y + node_dimensions(n, cfg)[1] for n in selected)
    updates: Dict[str, Position] = {}
    for node in selected:
        height = node_dimensions(node, cfg)[1]
        if alignment == "top":
            y = top
        elif alignment == "middle":
            y = (top + bottom) / 2 - height / 2
        else:
            y = bottom - height
        updates[node.id] = Position(x=node.position.x, y=y)
    return _with_positions(nodes, updates)


def _distribute(
    nodes: Sequence[VisualNode],
    node_ids: AbstractSet[str],
    horizontal: bool,
    config: Optional[LayeredLayoutConfig],
) -> List[VisualNode]:
    cfg = config or LayeredLayoutConfig()
    selected = _selected(nodes, node_ids)
    if len(selected) < 3:
        return list(nodes)

    def start(node: VisualNode) -> float:
        return node.position.x if horizontal else node.position.y

    def extent(node: VisualNode) -> float:
        w, h = node_dimensions(node, cfg)
        return w if horizontal else h

    ordered = sorted(selected, key=start)
    span = start(ordered[-1]) + extent(ordered[-1]) - start(ordered[0])
    gap = (span - sum(extent(n) for n in ordered)) / (len(ordered) - 1)

    updates: Dict[str, Position] = {}
    cursor = start(ordered[0])
    for node in ordered:
        if horizontal:
            updates[node.id] = Position(x=cursor, y=node.position.y)
        else:
            updates[node.id] = Position(x=node.position.x, y=cursor)
        cursor += extent(node) + gap
    return _with_positions(nodes, updates)


def distribute_nodes_horizontal(
    nodes: Sequence[VisualNode],
    node_ids: AbstractSet[str],
    config: Optional[LayeredLayoutConfig] = None,
) -> List[VisualNode]:
    """Equal gaps between the selected nodes, left to right.

    The leftmost and rightmost nodes stay put. Needs at least three
    selected top-level nodes.
    """
    return _distribute(nodes, node_ids, True, config)


def distribute_nodes_vertical(
    nodes: Sequence[VisualNode],
    node_ids: AbstractSet[str],
    config: Optional[LayeredLayoutConfig] = None,
) -> List[VisualNode]:
    """Equal gaps between the selected nodes, top to bottom."""
    return _distribute(nodes, node_ids, False, config)
