"""
IR → Visual Graph — build the positioned canvas graph from a WorkflowIR.

Node ids:
    top-level step          ``{stepId}``
    condition child         ``{parentNodeId}_then_{stepId}`` / ``{parentNodeId}_else_{stepId}``
    loop / match child      ``{parentNodeId}_loop_{stepId}``
    callback                ``callback_{callbackId}``
    callback step           ``callback_{callbackId}_{stepId}``

Only ``dependency`` edges carry ordering. Branch, loop and callback
edges are drawn for the reader; the loop-back edge in particular is
never part of any cycle check.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import Any, Dict, List, Optional, Set, Tuple

from unitflow.config.conversion_config import ConversionConfig
from unitflow.workflow.branch_layout import ELSE_MARKER, LOOP_MARKER, THEN_MARKER
from unitflow.workflow.errors import DuplicateNodeIdError
from unitflow.workflow.layered_layout import auto_layout
from unitflow.workflow.node_kinds import CompoundKind
from unitflow.workflow.topological_sort import topological_sort, validate_unique_step_ids
from unitflow.workflow.workflow_model import (
    CallbackIR,
    EdgeKind,
    Position,
    StepIR,
    TriggerIR,
    VisualEdge,
    VisualNode,
    WorkflowIR,
)

logger = getLogger(__name__)

CALLBACK_NODE_PREFIX = "callback_"
LOOP_BACK_HANDLE = "loop-back"


def callback_node_id(callback_id: str) -> str:
    return f"{CALLBACK_NODE_PREFIX}{callback_id}"


@dataclass
class GraphConversionResult:
    """Output of the forward path."""

    nodes: List[VisualNode]
    edges: List[VisualEdge]
    trigger: TriggerIR
    callbacks: Optional[List[CallbackIR]]
    ir: WorkflowIR
    was_legacy: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Canvas payload with camelCase keys."""
        payload: Dict[str, Any] = {
            "nodes": [n.model_dump(mode="json", by_alias=True, exclude_none=True) for n in self.nodes],
            "edges": [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in self.edges],
            "trigger": self.trigger.model_dump(mode="json"),
            "ir": self.ir.to_dict(),
            "wasLegacy": self.was_legacy,
        }
        if self.callbacks is not None:
            payload["callbacks"] = [
                c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in self.callbacks
            ]
        return payload


class IRGraphBuilder:
    """Turn one WorkflowIR into canvas nodes and edges.

    Steps:
        1. Check top-level ids are unique and the dependency graph sorts
           (dangling references and cycles fail here, before layout).
        2. Walk steps in list order, recursing into branches and loop
           bodies to create compound and child nodes.
        3. Add callback nodes and link them to referencing leaf steps.
           Generated node ids must not collide with step ids.
        4. Run the layout pipeline; saved positions are kept.

    Usage::

        nodes, edges = IRGraphBuilder(ir).build()
    """

    def __init__(self, ir: WorkflowIR, config: Optional[ConversionConfig] = None) -> None:
        self._ir = ir
        self._config = config or ConversionConfig.default()
        self._nodes: List[VisualNode] = []
        self._edges: List[VisualEdge] = []
        self._edge_ids: Set[str] = set()
        self._saved_positions: Set[str] = set()
        self._leaf_nodes: List[Tuple[str, StepIR]] = []

    def build(self) -> Tuple[List[VisualNode], List[VisualEdge]]:
        steps = self._ir.steps
        validate_unique_step_ids(steps)
        topological_sort(steps)

        for step in steps:
            self._add_step(step, step.id, parent_id=None, link_callbacks=True)
            for dep_id in step.depends_on or []:
                self._add_edge(
                    VisualEdge(id=f"{dep_id}->{step.id}", source=dep_id, target=step.id)
                )

        for callback in self._ir.callbacks or []:
            self._add_callback(callback)

        self._check_unique_node_ids()
        nodes = auto_layout(
            self._nodes,
            self._edges,
            self._config.branch_layout,
            self._config.layered_layout,
            frozenset(self._saved_positions),
        )
        return nodes, list(self._edges)

    # ========================================================================
    # Nodes
    # ========================================================================

    def _check_unique_node_ids(self) -> None:
        seen: Set[str] = set()
        duplicates: List[str] = []
        for node in self._nodes:
            if node.id in seen and node.id not in duplicates:
                duplicates.append(node.id)
            seen.add(node.id)
        if duplicates:
            raise DuplicateNodeIdError(duplicates)

    def _add_edge(self, edge: VisualEdge) -> None:
        if edge.id in self._edge_ids:
            return
        self._edge_ids.add(edge.id)
        self._edges.append(edge)

    def _add_node(
        self,
        node_id: str,
        kind: str,
        data: Dict[str, Any],
        position: Optional[Position],
        parent_id: Optional[str],
    ) -> None:
        if position is not None:
            self._saved_positions.add(node_id)
        self._nodes.append(
            VisualNode(
                id=node_id,
                kind=kind,
                position=position or Position(x=0, y=0),
                data=data,
                parent_id=parent_id,
                contained_in_parent=parent_id is not None,
            )
        )

    def _add_step(
        self,
        step: StepIR,
        node_id: str,
        parent_id: Optional[str],
        link_callbacks: bool,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        if parent_id is not None and step.depends_on:
            logger.warning(
                f"Ignoring depends_on of nested step '{step.id}': "
                f"order inside a container is structural"
            )

        if not step.is_container():
            data: Dict[str, Any] = {"label": step.name, "config": dict(step.config)}
            data.update(extra_data or {})
            self._add_node(node_id, step.type, data, step.position, parent_id)
            if link_callbacks:
                self._leaf_nodes.append((node_id, step))
            return

        kind = CompoundKind.for_step_type(step.type)
        data = compound_node_data(step, kind)
        data.update(extra_data or {})
        self._add_node(node_id, kind.value, data, step.position, parent_id)

        if kind == CompoundKind.CONDITION:
            self._add_branch(node_id, step.then_steps, THEN_MARKER, "then", link_callbacks)
            self._add_branch(node_id, step.else_steps, ELSE_MARKER, "else", link_callbacks)
        else:
            self._add_loop_body(node_id, step.nested_blocks or [], link_callbacks)

    def _add_branch(
        self,
        node_id: str,
        children: List[StepIR],
        marker: str,
        side: str,
        link_callbacks: bool,
    ) -> None:
        validate_unique_step_ids(children)
        for index, child in enumerate(children):
            child_node_id = f"{node_id}{marker}{child.id}"
            self._add_step(child, child_node_id, node_id, link_callbacks)
            # Only the first child is wired; the rest follow by position
            if index == 0:
                self._add_edge(
                    VisualEdge(
                        id=f"{node_id}-{side}-{child.id}",
                        source=node_id,
                        target=child_node_id,
                        kind=EdgeKind.BRANCH,
                        label=side,
                        source_handle=side,
                    )
                )

    def _add_loop_body(self, node_id: str, children: List[StepIR], link_callbacks: bool) -> None:
        validate_unique_step_ids(children)
        child_ids: List[str] = []
        for child in children:
            child_node_id = f"{node_id}{LOOP_MARKER}{child.id}"
            self._add_step(child, child_node_id, node_id, link_callbacks)
            child_ids.append(child_node_id)

        if not child_ids:
            return

        self._add_edge(
            VisualEdge(
                id=f"{node_id}-loop-start-{children[0].id}",
                source=node_id,
                target=child_ids[0],
                kind=EdgeKind.LOOP,
                label="each item",
            )
        )
        for index in range(len(child_ids) - 1):
            self._add_edge(
                VisualEdge(
                    id=f"{node_id}-loop-seq-{index}",
                    source=child_ids[index],
                    target=child_ids[index + 1],
                    kind=EdgeKind.LOOP,
                )
            )
        self._add_edge(
            VisualEdge(
                id=f"{node_id}-loop-repeat",
                source=child_ids[-1],
                target=node_id,
                kind=EdgeKind.LOOP,
                label="repeat",
                target_handle=LOOP_BACK_HANDLE,
                animated=True,
            )
        )

    # ========================================================================
    # Callbacks
    # ========================================================================

    def _add_callback(self, callback: CallbackIR) -> None:
        cb_node_id = callback_node_id(callback.id)
        self._add_node(
            cb_node_id,
            callback.type,
            {
                "label": callback.name,
                "config": dict(callback.config),
                "is_callback": True,
                "callback_id": callback.id,
            },
            callback.position,
            None,
        )

        steps = callback.steps or []
        validate_unique_step_ids(steps)
        topological_sort(steps)

        linked_first = False
        for step in steps:
            step_node_id = f"{cb_node_id}_{step.id}"
            self._add_step(
                step,
                step_node_id,
                parent_id=None,
                link_callbacks=False,
                extra_data={"is_callback_step": True, "parent_callback_id": callback.id},
            )
            for dep_id in step.depends_on or []:
                source = f"{cb_node_id}_{dep_id}"
                self._add_edge(
                    VisualEdge(
                        id=f"{source}->{step_node_id}",
                        source=source,
                        target=step_node_id,
                        kind=EdgeKind.CALLBACK,
                    )
                )
            if not step.depends_on and not linked_first:
                linked_first = True
                self._add_edge(
                    VisualEdge(
                        id=f"{cb_node_id}->{step_node_id}",
                        source=cb_node_id,
                        target=step_node_id,
                        kind=EdgeKind.CALLBACK,
                    )
                )

        # ── Leaf steps that name this callback in their config ──
        for node_id, step in self._leaf_nodes:
            if step.config.get("callback") == callback.name:
                self._add_edge(
                    VisualEdge(
                        id=f"{node_id}->{cb_node_id}",
                        source=node_id,
                        target=cb_node_id,
                        kind=EdgeKind.CALLBACK,
                        animated=True,
                    )
                )


def compound_node_data(step: StepIR, kind: CompoundKind) -> Dict[str, Any]:
    """Display data for a container node."""
    config = step.config
    data: Dict[str, Any] = {"label": step.name, "config": dict(config)}
    if kind == CompoundKind.CONDITION:
        data["condition"] = config.get("condition") or config.get("expressions")
        data["has_then_branch"] = bool(step.then_steps)
        data["has_else_branch"] = bool(step.else_steps)
        data["child_count"] = len(step.then_steps) + len(step.else_steps)
    else:
        data["item_var"] = config.get("itemVariable") or config.get("iterator") or "item"
        data["collection"] = config.get("items") or config.get("array") or "[]"
        data["child_count"] = len(step.nested_blocks or [])
    return data


def ir_to_graph(
    ir: WorkflowIR,
    config: Optional[ConversionConfig] = None,
    was_legacy: bool = False,
) -> GraphConversionResult:
    """Convert a validated IR into a positioned visual graph.

    Raises:
        DuplicateStepIdError, DanglingDependencyError, CircularDependencyError
        DuplicateNodeIdError: A step id collides with a generated node id.
    """
    nodes, edges = IRGraphBuilder(ir, config).build()
    logger.info(f"IR converted to graph: {len(nodes)} node(s), {len(edges)} edge(s)")
    return GraphConversionResult(
        nodes=nodes,
        edges=edges,
        trigger=ir.trigger,
        callbacks=ir.callbacks,
        ir=ir,
        was_legacy=was_legacy,
    )
