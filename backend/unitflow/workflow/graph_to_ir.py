"""
Visual Graph → IR — rebuild a WorkflowIR from canvas nodes and edges.

Nesting is recovered from ``parent_id`` chains: a compound node's
children become ``branches`` (side taken from the ``_then_`` / ``_else_``
id marker) or ``nested_blocks``, ordered top to bottom. The marker
prefix is stripped to get back the original step id.

Top-level ``depends_on`` comes from ``dependency`` edges only; the
result is validated and put in execution order by the Sorter.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, List, Optional, Sequence, Union

from unitflow.workflow.branch_layout import ELSE_MARKER, LOOP_MARKER, THEN_MARKER
from unitflow.workflow.errors import DuplicateNodeIdError, InvalidGraphNodeError
from unitflow.workflow.ir_schema import validate_workflow_ir
from unitflow.workflow.ir_to_graph import CALLBACK_NODE_PREFIX, callback_node_id
from unitflow.workflow.layered_layout import is_callback_node, is_callback_step_node
from unitflow.workflow.node_kinds import CompoundKind
from unitflow.workflow.topological_sort import topological_sort, validate_unique_step_ids
from unitflow.workflow.workflow_model import (
    EdgeKind,
    StepIR,
    TriggerIR,
    VisualEdge,
    VisualNode,
    WorkflowIR,
    WorkflowMetadata,
)

logger = getLogger(__name__)

RawStep = Dict[str, Any]


def _strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix):] if value.startswith(prefix) else value


class GraphIRBuilder:
    """Reverse conversion for one canvas graph.

    Usage::

        ir = GraphIRBuilder(nodes, edges, trigger).build()
    """

    def __init__(
        self,
        nodes: Sequence[VisualNode],
        edges: Sequence[VisualEdge],
        trigger: Union[TriggerIR, Dict[str, Any]],
        metadata: Optional[WorkflowMetadata] = None,
    ) -> None:
        self._nodes = list(nodes)
        self._edges = list(edges)
        self._trigger = trigger
        self._metadata = metadata
        self._by_id: Dict[str, VisualNode] = {}
        self._index: Dict[str, int] = {}
        self._children: Dict[str, List[VisualNode]] = {}

    def build(self) -> WorkflowIR:
        self._index_nodes()

        main = [n for n in self._nodes if self._is_main(n)]
        depends_on = self._collect_dependencies()
        raw_steps = [
            self._node_to_step(node, node.id, depends_on.get(node.id))
            for node in main
        ]

        raw: Dict[str, Any] = {
            "trigger": (
                self._trigger.model_dump()
                if isinstance(self._trigger, TriggerIR)
                else self._trigger
            ),
            "steps": raw_steps,
        }
        callbacks = self._build_callbacks()
        if callbacks:
            raw["callbacks"] = callbacks
        if self._metadata is not None:
            raw["metadata"] = self._metadata.model_dump(exclude_none=True)

        ir = validate_workflow_ir(raw)

        validate_unique_step_ids(ir.steps)
        ordered = topological_sort(ir.steps)
        sorted_callbacks = None
        if ir.callbacks:
            sorted_callbacks = []
            for callback in ir.callbacks:
                if callback.steps:
                    validate_unique_step_ids(callback.steps)
                    callback = callback.model_copy(
                        update={"steps": topological_sort(callback.steps)}
                    )
                sorted_callbacks.append(callback)

        return ir.model_copy(update={"steps": ordered, "callbacks": sorted_callbacks})

    # ========================================================================
    # Indexing
    # ========================================================================

    def _index_nodes(self) -> None:
        duplicates: List[str] = []
        for index, node in enumerate(self._nodes):
            if not node.kind or not node.kind.strip():
                raise InvalidGraphNodeError(node.id, "node kind is missing")
            if node.id in self._by_id:
                duplicates.append(node.id)
                continue
            self._by_id[node.id] = node
            self._index[node.id] = index
        if duplicates:
            raise DuplicateNodeIdError(sorted(set(duplicates)))

        for node in self._nodes:
            if node.parent_id is None:
                continue
            parent = self._by_id.get(node.parent_id)
            if parent is None:
                raise InvalidGraphNodeError(node.id, f"parent '{node.parent_id}' does not exist")
            if CompoundKind.lookup(parent.kind) is None:
                raise InvalidGraphNodeError(
                    node.id, f"parent '{parent.id}' is not a container node"
                )
            self._children.setdefault(parent.id, []).append(node)

    def _is_main(self, node: VisualNode) -> bool:
        return (
            node.parent_id is None
            and not is_callback_node(node)
            and not is_callback_step_node(node)
        )

    def _top_to_bottom(self, nodes: List[VisualNode]) -> List[VisualNode]:
        return sorted(nodes, key=lambda n: (n.position.y, self._index[n.id]))

    def _collect_dependencies(self) -> Dict[str, List[str]]:
        """``depends_on`` per top-level node, from dependency edges only."""
        depends_on: Dict[str, List[str]] = {}
        for edge in self._edges:
            if edge.kind != EdgeKind.DEPENDENCY:
                continue
            target = self._by_id.get(edge.target)
            if target is None or not self._is_main(target):
                logger.warning(
                    f"Ignoring dependency edge '{edge.id}': target '{edge.target}' "
                    f"is not a top-level step"
                )
                continue
            source = self._by_id.get(edge.source)
            if source is not None and not self._is_main(source):
                logger.warning(
                    f"Ignoring dependency edge '{edge.id}': source '{edge.source}' "
                    f"is not a top-level step"
                )
                continue
            # An unknown source is kept so the Sorter reports it as dangling
            deps = depends_on.setdefault(target.id, [])
            if edge.source not in deps:
                deps.append(edge.source)
        return depends_on

    # ========================================================================
    # Steps
    # ========================================================================

    def _node_to_step(
        self,
        node: VisualNode,
        step_id: str,
        depends_on: Optional[List[str]] = None,
    ) -> RawStep:
        compound = CompoundKind.lookup(node.kind)
        config = node.data.get("config")
        step: RawStep = {
            "id": step_id,
            "name": node.data.get("label") or step_id,
            "type": compound.step_type if compound is not None else node.kind,
            "config": dict(config) if isinstance(config, dict) else {},
        }
        if depends_on:
            step["depends_on"] = list(depends_on)
        step["position"] = {"x": round(node.position.x), "y": round(node.position.y)}

        if compound is None:
            return step

        children = self._top_to_bottom(self._children.get(node.id, []))
        if compound == CompoundKind.CONDITION:
            then_prefix = f"{node.id}{THEN_MARKER}"
            else_prefix = f"{node.id}{ELSE_MARKER}"
            then_steps: List[RawStep] = []
            else_steps: List[RawStep] = []
            for child in children:
                if child.id.startswith(then_prefix):
                    then_steps.append(self._node_to_step(child, _strip_prefix(child.id, then_prefix)))
                elif child.id.startswith(else_prefix):
                    else_steps.append(self._node_to_step(child, _strip_prefix(child.id, else_prefix)))
                else:
                    raise InvalidGraphNodeError(
                        child.id, f"cannot tell which branch of '{node.id}' it belongs to"
                    )
            branches: Dict[str, List[RawStep]] = {}
            if then_steps:
                branches["then"] = then_steps
            if else_steps:
                branches["else"] = else_steps
            if branches:
                step["branches"] = branches
        else:
            loop_prefix = f"{node.id}{LOOP_MARKER}"
            body = [
                self._node_to_step(child, _strip_prefix(child.id, loop_prefix))
                for child in children
            ]
            if body:
                step["nested_blocks"] = body
        return step

    # ========================================================================
    # Callbacks
    # ========================================================================

    def _build_callbacks(self) -> List[RawStep]:
        callbacks: List[RawStep] = []
        for node in self._nodes:
            if not is_callback_node(node):
                continue
            callback_id = node.data.get("callback_id") or _strip_prefix(node.id, CALLBACK_NODE_PREFIX)
            step_prefix = f"{callback_node_id(callback_id)}_"

            step_nodes = self._top_to_bottom([
                n for n in self._nodes
                if n.parent_id is None
                and is_callback_step_node(n)
                and n.data.get("parent_callback_id") == callback_id
            ])
            step_node_ids = {n.id for n in step_nodes}

            depends_on: Dict[str, List[str]] = {}
            for edge in self._edges:
                if edge.kind != EdgeKind.CALLBACK:
                    continue
                if edge.source in step_node_ids and edge.target in step_node_ids:
                    deps = depends_on.setdefault(edge.target, [])
                    dep_id = _strip_prefix(edge.source, step_prefix)
                    if dep_id not in deps:
                        deps.append(dep_id)

            config = node.data.get("config")
            callback: RawStep = {
                "id": callback_id,
                "name": node.data.get("label") or callback_id,
                "type": node.kind,
                "config": dict(config) if isinstance(config, dict) else {},
                "position": {"x": round(node.position.x), "y": round(node.position.y)},
            }
            steps = [
                self._node_to_step(n, _strip_prefix(n.id, step_prefix), depends_on.get(n.id))
                for n in step_nodes
            ]
            if steps:
                callback["steps"] = steps
            callbacks.append(callback)
        return callbacks


def graph_to_ir(
    nodes: Sequence[VisualNode],
    edges: Sequence[VisualEdge],
    trigger: Union[TriggerIR, Dict[str, Any]],
    metadata: Optional[WorkflowMetadata] = None,
) -> WorkflowIR:
    """Convert a canvas graph back into an execution-ordered IR.

    Raises:
        InvalidGraphNodeError: A node has no kind or a broken parent link.
        SchemaValidationError: The rebuilt IR is structurally invalid.
        DuplicateNodeIdError: Two canvas nodes share an id.
        DuplicateStepIdError, DanglingDependencyError, CircularDependencyError
    """
    ir = GraphIRBuilder(nodes, edges, trigger, metadata).build()
    logger.info(f"Graph converted to IR: {len(ir.steps)} top-level step(s)")
    return ir
