"""
Workflow Converter — public entry points for text/object ↔ canvas graph.

Usage::

    # Load stored text onto the canvas
    result = yaml_to_graph(text, event_source_type="ACTIVE_TABLE")
    payload = result.to_dict()          # nodes / edges / trigger / ir / wasLegacy

    # Save the canvas back to text
    text = graph_to_yaml(payload["nodes"], payload["edges"], payload["trigger"])

Canvas nodes and edges may be passed as models or as the camelCase
dicts the editor sends.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from unitflow.config.conversion_config import ConversionConfig
from unitflow.workflow.errors import SchemaValidationError, WorkflowConversionError, describe_error
from unitflow.workflow.graph_to_ir import graph_to_ir as _graph_to_ir
from unitflow.workflow.ir_schema import format_validation_issues, validate_workflow_ir
from unitflow.workflow.ir_to_graph import GraphConversionResult, ir_to_graph
from unitflow.workflow.legacy_adapter import adapt_to_ir
from unitflow.workflow.workflow_model import (
    TriggerIR,
    VisualEdge,
    VisualNode,
    WorkflowIR,
    WorkflowMetadata,
)
from unitflow.workflow.yaml_codec import (
    dump_workflow_yaml,
    is_legacy_yaml,
    load_workflow_text,
    parse_workflow_yaml_with_info,
)

logger = getLogger(__name__)

NodeLike = Union[VisualNode, Dict[str, Any]]
EdgeLike = Union[VisualEdge, Dict[str, Any]]


def _as_nodes(nodes: Sequence[NodeLike]) -> List[VisualNode]:
    try:
        return [n if isinstance(n, VisualNode) else VisualNode.model_validate(n) for n in nodes]
    except ValidationError as e:
        raise SchemaValidationError(format_validation_issues(e)) from e


def _as_edges(edges: Sequence[EdgeLike]) -> List[VisualEdge]:
    try:
        return [e if isinstance(e, VisualEdge) else VisualEdge.model_validate(e) for e in edges]
    except ValidationError as e:
        raise SchemaValidationError(format_validation_issues(e)) from e


# ============================================================================
# Forward: text / object → graph
# ============================================================================


def object_to_graph(
    raw: Any,
    event_source_type: Optional[str] = None,
    event_source_params: Optional[Dict[str, Any]] = None,
    config: Optional[ConversionConfig] = None,
) -> GraphConversionResult:
    """Adapt, validate and convert an already-parsed workflow object."""
    config = config or ConversionConfig.default()
    adapted = adapt_to_ir(
        raw, event_source_type, event_source_params, config.flattening_policy,
    )
    ir = validate_workflow_ir(adapted.ir)
    return ir_to_graph(ir, config, was_legacy=adapted.was_legacy)


def yaml_to_graph(
    text: str,
    event_source_type: Optional[str] = None,
    event_source_params: Optional[Dict[str, Any]] = None,
    config: Optional[ConversionConfig] = None,
) -> GraphConversionResult:
    """Parse workflow text (legacy or canonical) into a positioned graph."""
    return object_to_graph(load_workflow_text(text), event_source_type, event_source_params, config)


# ============================================================================
# Reverse: graph → IR / text
# ============================================================================


def graph_to_ir(
    nodes: Sequence[NodeLike],
    edges: Sequence[EdgeLike],
    trigger: Union[TriggerIR, Dict[str, Any]],
    metadata: Optional[Union[WorkflowMetadata, Dict[str, Any]]] = None,
) -> WorkflowIR:
    if isinstance(metadata, dict):
        metadata = WorkflowMetadata.model_validate(metadata)
    return _graph_to_ir(_as_nodes(nodes), _as_edges(edges), trigger, metadata)


def graph_to_yaml(
    nodes: Sequence[NodeLike],
    edges: Sequence[EdgeLike],
    trigger: Union[TriggerIR, Dict[str, Any]],
    metadata: Optional[Union[WorkflowMetadata, Dict[str, Any]]] = None,
) -> str:
    """Canvas graph → execution-ordered IR → YAML text."""
    return dump_workflow_yaml(graph_to_ir(nodes, edges, trigger, metadata))


# ============================================================================
# Lightweight checks
# ============================================================================


def validate_workflow_yaml(
    text: str,
    event_source_type: Optional[str] = None,
    event_source_params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Parse and validate without building a graph.

    Returns ``{"valid": bool, "error": str | None, "was_legacy": bool | None}``.
    """
    try:
        result = parse_workflow_yaml_with_info(text, event_source_type, event_source_params)
    except WorkflowConversionError as e:
        logger.debug(f"Workflow text rejected: {e}")
        return {"valid": False, "error": describe_error(e), "was_legacy": None}
    return {"valid": True, "error": None, "was_legacy": result.was_legacy}
