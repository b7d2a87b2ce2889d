"""
Workflow Conversion Engine — legacy/canonical text ↔ IR ↔ visual graph.

Architecture:
    errors            — typed failure taxonomy
    workflow_model    — IR models and canvas node/edge models
    node_kinds        — step kind vocabulary + legacy config remapping
    legacy_adapter    — stages/blocks → canonical IR
    ir_schema         — structural validation of raw IR
    topological_sort  — stable dependency ordering, cycle/dangling detection
    branch_layout     — child placement inside condition/loop containers
    layered_layout    — rank-based placement of top-level nodes
    ir_to_graph       — IR → positioned canvas graph
    graph_to_ir       — canvas graph → execution-ordered IR
    yaml_codec        — YAML text ↔ IR
    round_trip        — conversion-cycle fidelity check
    converter         — public façade
"""

from unitflow.workflow.errors import (
    WorkflowConversionError,
    UnknownFormatError,
    SchemaValidationError,
    WorkflowParseError,
    WorkflowSerializeError,
    GraphError,
    DuplicateStepIdError,
    DuplicateNodeIdError,
    DanglingDependencyError,
    CircularDependencyError,
    InvalidGraphNodeError,
)
from unitflow.workflow.workflow_model import (
    Position,
    TriggerIR,
    Branches,
    StepIR,
    CallbackIR,
    WorkflowMetadata,
    WorkflowIR,
    EdgeKind,
    VisualNode,
    VisualEdge,
)
from unitflow.workflow.node_kinds import StepKind, CompoundKind
from unitflow.workflow.legacy_adapter import (
    AdaptationResult,
    FlatteningPolicy,
    SiblingFlattening,
    ChainedFlattening,
    adapt_to_ir,
    convert_legacy_to_ir,
    is_legacy_format,
    is_canonical_format,
)
from unitflow.workflow.ir_schema import validate_workflow_ir
from unitflow.workflow.topological_sort import (
    build_dependency_map,
    order_dependency_graph,
    topological_sort,
    validate_unique_step_ids,
)
from unitflow.workflow.branch_layout import (
    layout_branch_children,
    layout_loop_children,
    apply_compound_layout,
)
from unitflow.workflow.layered_layout import (
    should_apply_layout,
    apply_layered_layout,
    auto_layout,
    get_layout_info,
    align_nodes_horizontal,
    align_nodes_vertical,
    distribute_nodes_horizontal,
    distribute_nodes_vertical,
)
from unitflow.workflow.ir_to_graph import GraphConversionResult, ir_to_graph
from unitflow.workflow.yaml_codec import (
    ParseResult,
    parse_workflow_yaml,
    parse_workflow_yaml_with_info,
    dump_workflow_yaml,
)
from unitflow.workflow.round_trip import (
    RoundTripDifference,
    RoundTripResult,
    validate_round_trip,
    validate_ir_round_trip,
)
from unitflow.workflow.converter import (
    object_to_graph,
    yaml_to_graph,
    graph_to_ir,
    graph_to_yaml,
    validate_workflow_yaml,
    is_legacy_yaml,
)

__all__ = [
    "WorkflowConversionError",
    "UnknownFormatError",
    "SchemaValidationError",
    "WorkflowParseError",
    "WorkflowSerializeError",
    "GraphError",
    "DuplicateStepIdError",
    "DuplicateNodeIdError",
    "DanglingDependencyError",
    "CircularDependencyError",
    "InvalidGraphNodeError",
    "Position",
    "TriggerIR",
    "Branches",
    "StepIR",
    "CallbackIR",
    "WorkflowMetadata",
    "WorkflowIR",
    "EdgeKind",
    "VisualNode",
    "VisualEdge",
    "StepKind",
    "CompoundKind",
    "AdaptationResult",
    "FlatteningPolicy",
    "SiblingFlattening",
    "ChainedFlattening",
    "adapt_to_ir",
    "convert_legacy_to_ir",
    "is_legacy_format",
    "is_canonical_format",
    "validate_workflow_ir",
    "build_dependency_map",
    "order_dependency_graph",
    "topological_sort",
    "validate_unique_step_ids",
    "layout_branch_children",
    "layout_loop_children",
    "apply_compound_layout",
    "should_apply_layout",
    "apply_layered_layout",
    "auto_layout",
    "get_layout_info",
    "align_nodes_horizontal",
    "align_nodes_vertical",
    "distribute_nodes_horizontal",
    "distribute_nodes_vertical",
    "GraphConversionResult",
    "ir_to_graph",
    "ParseResult",
    "parse_workflow_yaml",
    "parse_workflow_yaml_with_info",
    "dump_workflow_yaml",
    "RoundTripDifference",
    "RoundTripResult",
    "validate_round_trip",
    "validate_ir_round_trip",
    "object_to_graph",
    "yaml_to_graph",
    "graph_to_ir",
    "graph_to_yaml",
    "validate_workflow_yaml",
    "is_legacy_yaml",
]
