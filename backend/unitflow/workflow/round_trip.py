"""
Round-Trip Validator — check that a workflow survives the conversion cycle.

Full cycle::

    visual → IR → YAML → IR → visual → IR

The first and last IR are diffed structurally, recursing into
branches, nested blocks and callbacks. Differences are data, not
exceptions: ``error`` severity fails the check, ``warning`` is
informational (configs may be legitimately transformed, positions are
rounded). Conversion failures along the way still raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from logging import getLogger
from typing import Any, Dict, List, Optional, Sequence, Union

from unitflow.config.conversion_config import ConversionConfig, RoundTripOptions
from unitflow.workflow.graph_to_ir import graph_to_ir
from unitflow.workflow.ir_to_graph import ir_to_graph
from unitflow.workflow.workflow_model import (
    CallbackIR,
    StepIR,
    TriggerIR,
    VisualEdge,
    VisualNode,
    WorkflowIR,
)
from unitflow.workflow.yaml_codec import dump_workflow_yaml, parse_workflow_yaml

logger = getLogger(__name__)


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class DifferenceKind(str, Enum):
    STEP_MISSING = "step_missing"
    STEP_TYPE_MISMATCH = "step_type_mismatch"
    DEPENDENCY_MISMATCH = "dependency_mismatch"
    BRANCH_MISMATCH = "branch_mismatch"
    NESTED_BLOCK_MISMATCH = "nested_block_mismatch"
    POSITION_DRIFT = "position_drift"
    CONFIG_MISMATCH = "config_mismatch"
    CALLBACK_MISMATCH = "callback_mismatch"


@dataclass
class RoundTripDifference:
    kind: DifferenceKind
    path: str
    expected: Any
    actual: Any
    severity: Severity

    @property
    def message(self) -> str:
        kind = self.kind
        if kind == DifferenceKind.STEP_MISSING:
            return f'Step "{self.expected}" is missing after round-trip'
        if kind == DifferenceKind.STEP_TYPE_MISMATCH:
            return f'{self.path}: Type changed from "{self.expected}" to "{self.actual}"'
        if kind == DifferenceKind.DEPENDENCY_MISMATCH:
            return (
                f"{self.path}: Dependencies changed from "
                f"[{', '.join(self.expected)}] to [{', '.join(self.actual)}]"
            )
        if kind == DifferenceKind.BRANCH_MISMATCH:
            return f"{self.path}: Branch count changed from {self.expected} to {self.actual}"
        if kind == DifferenceKind.NESTED_BLOCK_MISMATCH:
            return f"{self.path}: Nested block count changed from {self.expected} to {self.actual}"
        if kind == DifferenceKind.POSITION_DRIFT:
            return f"{self.path}: Position drifted from {self.expected} to {self.actual}"
        if kind == DifferenceKind.CONFIG_MISMATCH:
            return f"{self.path}: Config values differ"
        return f"{self.path}: Callback mismatch - expected {self.expected}, got {self.actual}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "path": self.path,
            "expected": self.expected,
            "actual": self.actual,
            "severity": self.severity.value,
        }


@dataclass
class RoundTripResult:
    original_ir: WorkflowIR
    round_tripped_ir: WorkflowIR
    differences: List[RoundTripDifference] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return [d.message for d in self.differences if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[str]:
        return [d.message for d in self.differences if d.severity == Severity.WARNING]

    @property
    def success(self) -> bool:
        return not any(d.severity == Severity.ERROR for d in self.differences)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "errors": self.errors,
            "warnings": self.warnings,
            "differences": [d.to_dict() for d in self.differences],
        }


# ============================================================================
# Structural diff
# ============================================================================


class _StepDiffer:
    def __init__(self, options: RoundTripOptions) -> None:
        self._options = options
        self.differences: List[RoundTripDifference] = []

    def _add(self, kind: DifferenceKind, path: str, expected: Any, actual: Any, severity: Severity) -> None:
        self.differences.append(RoundTripDifference(kind, path, expected, actual, severity))

    def compare_steps(self, original: Sequence[StepIR], round_tripped: Sequence[StepIR], path: str) -> None:
        by_id = {s.id: s for s in round_tripped}
        for step in original:
            step_path = f"{path}[{step.id}]"
            other = by_id.get(step.id)
            if other is None:
                self._add(DifferenceKind.STEP_MISSING, step_path, step.id, None, Severity.ERROR)
                continue
            self.compare_step(step, other, step_path)

    def compare_step(self, step: StepIR, other: StepIR, path: str) -> None:
        if step.type != other.type:
            self._add(DifferenceKind.STEP_TYPE_MISMATCH, f"{path}.type", step.type, other.type, Severity.ERROR)

        deps = set(step.depends_on or [])
        other_deps = set(other.depends_on or [])
        if deps != other_deps:
            self._add(
                DifferenceKind.DEPENDENCY_MISMATCH, f"{path}.depends_on",
                sorted(deps), sorted(other_deps), Severity.ERROR,
            )

        if self._options.validate_config and step.config != other.config:
            self._add(DifferenceKind.CONFIG_MISMATCH, f"{path}.config", step.config, other.config, Severity.WARNING)

        if step.position is not None and other.position is not None:
            tolerance = self._options.position_tolerance
            if (
                abs(step.position.x - other.position.x) > tolerance
                or abs(step.position.y - other.position.y) > tolerance
            ):
                self._add(
                    DifferenceKind.POSITION_DRIFT, f"{path}.position",
                    (step.position.x, step.position.y),
                    (other.position.x, other.position.y),
                    Severity.WARNING,
                )

        # ── Branches ──
        for side, mine, theirs in (
            ("then", step.then_steps, other.then_steps),
            ("else", step.else_steps, other.else_steps),
        ):
            side_path = f"{path}.branches.{side}"
            if not mine and not theirs:
                continue
            if len(mine) != len(theirs):
                self._add(DifferenceKind.BRANCH_MISMATCH, side_path, len(mine), len(theirs), Severity.ERROR)
            else:
                self.compare_steps(mine, theirs, side_path)

        # ── Nested blocks ──
        blocks = step.nested_blocks or []
        other_blocks = other.nested_blocks or []
        if len(blocks) != len(other_blocks):
            self._add(
                DifferenceKind.NESTED_BLOCK_MISMATCH, f"{path}.nested_blocks",
                len(blocks), len(other_blocks), Severity.ERROR,
            )
        elif blocks:
            self.compare_steps(blocks, other_blocks, f"{path}.nested_blocks")

    def compare_callbacks(self, original: Sequence[CallbackIR], round_tripped: Sequence[CallbackIR]) -> None:
        if len(original) != len(round_tripped):
            self._add(DifferenceKind.CALLBACK_MISMATCH, "callbacks", len(original), len(round_tripped), Severity.ERROR)
            return
        by_id = {c.id: c for c in round_tripped}
        for callback in original:
            path = f"callbacks[{callback.id}]"
            other = by_id.get(callback.id)
            if other is None:
                self._add(DifferenceKind.CALLBACK_MISMATCH, path, callback.id, None, Severity.ERROR)
                continue
            self.compare_steps(callback.steps or [], other.steps or [], f"{path}.steps")


def diff_workflows(
    original: WorkflowIR,
    round_tripped: WorkflowIR,
    options: Optional[RoundTripOptions] = None,
) -> List[RoundTripDifference]:
    """Structural differences between two IRs, in discovery order."""
    options = options or RoundTripOptions()
    differ = _StepDiffer(options)
    differ.compare_steps(original.steps, round_tripped.steps, "steps")
    if options.validate_callbacks:
        differ.compare_callbacks(original.callbacks or [], round_tripped.callbacks or [])
    return differ.differences


def _report(result: RoundTripResult) -> RoundTripResult:
    logger.debug(f"Round-trip produced {len(result.differences)} difference(s)")
    if not result.success:
        logger.warning(f"Round-trip validation failed: {'; '.join(result.errors)}")
    return result


# ============================================================================
# Entry points
# ============================================================================


def validate_round_trip(
    nodes: Sequence[VisualNode],
    edges: Sequence[VisualEdge],
    trigger: Union[TriggerIR, Dict[str, Any]],
    options: Optional[RoundTripOptions] = None,
    config: Optional[ConversionConfig] = None,
) -> RoundTripResult:
    """Run the full visual → text → visual cycle and diff the IRs."""
    original_ir = graph_to_ir(nodes, edges, trigger)
    text = dump_workflow_yaml(original_ir)
    parsed_ir = parse_workflow_yaml(text)
    graph = ir_to_graph(parsed_ir, config)
    round_tripped_ir = graph_to_ir(graph.nodes, graph.edges, original_ir.trigger)

    return _report(RoundTripResult(
        original_ir=original_ir,
        round_tripped_ir=round_tripped_ir,
        differences=diff_workflows(original_ir, round_tripped_ir, options),
    ))


def validate_ir_round_trip(
    ir: WorkflowIR,
    options: Optional[RoundTripOptions] = None,
) -> RoundTripResult:
    """IR → text → IR only; checks the serializer in isolation."""
    parsed_ir = parse_workflow_yaml(dump_workflow_yaml(ir))
    return _report(RoundTripResult(
        original_ir=ir,
        round_tripped_ir=parsed_ir,
        differences=diff_workflows(ir, parsed_ir, options),
    ))
