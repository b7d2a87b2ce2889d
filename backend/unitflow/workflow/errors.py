"""
Workflow Conversion Errors.

Every fatal condition raised by the conversion engine derives from
``WorkflowConversionError`` so callers can catch the whole family,
while the concrete classes let them branch on the failure kind
(e.g. highlight a cycle on the canvas vs. show a generic message).
"""

from __future__ import annotations

from typing import Any, List, Optional


class WorkflowConversionError(Exception):
    """Base class for all conversion engine failures."""


# ============================================================================
# Input format / schema / text
# ============================================================================


class UnknownFormatError(WorkflowConversionError):
    """Raised when a raw object is neither legacy nor canonical."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or "Unknown workflow format: expected either stages (legacy) "
            "or trigger/steps (canonical)"
        )


class SchemaValidationError(WorkflowConversionError):
    """Structurally invalid IR.

    ``issues`` holds one path-qualified message per violation,
    e.g. ``"steps.0.id: Step ID cannot be empty"``.
    """

    def __init__(self, issues: List[str]) -> None:
        self.issues = list(issues)
        super().__init__("Workflow validation error: " + "; ".join(self.issues))


class WorkflowParseError(WorkflowConversionError):
    """Malformed workflow text. ``cause`` is the underlying parser error."""

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        is_legacy_format: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.is_legacy_format = is_legacy_format


class WorkflowSerializeError(WorkflowConversionError):
    """IR could not be dumped to text."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


# ============================================================================
# Graph errors
# ============================================================================


class GraphError(WorkflowConversionError):
    """Base class for dependency-graph and visual-graph failures."""


class DuplicateStepIdError(GraphError):
    def __init__(self, duplicates: List[str], message: Optional[str] = None) -> None:
        self.duplicates = list(duplicates)
        super().__init__(
            message
            or f"Duplicate step IDs found: {', '.join(self.duplicates)}. "
            f"Each step must have a unique ID."
        )


class DuplicateNodeIdError(DuplicateStepIdError):
    """Two canvas nodes share an id.

    Generated ids (``{parent}_then_{child}``, ``callback_{id}``, ...) can
    collide with a step id chosen by the author.
    """

    def __init__(self, duplicates: List[str]) -> None:
        super().__init__(
            duplicates,
            f"Duplicate canvas node IDs: {', '.join(duplicates)}. "
            f"A step ID collides with a generated child or callback node ID.",
        )


class DanglingDependencyError(GraphError):
    """A ``depends_on`` entry references a step that does not exist."""

    def __init__(self, step_id: str, missing_id: str) -> None:
        self.step_id = step_id
        self.missing_id = missing_id
        super().__init__(
            f"Step '{step_id}' depends on non-existent step '{missing_id}'. "
            f"Please ensure all dependencies reference valid step IDs."
        )


class CircularDependencyError(GraphError):
    """Steps depend on each other in a cycle.

    ``cycle`` lists the step ids along the cycle, first id repeated at
    the end: ``["a", "b", "a"]`` means *a* depends on *b* depends on *a*.
    """

    def __init__(self, cycle: List[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(
            f"Circular dependency detected: {' → '.join(self.cycle)}. "
            f"Steps in a workflow cannot depend on each other in a cycle."
        )


class InvalidGraphNodeError(GraphError):
    def __init__(self, node_id: str, reason: str) -> None:
        self.node_id = node_id
        self.reason = reason
        super().__init__(f"Node '{node_id}' is invalid: {reason}")


def describe_error(error: Any) -> str:
    """Return a single-line description for UI surfaces."""
    if isinstance(error, SchemaValidationError):
        return "; ".join(error.issues)
    return str(error)
