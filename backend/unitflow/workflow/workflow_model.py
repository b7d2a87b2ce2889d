"""
Workflow Data Models — canonical IR and the visual graph.

The IR models (``WorkflowIR`` and friends) describe the versioned
workflow definition that is serialized and stored. Their validators
are the structural schema: they check shape, identifiers and
container rules, never step-specific business configuration.

The visual models (``VisualNode`` / ``VisualEdge``) describe the
positioned graph handed to the editor canvas. Field names are
snake_case in Python and camelCase on the wire (``parentId``,
``sourceHandle`` ...).
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

STEP_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

TriggerType = Literal["schedule", "webhook", "form", "table"]

CONDITION_TYPES = ("condition",)
NESTED_BLOCK_TYPES = ("loop", "match")


def _check_identifier(value: str, what: str) -> str:
    if not value:
        raise ValueError(f"{what} ID cannot be empty")
    if not STEP_ID_PATTERN.match(value):
        raise ValueError(
            f"{what} ID must contain only alphanumeric characters, "
            f"underscores, and hyphens"
        )
    return value


# ============================================================================
# IR models
# ============================================================================


class Position(BaseModel):
    """Canvas coordinates. Both values must be finite."""

    x: float = Field(allow_inf_nan=False)
    y: float = Field(allow_inf_nan=False)


class TriggerIR(BaseModel):
    type: TriggerType
    config: Dict[str, Any] = Field(default_factory=dict)


class Branches(BaseModel):
    then: Optional[List["StepIR"]] = None
    else_: Optional[List["StepIR"]] = Field(default=None, alias="else")

    model_config = ConfigDict(populate_by_name=True)


class StepIR(BaseModel):
    """A single workflow step.

    A step is a *condition* container (``branches``), a *loop/match*
    container (``nested_blocks``) or a leaf step, never more than one.
    """

    id: str
    name: str
    type: str
    config: Dict[str, Any] = Field(default_factory=dict)
    depends_on: Optional[List[str]] = None
    position: Optional[Position] = None
    branches: Optional[Branches] = None
    nested_blocks: Optional[List["StepIR"]] = None

    @field_validator("id")
    @classmethod
    def _validate_id(cls, v: str) -> str:
        return _check_identifier(v, "Step")

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Step name cannot be empty")
        return v

    @field_validator("type")
    @classmethod
    def _validate_type(cls, v: str) -> str:
        if not v:
            raise ValueError("Step type cannot be empty")
        return v

    @field_validator("depends_on")
    @classmethod
    def _validate_depends_on(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is not None and any(not dep for dep in v):
            raise ValueError("depends_on entries cannot be empty")
        return v

    @model_validator(mode="after")
    def _validate_container(self) -> "StepIR":
        if self.branches is not None and self.nested_blocks is not None:
            raise ValueError("Step cannot have both branches and nested_blocks")
        if self.branches is not None and self.type not in CONDITION_TYPES:
            raise ValueError("branches is only valid for condition type steps")
        if self.nested_blocks is not None and self.type not in NESTED_BLOCK_TYPES:
            raise ValueError("nested_blocks is only valid for loop or match type steps")
        return self

    # ── Helpers ──

    @property
    def then_steps(self) -> List["StepIR"]:
        if self.branches is None:
            return []
        return self.branches.then or []

    @property
    def else_steps(self) -> List["StepIR"]:
        if self.branches is None:
            return []
        return self.branches.else_ or []

    def is_container(self) -> bool:
        return self.branches is not None or self.nested_blocks is not None


class CallbackIR(BaseModel):
    """Asynchronous continuation referenced by name from a step's config."""

    id: str
    name: str
    type: str
    config: Dict[str, Any] = Field(default_factory=dict)
    steps: Optional[List[StepIR]] = None
    position: Optional[Position] = None

    @field_validator("id")
    @classmethod
    def _validate_id(cls, v: str) -> str:
        return _check_identifier(v, "Callback")

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Callback name cannot be empty")
        return v

    @field_validator("type")
    @classmethod
    def _validate_type(cls, v: str) -> str:
        if not v:
            raise ValueError("Callback type cannot be empty")
        return v


class WorkflowMetadata(BaseModel):
    description: Optional[str] = None
    tags: Optional[List[str]] = None


class WorkflowIR(BaseModel):
    """The canonical, versioned workflow definition.

    ``steps`` may be empty (a freshly created workflow).
    """

    version: str = "1.0"
    trigger: TriggerIR
    steps: List[StepIR] = Field(default_factory=list)
    callbacks: Optional[List[CallbackIR]] = None
    metadata: Optional[WorkflowMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form in declaration order, unset optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


Branches.model_rebuild()
StepIR.model_rebuild()


# ============================================================================
# Visual graph models
# ============================================================================


class EdgeKind(str, Enum):
    """Edge categories. Only ``DEPENDENCY`` edges drive ordering and layout."""
    DEPENDENCY = "dependency"
    BRANCH = "branch"
    LOOP = "loop"
    CALLBACK = "callback"


class _CanvasModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VisualNode(_CanvasModel):
    """A node placed on the editor canvas.

    ``kind`` is the step type for regular nodes, or one of the
    ``compound_*`` kinds for containers. A node with ``parent_id`` is a
    child node confined to its parent's bounds; its ``position`` is
    relative to the parent.
    """

    id: str
    kind: str
    position: Position = Field(default_factory=lambda: Position(x=0, y=0))
    data: Dict[str, Any] = Field(default_factory=dict)
    parent_id: Optional[str] = None
    contained_in_parent: bool = False
    width: Optional[float] = None
    height: Optional[float] = None

    @property
    def is_child(self) -> bool:
        return self.parent_id is not None


class VisualEdge(_CanvasModel):
    """A directed edge between two canvas nodes."""

    id: str
    source: str
    target: str
    kind: EdgeKind = EdgeKind.DEPENDENCY
    label: Optional[str] = None
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    animated: bool = False
