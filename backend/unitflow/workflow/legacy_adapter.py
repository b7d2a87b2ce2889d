"""
Legacy Format Adapter — stage/block definitions → canonical IR.

Legacy (block editor) format::

    stages:
      - name: main
        blocks:
          - type: condition
            name: Check
            input: {...}
            then: [...]
            else: [...]
    callbacks:
      - type: log
        name: delay_callback
        blocks: [...]

Canonical format::

    version: '1.0'
    trigger: {type: webhook, config: {}}
    steps:
      - id: condition_1
        name: Check
        type: condition
        config: {...}
        branches: {then: [...], else: [...]}

The adapter works on raw (already parsed) objects and returns a raw
canonical dict; typed validation is the job of ``ir_schema``.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from logging import getLogger
from typing import Any, Dict, List, Optional

from unitflow.workflow.errors import UnknownFormatError
from unitflow.workflow.node_kinds import (
    StepKind,
    map_legacy_type,
    remap_legacy_config,
)

logger = getLogger(__name__)

IR_VERSION = "1.0"

EVENT_SOURCE_TRIGGER_TYPES: Dict[str, str] = {
    "ACTIVE_TABLE": "table",
    "WEBHOOK": "webhook",
    "OPTIN_FORM": "form",
    "SCHEDULE": "schedule",
}
DEFAULT_TRIGGER_TYPE = "webhook"

PLACEHOLDER_STEP: Dict[str, Any] = {
    "id": "placeholder_1",
    "name": "placeholder",
    "type": StepKind.LOG.value,
    "config": {"message": "Empty workflow - add steps", "level": "info"},
}

RawStep = Dict[str, Any]


# ============================================================================
# Format detection
# ============================================================================


def is_legacy_format(raw: Any) -> bool:
    """An object exposing a ``stages`` array."""
    return isinstance(raw, dict) and isinstance(raw.get("stages"), list)


def is_canonical_format(raw: Any) -> bool:
    """An object exposing both ``trigger`` and ``steps``."""
    return isinstance(raw, dict) and "trigger" in raw and "steps" in raw


# ============================================================================
# Id generation
# ============================================================================


class IdCounter:
    """Monotonic counter threaded through one conversion call."""

    def __init__(self) -> None:
        self.value = 0

    def next(self) -> int:
        self.value += 1
        return self.value


def sanitize_type(block_type: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", block_type).lower()


def generate_step_id(block_type: str, number: int, prefix: str = "") -> str:
    """``{prefix}{sanitizedType}_{number}``; *prefix* marks the structural scope."""
    return f"{prefix}{sanitize_type(block_type)}_{number}"


def _add_dependency(step: RawStep, dep_id: str) -> None:
    deps = step.setdefault("depends_on", [])
    if dep_id not in deps:
        deps.append(dep_id)


# ============================================================================
# Flattening policies
# ============================================================================


class FlatteningPolicy(ABC):
    """Decides how a non-container block's nested ``blocks`` are emitted.

    ``link`` is False inside branch/loop bodies and callbacks, where
    ordering is structural and ``depends_on`` must not be used.
    """

    @abstractmethod
    def flatten(self, parent: RawStep, children: List[RawStep], link: bool) -> List[RawStep]:
        ...


class SiblingFlattening(FlatteningPolicy):
    """Parent first, then its children as siblings; the first child depends on the parent."""

    def flatten(self, parent: RawStep, children: List[RawStep], link: bool) -> List[RawStep]:
        if link and children:
            _add_dependency(children[0], parent["id"])
        return [parent, *children]


class ChainedFlattening(FlatteningPolicy):
    """Parent first, then its children chained one after another."""

    def flatten(self, parent: RawStep, children: List[RawStep], link: bool) -> List[RawStep]:
        if link:
            previous = parent["id"]
            for child in children:
                _add_dependency(child, previous)
                previous = child["id"]
        return [parent, *children]


# ============================================================================
# Conversion
# ============================================================================


class _LegacyConverter:
    """One conversion run. Holds the id counter for that run only."""

    def __init__(self, flattening_policy: FlatteningPolicy) -> None:
        self._counter = IdCounter()
        self._policy = flattening_policy

    def convert_blocks(self, blocks: Any, prefix: str, top_level: bool) -> List[RawStep]:
        if not isinstance(blocks, list):
            raise UnknownFormatError(f"Legacy blocks must be a list, got {type(blocks).__name__}")
        steps: List[RawStep] = []
        for block in blocks:
            steps.extend(self.convert_block(block, prefix, top_level))
        return steps

    def convert_block(self, block: Any, prefix: str, top_level: bool) -> List[RawStep]:
        if not isinstance(block, dict):
            raise UnknownFormatError(f"Legacy block must be an object, got {type(block).__name__}")

        number = self._counter.next()
        block_type = str(block.get("type") or "")
        step_type = map_legacy_type(block_type)
        step_id = generate_step_id(block_type, number, prefix)

        step: RawStep = {
            "id": step_id,
            "name": block.get("name") or f"step_{number}",
            "type": step_type,
            "config": remap_legacy_config(step_type, block.get("input")),
        }
        nested = block.get("blocks")

        if step_type == StepKind.CONDITION.value:
            then_steps = self.convert_blocks(block.get("then") or [], f"{step_id}_then_", False)
            else_steps = self.convert_blocks(block.get("else") or [], f"{step_id}_else_", False)
            branches: Dict[str, List[RawStep]] = {}
            if then_steps:
                branches["then"] = then_steps
            if else_steps:
                branches["else"] = else_steps
            if branches:
                step["branches"] = branches
            if isinstance(nested, list) and nested:
                children = self.convert_blocks(nested, prefix, top_level)
                return self._policy.flatten(step, children, top_level)
            return [step]

        if step_type in (StepKind.LOOP.value, StepKind.MATCH.value) and isinstance(nested, list):
            body = self.convert_blocks(nested, f"{step_id}_{step_type}_", False)
            if body:
                step["nested_blocks"] = body
            return [step]

        if isinstance(nested, list) and nested:
            children = self.convert_blocks(nested, prefix, top_level)
            logger.debug(
                f"Flattening {len(children)} nested step(s) under '{step_id}' "
                f"with {type(self._policy).__name__}"
            )
            return self._policy.flatten(step, children, top_level)

        return [step]

    def convert_stages(self, stages: List[Any]) -> List[RawStep]:
        all_steps: List[RawStep] = []
        previous_last: Optional[str] = None

        for stage_index, stage in enumerate(stages):
            if stage is None:
                continue
            if not isinstance(stage, dict):
                raise UnknownFormatError(f"Legacy stage {stage_index} must be an object")

            stage_steps = self.convert_blocks(stage.get("blocks") or [], "", True)

            # ── Chain: first step of this stage waits for the previous stage ──
            if previous_last is not None and stage_steps:
                _add_dependency(stage_steps[0], previous_last)
                logger.debug(
                    f"Stage '{stage.get('name') or stage_index + 1}' chained after '{previous_last}'"
                )

            all_steps.extend(stage_steps)
            if stage_steps:
                previous_last = stage_steps[-1]["id"]

        return all_steps

    def convert_callbacks(self, callbacks: List[Any]) -> List[RawStep]:
        result: List[RawStep] = []
        for block in callbacks:
            if not isinstance(block, dict):
                raise UnknownFormatError("Legacy callback must be an object")
            number = self._counter.next()
            block_type = str(block.get("type") or "")
            step_type = map_legacy_type(block_type)
            callback_id = generate_step_id(block_type, number)

            callback: RawStep = {
                "id": callback_id,
                "name": block.get("name") or f"callback_{number}",
                "type": step_type,
                "config": remap_legacy_config(step_type, block.get("input")),
            }
            steps = self.convert_blocks(block.get("blocks") or [], f"{callback_id}_", False)
            if steps:
                callback["steps"] = steps
            result.append(callback)
        return result


def infer_trigger_type(event_source_type: Optional[str]) -> str:
    return EVENT_SOURCE_TRIGGER_TYPES.get(event_source_type or "", DEFAULT_TRIGGER_TYPE)


def convert_legacy_to_ir(
    legacy: Dict[str, Any],
    event_source_type: Optional[str] = None,
    event_source_params: Optional[Dict[str, Any]] = None,
    flattening_policy: Optional[FlatteningPolicy] = None,
) -> Dict[str, Any]:
    """Convert a legacy stage/block object into a raw canonical IR dict.

    Every call starts a fresh id counter, so ids are unique within the
    result and repeatable across calls.
    """
    if not is_legacy_format(legacy):
        raise UnknownFormatError("Expected a legacy workflow with a 'stages' array")

    converter = _LegacyConverter(flattening_policy or SiblingFlattening())
    steps = converter.convert_stages(legacy["stages"])

    if not steps:
        logger.warning("Legacy workflow has no steps; inserting placeholder step")
        steps = [
            {**PLACEHOLDER_STEP, "config": dict(PLACEHOLDER_STEP["config"])},
        ]

    ir: Dict[str, Any] = {
        "version": IR_VERSION,
        "trigger": {
            "type": infer_trigger_type(event_source_type),
            "config": dict(event_source_params or {}),
        },
        "steps": steps,
    }

    raw_callbacks = legacy.get("callbacks")
    if isinstance(raw_callbacks, list) and raw_callbacks:
        ir["callbacks"] = converter.convert_callbacks(raw_callbacks)

    logger.info(
        f"Legacy workflow converted: {len(legacy['stages'])} stage(s) → "
        f"{len(steps)} top-level step(s)"
    )
    return ir


@dataclass
class AdaptationResult:
    ir: Dict[str, Any]
    was_legacy: bool


def adapt_to_ir(
    raw: Any,
    event_source_type: Optional[str] = None,
    event_source_params: Optional[Dict[str, Any]] = None,
    flattening_policy: Optional[FlatteningPolicy] = None,
) -> AdaptationResult:
    """Detect the format of *raw* and convert it to canonical form if needed.

    Canonical input is passed through unchanged.

    Raises:
        UnknownFormatError: *raw* is neither legacy nor canonical.
    """
    if is_canonical_format(raw):
        return AdaptationResult(ir=raw, was_legacy=False)

    if is_legacy_format(raw):
        ir = convert_legacy_to_ir(
            raw, event_source_type, event_source_params, flattening_policy,
        )
        return AdaptationResult(ir=ir, was_legacy=True)

    raise UnknownFormatError()
