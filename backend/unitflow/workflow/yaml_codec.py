"""
YAML Codec — workflow text ↔ WorkflowIR.

Parsing: text → raw object (``yaml.safe_load``) → legacy adapter if
needed → schema validation. Dumping writes keys in model declaration
order so a dump/parse cycle keeps the structure and key order intact.

Syntax errors raise ``WorkflowParseError``; structurally invalid
content raises ``SchemaValidationError``. The two are never merged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import Any, Dict, Optional, Union

import yaml

from unitflow.workflow.errors import WorkflowParseError, WorkflowSerializeError
from unitflow.workflow.ir_schema import validate_workflow_ir
from unitflow.workflow.legacy_adapter import FlatteningPolicy, adapt_to_ir, is_legacy_format
from unitflow.workflow.workflow_model import WorkflowIR

logger = getLogger(__name__)

_LEGACY_TEXT_HINT = re.compile(r"^stages\s*:", re.MULTILINE)


@dataclass
class ParseResult:
    ir: WorkflowIR
    was_legacy: bool


def load_workflow_text(text: str) -> Any:
    """Parse YAML text into plain Python objects (no custom tags)."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise WorkflowParseError(
            f"YAML syntax error: {e}",
            cause=e,
            is_legacy_format=bool(_LEGACY_TEXT_HINT.search(text or "")),
        ) from e


def parse_workflow_yaml_with_info(
    text: str,
    event_source_type: Optional[str] = None,
    event_source_params: Optional[Dict[str, Any]] = None,
    flattening_policy: Optional[FlatteningPolicy] = None,
) -> ParseResult:
    """Parse workflow text in either format and report which one it was.

    Raises:
        WorkflowParseError: The text is not valid YAML.
        UnknownFormatError: Neither legacy nor canonical shape.
        SchemaValidationError: The (adapted) IR is structurally invalid.
    """
    raw = load_workflow_text(text)
    adapted = adapt_to_ir(raw, event_source_type, event_source_params, flattening_policy)
    ir = validate_workflow_ir(adapted.ir)
    logger.debug(
        f"Parsed workflow text: {len(ir.steps)} step(s), legacy={adapted.was_legacy}"
    )
    return ParseResult(ir=ir, was_legacy=adapted.was_legacy)


def parse_workflow_yaml(
    text: str,
    event_source_type: Optional[str] = None,
    event_source_params: Optional[Dict[str, Any]] = None,
    flattening_policy: Optional[FlatteningPolicy] = None,
) -> WorkflowIR:
    return parse_workflow_yaml_with_info(
        text, event_source_type, event_source_params, flattening_policy,
    ).ir


def dump_workflow_yaml(ir: Union[WorkflowIR, Dict[str, Any]]) -> str:
    """Serialize an IR to YAML text.

    Raises:
        SchemaValidationError: *ir* is a raw dict that fails validation.
        WorkflowSerializeError: The dumper rejected the data.
    """
    model = validate_workflow_ir(ir)
    try:
        return yaml.safe_dump(
            model.to_dict(),
            sort_keys=False,
            indent=2,
            width=120,
            allow_unicode=True,
            default_flow_style=False,
        )
    except yaml.YAMLError as e:
        raise WorkflowSerializeError(f"Failed to serialize workflow to YAML: {e}", cause=e) from e


def is_legacy_yaml(text: str) -> bool:
    """True when *text* parses to a legacy (``stages``) document."""
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError:
        return False
    return is_legacy_format(raw)
