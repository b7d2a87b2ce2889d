"""
IR Schema — structural validation of raw workflow objects.

Runs once, right after format adaptation and before any graph
conversion, so malformed input fails early with a path-qualified
message per violation instead of deep inside a recursive transform.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, List

from pydantic import ValidationError

from unitflow.workflow.errors import SchemaValidationError
from unitflow.workflow.workflow_model import WorkflowIR

logger = getLogger(__name__)


def format_validation_issues(error: ValidationError) -> List[str]:
    """Render pydantic errors as ``"dotted.path: message"`` strings."""
    issues: List[str] = []
    for item in error.errors():
        path = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        # pydantic prefixes custom ValueError messages
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        issues.append(f"{path}: {message}" if path else message)
    return issues


def validate_workflow_ir(raw: Any) -> WorkflowIR:
    """Validate a raw canonical object and return the typed IR.

    Raises:
        SchemaValidationError: With one issue per violation.
    """
    if isinstance(raw, WorkflowIR):
        return raw
    try:
        return WorkflowIR.model_validate(raw)
    except ValidationError as e:
        issues = format_validation_issues(e)
        logger.debug(f"IR schema validation failed with {len(issues)} issue(s)")
        raise SchemaValidationError(issues) from e
