"""
Node Kind Vocabulary — step kinds, compound kinds, and legacy config remapping.

``StepKind`` enumerates every step kind the legacy block editor could
emit. Each kind owns exactly one config remapper in ``CONFIG_REMAPPERS``;
``remap_legacy_config`` is total: a type outside the vocabulary keeps
its input unchanged.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Optional

ConfigRemapper = Callable[[Dict[str, Any]], Dict[str, Any]]


class StepKind(str, Enum):
    """Step kinds known to the legacy adapter."""
    # Actions
    TABLE_OPERATION = "table_operation"
    TABLE_COMMENT_CREATE = "table_comment_create"
    TABLE_COMMENT_GET = "table_comment_get"
    SMTP_EMAIL = "smtp_email"
    GOOGLE_SHEET = "google_sheet"
    API_CALL = "api_call"
    USER_OPERATION = "user_operation"
    DELAY = "delay"
    LOG = "log"
    # Logic
    CONDITION = "condition"
    MATCH = "match"
    LOOP = "loop"
    MATH = "math"
    DEFINITION = "definition"

    @classmethod
    def lookup(cls, value: str) -> Optional["StepKind"]:
        try:
            return cls(value)
        except ValueError:
            return None


class CompoundKind(str, Enum):
    """Visual kinds used for container nodes on the canvas."""
    CONDITION = "compound_condition"
    LOOP = "compound_loop"
    MATCH = "compound_match"

    @property
    def step_type(self) -> str:
        return self.value[len("compound_"):]

    @classmethod
    def for_step_type(cls, step_type: str) -> "CompoundKind":
        if step_type == StepKind.CONDITION.value:
            return cls.CONDITION
        if step_type == StepKind.MATCH.value:
            return cls.MATCH
        return cls.LOOP

    @classmethod
    def lookup(cls, kind: str) -> Optional["CompoundKind"]:
        try:
            return cls(kind)
        except ValueError:
            return None


# Legacy block type → step kind. Anything missing passes through as-is.
LEGACY_TYPE_ALIASES: Dict[str, StepKind] = {
    "table": StepKind.TABLE_OPERATION,
}


def map_legacy_type(legacy_type: str) -> str:
    alias = LEGACY_TYPE_ALIASES.get(legacy_type)
    if alias is not None:
        return alias.value
    return legacy_type


# ============================================================================
# Config remapping
# ============================================================================


def _rename(config: Dict[str, Any], old: str, new: str) -> None:
    if old in config:
        config[new] = config.pop(old)


def _passthrough(config: Dict[str, Any]) -> Dict[str, Any]:
    return config


def _remap_api_call(config: Dict[str, Any]) -> Dict[str, Any]:
    _rename(config, "request_type", "requestType")
    _rename(config, "response_format", "responseFormat")
    return config


def _remap_loop(config: Dict[str, Any]) -> Dict[str, Any]:
    _rename(config, "array", "items")
    _rename(config, "iterator", "itemVariable")
    return config


CONFIG_REMAPPERS: Dict[StepKind, ConfigRemapper] = {
    StepKind.TABLE_OPERATION: _passthrough,
    StepKind.TABLE_COMMENT_CREATE: _passthrough,
    StepKind.TABLE_COMMENT_GET: _passthrough,
    StepKind.SMTP_EMAIL: _passthrough,
    StepKind.GOOGLE_SHEET: _passthrough,
    StepKind.API_CALL: _remap_api_call,
    StepKind.USER_OPERATION: _passthrough,
    StepKind.DELAY: _passthrough,
    StepKind.LOG: _passthrough,
    StepKind.CONDITION: _passthrough,
    StepKind.MATCH: _passthrough,
    StepKind.LOOP: _remap_loop,
    StepKind.MATH: _passthrough,
    StepKind.DEFINITION: _passthrough,
}

_missing = set(StepKind) - set(CONFIG_REMAPPERS)
if _missing:
    raise RuntimeError(f"StepKind without config remapper: {sorted(k.value for k in _missing)}")


def remap_legacy_config(step_type: str, legacy_input: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a new config dict for *step_type* built from a legacy ``input``."""
    config = dict(legacy_input or {})
    kind = StepKind.lookup(step_type)
    if kind is None:
        return config
    return CONFIG_REMAPPERS[kind](config)
