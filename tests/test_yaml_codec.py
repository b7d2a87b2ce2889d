"""
Unit tests for YAML text ↔ IR.
"""

import textwrap

import pytest
import yaml

from unitflow.workflow.errors import SchemaValidationError, UnknownFormatError, WorkflowParseError
from unitflow.workflow.ir_schema import validate_workflow_ir
from unitflow.workflow.legacy_adapter import ChainedFlattening
from unitflow.workflow.yaml_codec import (
    dump_workflow_yaml,
    is_legacy_yaml,
    parse_workflow_yaml,
    parse_workflow_yaml_with_info,
)
from tests.fixtures.workflows import CANONICAL_TEXT, LEGACY_TEXT, nested_workflow


class TestParse:
    def test_canonical_text(self):
        result = parse_workflow_yaml_with_info(CANONICAL_TEXT)
        assert result.was_legacy is False
        assert result.ir.trigger.type == "schedule"
        assert [s.id for s in result.ir.steps] == ["fetch", "report"]
        assert result.ir.steps[1].depends_on == ["fetch"]

    def test_legacy_text(self):
        result = parse_workflow_yaml_with_info(LEGACY_TEXT, "WEBHOOK")
        assert result.was_legacy is True
        (condition,) = result.ir.steps
        assert len(condition.then_steps) == 1
        assert len(condition.else_steps) == 1

    def test_legacy_text_with_flattening_policy(self):
        text = textwrap.dedent("""\
            stages:
              - blocks:
                  - type: log
                    blocks:
                      - type: log
                      - type: log
        """)
        ir = parse_workflow_yaml(text, flattening_policy=ChainedFlattening())
        assert [s.depends_on for s in ir.steps] == [None, ["log_1"], ["log_2"]]

    def test_syntax_error_is_parse_error(self):
        with pytest.raises(WorkflowParseError) as exc_info:
            parse_workflow_yaml("steps: [unclosed\ntrigger: {")
        error = exc_info.value
        assert not isinstance(error, SchemaValidationError)
        assert isinstance(error.cause, yaml.YAMLError)
        assert error.__cause__ is error.cause
        assert error.is_legacy_format is False

    def test_syntax_error_in_legacy_text_is_flagged(self):
        with pytest.raises(WorkflowParseError) as exc_info:
            parse_workflow_yaml("stages:\n  - blocks: [oops\n")
        assert exc_info.value.is_legacy_format is True

    def test_schema_error_is_not_parse_error(self):
        text = "trigger: {type: carrier_pigeon}\nsteps: []\n"
        with pytest.raises(SchemaValidationError) as exc_info:
            parse_workflow_yaml(text)
        assert not isinstance(exc_info.value, WorkflowParseError)

    def test_unknown_shape(self):
        with pytest.raises(UnknownFormatError):
            parse_workflow_yaml("just: a mapping\n")

    def test_empty_text(self):
        with pytest.raises(UnknownFormatError):
            parse_workflow_yaml("")


class TestDump:
    def test_key_order_follows_model(self):
        text = dump_workflow_yaml(validate_workflow_ir(nested_workflow()))
        top_keys = [line.split(":")[0] for line in text.splitlines() if line and not line.startswith((" ", "-"))]
        assert top_keys == ["version", "trigger", "steps"]
        assert "else:" in text
        assert "else_" not in text

    def test_nested_structures_survive(self):
        ir = validate_workflow_ir(nested_workflow())
        assert parse_workflow_yaml(dump_workflow_yaml(ir)).to_dict() == ir.to_dict()

    def test_callbacks_survive(self):
        raw = nested_workflow()
        raw["callbacks"] = [{
            "id": "cb",
            "name": "later",
            "type": "log",
            "config": {},
            "steps": [{"id": "s", "name": "S", "type": "log", "config": {"n": 1}}],
        }]
        ir = validate_workflow_ir(raw)
        assert parse_workflow_yaml(dump_workflow_yaml(ir)).to_dict() == ir.to_dict()

    def test_raw_dict_is_validated(self):
        with pytest.raises(SchemaValidationError):
            dump_workflow_yaml({"trigger": {"type": "webhook"}, "steps": [{"id": "", "name": "x", "type": "log"}]})

    def test_unicode_is_kept(self):
        raw = nested_workflow()
        raw["steps"][0]["name"] = "데이터 가져오기"
        text = dump_workflow_yaml(raw)
        assert "데이터 가져오기" in text


class TestLegacyDetection:
    def test_detects_legacy(self):
        assert is_legacy_yaml(LEGACY_TEXT)

    def test_canonical_is_not_legacy(self):
        assert not is_legacy_yaml(CANONICAL_TEXT)

    def test_invalid_text_is_not_legacy(self):
        assert not is_legacy_yaml("stages: [")
