"""
Unit tests for IR → visual graph conversion.
"""

import pytest

from unitflow.workflow.errors import (
    CircularDependencyError,
    DanglingDependencyError,
    DuplicateNodeIdError,
    DuplicateStepIdError,
)
from unitflow.workflow.ir_schema import validate_workflow_ir
from unitflow.workflow.ir_to_graph import ir_to_graph
from unitflow.workflow.workflow_model import EdgeKind
from tests.fixtures.workflows import canonical_workflow, nested_workflow, step


def convert(raw, **kwargs):
    return ir_to_graph(validate_workflow_ir(raw), **kwargs)


def by_id(items):
    return {item.id: item for item in items}


class TestBasicConversion:
    def test_empty_workflow_has_no_nodes_or_edges(self):
        result = convert(canonical_workflow([]))
        assert result.nodes == []
        assert result.edges == []

    def test_dependency_edges(self):
        result = convert(canonical_workflow([step("a"), step("b", depends_on=["a"])]))
        assert [n.id for n in result.nodes] == ["a", "b"]
        (dep,) = result.edges
        assert dep.id == "a->b"
        assert dep.kind == EdgeKind.DEPENDENCY
        assert (dep.source, dep.target) == ("a", "b")

    def test_regular_node_data(self):
        result = convert(canonical_workflow([step("a", "delay", name="Wait", config={"seconds": 5})]))
        (a,) = result.nodes
        assert a.kind == "delay"
        assert a.data == {"label": "Wait", "config": {"seconds": 5}}
        assert a.parent_id is None

    def test_result_carries_trigger_and_ir(self):
        raw = canonical_workflow([step("a")], trigger_type="schedule")
        result = convert(raw, was_legacy=True)
        assert result.trigger.type == "schedule"
        assert result.ir.steps[0].id == "a"
        assert result.was_legacy is True
        assert result.callbacks is None


class TestConditionNodes:
    def test_then_only_condition(self):
        raw = canonical_workflow([
            step("check", "condition", config={"condition": "x > 1"},
                 branches={"then": [step("a"), step("b")]}),
        ])
        result = convert(raw)
        nodes = by_id(result.nodes)

        compound = nodes["check"]
        assert compound.kind == "compound_condition"
        assert compound.data["has_then_branch"] is True
        assert compound.data["has_else_branch"] is False
        assert compound.data["condition"] == "x > 1"
        assert compound.data["child_count"] == 2

        assert nodes["check_then_a"].parent_id == "check"
        assert nodes["check_then_a"].contained_in_parent is True
        assert nodes["check_then_b"].parent_id == "check"

        # one branch edge to the first child only, nothing on the else side
        assert [e.id for e in result.edges] == ["check-then-a"]
        assert not any(e.source_handle == "else" or e.label == "else" for e in result.edges)

    def test_branch_edge_shape(self):
        raw = canonical_workflow([
            step("c", "condition", branches={"then": [step("a")], "else": [step("b")]}),
        ])
        edges = by_id(convert(raw).edges)
        then_edge = edges["c-then-a"]
        else_edge = edges["c-else-b"]
        assert then_edge.kind == EdgeKind.BRANCH
        assert (then_edge.target, then_edge.source_handle, then_edge.label) == ("c_then_a", "then", "then")
        assert (else_edge.target, else_edge.source_handle) == ("c_else_b", "else")

    def test_children_ordered_by_position(self):
        raw = canonical_workflow([
            step("c", "condition", branches={"then": [step("a"), step("b")]}),
        ])
        nodes = by_id(convert(raw).nodes)
        assert nodes["c_then_a"].position.y < nodes["c_then_b"].position.y

    def test_condition_falls_back_to_expressions(self):
        raw = canonical_workflow([
            step("c", "condition", config={"expressions": ["a", "b"]}, branches={"then": [step("a")]}),
        ])
        nodes = by_id(convert(raw).nodes)
        assert nodes["c"].data["condition"] == ["a", "b"]


class TestLoopNodes:
    def test_loop_edges(self):
        raw = canonical_workflow([
            step("lp", "loop", config={"items": "{{rows}}"}, nested_blocks=[step("x"), step("y")]),
        ])
        result = convert(raw)
        nodes = by_id(result.nodes)
        edges = by_id(result.edges)

        assert nodes["lp"].kind == "compound_loop"
        assert nodes["lp"].data["item_var"] == "item"
        assert nodes["lp"].data["collection"] == "{{rows}}"
        assert nodes["lp_loop_x"].parent_id == "lp"

        start = edges["lp-loop-start-x"]
        assert (start.source, start.target, start.label) == ("lp", "lp_loop_x", "each item")
        seq = edges["lp-loop-seq-0"]
        assert (seq.source, seq.target) == ("lp_loop_x", "lp_loop_y")
        back = edges["lp-loop-repeat"]
        assert (back.source, back.target, back.target_handle) == ("lp_loop_y", "lp", "loop-back")
        assert back.animated is True
        assert all(e.kind == EdgeKind.LOOP for e in result.edges)

    def test_match_compound(self):
        raw = canonical_workflow([step("m", "match", nested_blocks=[step("x")])])
        nodes = by_id(convert(raw).nodes)
        assert nodes["m"].kind == "compound_match"
        assert "m_loop_x" in nodes

    def test_loop_back_edge_does_not_count_as_cycle(self):
        raw = canonical_workflow([
            step("lp", "loop", nested_blocks=[step("x")]),
            step("after", depends_on=["lp"]),
        ])
        result = convert(raw)
        assert by_id(result.nodes)["after"].position.y > by_id(result.nodes)["lp"].position.y

    def test_leaf_loop_is_a_regular_node(self):
        nodes = by_id(convert(canonical_workflow([step("lp", "loop")])).nodes)
        assert nodes["lp"].kind == "loop"


class TestNesting:
    def test_nested_compounds(self):
        result = convert(nested_workflow())
        nodes = by_id(result.nodes)

        assert nodes["check"].kind == "compound_condition"
        assert nodes["check_then_rows"].kind == "compound_loop"
        assert nodes["check_then_rows"].parent_id == "check"
        assert nodes["check_then_rows_loop_save"].parent_id == "check_then_rows"
        assert nodes["check_else_fail"].parent_id == "check"
        assert nodes["check_then_rows"].data["item_var"] == "row"

    def test_outer_container_fits_inner(self):
        nodes = by_id(convert(nested_workflow()).nodes)
        outer, inner = nodes["check"], nodes["check_then_rows"]
        assert outer.width >= inner.position.x + inner.width
        assert outer.height >= inner.position.y + inner.height

    def test_parents_precede_children(self):
        order = [n.id for n in convert(nested_workflow()).nodes]
        assert order.index("check") < order.index("check_then_rows") < order.index("check_then_rows_loop_save")


class TestLayoutDecision:
    def test_layout_applied_without_positions(self):
        nodes = by_id(convert(canonical_workflow([step("a"), step("b", depends_on=["a"])])).nodes)
        assert (nodes["a"].position.x, nodes["a"].position.y) == (50, 50)
        assert nodes["b"].position.y == 230

    def test_saved_positions_preserved(self):
        raw = canonical_workflow([
            step("a", position={"x": 300, "y": 400}),
            step("b", depends_on=["a"], position={"x": 300, "y": 600}),
        ])
        nodes = by_id(convert(raw).nodes)
        assert (nodes["a"].position.x, nodes["a"].position.y) == (300, 400)
        assert (nodes["b"].position.x, nodes["b"].position.y) == (300, 600)

    def test_conversion_is_idempotent(self):
        raw = canonical_workflow([step("a"), step("b", depends_on=["a"])])
        first = convert(raw)
        again = convert(raw)
        assert [n.position for n in first.nodes] == [n.position for n in again.nodes]


class TestGraphErrors:
    def test_cycle(self):
        raw = canonical_workflow([step("A", depends_on=["B"]), step("B", depends_on=["A"])])
        with pytest.raises(CircularDependencyError):
            convert(raw)

    def test_dangling(self):
        with pytest.raises(DanglingDependencyError):
            convert(canonical_workflow([step("a", depends_on=["ghost"])]))

    def test_duplicate_ids(self):
        with pytest.raises(DuplicateStepIdError):
            convert(canonical_workflow([step("a"), step("a")]))

    def test_step_id_collides_with_branch_child(self):
        raw = canonical_workflow([
            step("c", "condition", branches={"then": [step("t")]}),
            step("c_then_t"),
        ])
        with pytest.raises(DuplicateNodeIdError) as exc_info:
            convert(raw)
        assert exc_info.value.duplicates == ["c_then_t"]

    def test_step_id_collides_with_callback_node(self):
        raw = canonical_workflow(
            [step("callback_cb")],
            callbacks=[{"id": "cb", "name": "cb", "type": "log", "config": {}}],
        )
        with pytest.raises(DuplicateNodeIdError, match="callback_cb"):
            convert(raw)


class TestCallbacks:
    def raw(self):
        return canonical_workflow(
            [step("wait", "delay", config={"seconds": 60, "callback": "after_delay"})],
            callbacks=[{
                "id": "cb1",
                "name": "after_delay",
                "type": "log",
                "config": {},
                "steps": [step("s1"), step("s2", depends_on=["s1"])],
            }],
        )

    def test_callback_nodes(self):
        result = convert(self.raw())
        nodes = by_id(result.nodes)

        cb = nodes["callback_cb1"]
        assert cb.data["is_callback"] is True
        assert cb.data["callback_id"] == "cb1"
        assert cb.data["label"] == "after_delay"

        s1 = nodes["callback_cb1_s1"]
        assert s1.data["is_callback_step"] is True
        assert s1.data["parent_callback_id"] == "cb1"
        assert s1.parent_id is None

    def test_callback_edges(self):
        edges = by_id(convert(self.raw()).edges)
        link = edges["wait->callback_cb1"]
        assert link.kind == EdgeKind.CALLBACK
        assert link.animated is True
        assert edges["callback_cb1->callback_cb1_s1"].kind == EdgeKind.CALLBACK
        assert edges["callback_cb1_s1->callback_cb1_s2"].kind == EdgeKind.CALLBACK
        assert "callback_cb1->callback_cb1_s2" not in edges

    def test_callbacks_sit_below_main_flow(self):
        nodes = by_id(convert(self.raw()).nodes)
        assert nodes["callback_cb1"].position.x == 700
        assert nodes["callback_cb1"].position.y > nodes["wait"].position.y
        assert nodes["callback_cb1_s1"].position.y > nodes["callback_cb1"].position.y

    def test_to_dict_uses_camel_case(self):
        payload = convert(nested_workflow()).to_dict()
        child = next(n for n in payload["nodes"] if n["id"] == "check_then_rows")
        assert child["parentId"] == "check"
        assert child["containedInParent"] is True
        branch = next(e for e in payload["edges"] if e["id"] == "check-then-rows")
        assert branch["sourceHandle"] == "then"
        assert branch["kind"] == "branch"
        assert payload["wasLegacy"] is False
