"""
Unit tests for the dependency graph sorter.
"""

import networkx as nx
import pytest

from unitflow.workflow.errors import (
    CircularDependencyError,
    DanglingDependencyError,
    DuplicateStepIdError,
)
from unitflow.workflow.topological_sort import (
    build_dependency_map,
    order_dependency_graph,
    topological_sort,
    validate_unique_step_ids,
)
from unitflow.workflow.workflow_model import StepIR


def make(step_id, *deps):
    return StepIR(id=step_id, name=step_id, type="log", depends_on=list(deps) or None)


def ids(steps):
    return [s.id for s in steps]


class TestTopologicalSort:
    def test_dependencies_precede_dependents(self):
        steps = [make("c", "b"), make("b", "a"), make("a")]
        ordered = ids(topological_sort(steps))
        assert ordered == ["a", "b", "c"]

    def test_ties_keep_original_order(self):
        steps = [make("z"), make("m"), make("a")]
        assert ids(topological_sort(steps)) == ["z", "m", "a"]

    def test_diamond_is_stable(self):
        steps = [make("d", "b", "c"), make("c", "a"), make("b", "a"), make("a")]
        assert ids(topological_sort(steps)) == ["a", "c", "b", "d"]

    def test_every_dependency_appears_earlier(self):
        steps = [make("e", "d"), make("d", "a", "c"), make("c"), make("b", "e"), make("a")]
        ordered = ids(topological_sort(steps))
        for step in steps:
            for dep in step.depends_on or []:
                assert ordered.index(dep) < ordered.index(step.id)

    def test_duplicate_dependency_entries_are_harmless(self):
        steps = [make("a"), make("b", "a", "a")]
        assert ids(topological_sort(steps)) == ["a", "b"]

    def test_empty_input(self):
        assert topological_sort([]) == []


class TestCycleDetection:
    def test_two_step_cycle_reports_both_ids(self):
        steps = [make("A", "B"), make("B", "A")]
        with pytest.raises(CircularDependencyError) as exc_info:
            topological_sort(steps)
        cycle = exc_info.value.cycle
        assert {"A", "B"} <= set(cycle)
        assert cycle[0] == cycle[-1]

    def test_cycle_path_excludes_steps_outside_the_cycle(self):
        steps = [make("start"), make("x", "start", "z"), make("y", "x"), make("z", "y")]
        with pytest.raises(CircularDependencyError) as exc_info:
            topological_sort(steps)
        assert set(exc_info.value.cycle) == {"x", "y", "z"}

    def test_cycle_reads_in_dependency_direction(self):
        steps = [make("start"), make("x", "start", "z"), make("y", "x"), make("z", "y")]
        with pytest.raises(CircularDependencyError) as exc_info:
            topological_sort(steps)
        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        depends_on = {s.id: set(s.depends_on or []) for s in steps}
        for step_id, dep_id in zip(cycle, cycle[1:]):
            assert dep_id in depends_on[step_id]

    def test_self_dependency(self):
        with pytest.raises(CircularDependencyError) as exc_info:
            topological_sort([make("a", "a")])
        assert exc_info.value.cycle == ["a", "a"]

    def test_message_shows_path(self):
        with pytest.raises(CircularDependencyError, match="A → B → A|B → A → B"):
            topological_sort([make("A", "B"), make("B", "A")])


class TestOrderDependencyGraph:
    def test_shared_ordering_for_arbitrary_graphs(self):
        graph = nx.DiGraph()
        graph.add_nodes_from(["n3", "n1", "n2"])
        graph.add_edge("n2", "n3")
        index_of = {"n3": 0, "n1": 1, "n2": 2}
        assert order_dependency_graph(graph, index_of) == ["n1", "n2", "n3"]

    def test_cycle_error_names_only_cycle_members(self):
        graph = nx.DiGraph([("a", "b"), ("b", "c"), ("c", "b")])
        with pytest.raises(CircularDependencyError) as exc_info:
            order_dependency_graph(graph, {"a": 0, "b": 1, "c": 2})
        assert set(exc_info.value.cycle) == {"b", "c"}


class TestDanglingDependency:
    def test_missing_reference_is_not_a_cycle(self):
        with pytest.raises(DanglingDependencyError) as exc_info:
            topological_sort([make("a"), make("b", "ghost")])
        assert not isinstance(exc_info.value, CircularDependencyError)
        assert exc_info.value.step_id == "b"
        assert exc_info.value.missing_id == "ghost"

    def test_dangling_reported_before_cycle(self):
        steps = [make("a", "b"), make("b", "a"), make("c", "ghost")]
        with pytest.raises(DanglingDependencyError):
            topological_sort(steps)

    def test_explicit_dependency_map(self):
        steps = [make("a"), make("b")]
        with pytest.raises(DanglingDependencyError):
            topological_sort(steps, {"b": ["nope"]})


class TestHelpers:
    def test_build_dependency_map_skips_steps_without_deps(self):
        assert build_dependency_map([make("a"), make("b", "a")]) == {"b": ["a"]}

    def test_unique_ids_pass(self):
        validate_unique_step_ids([make("a"), make("b")])

    def test_duplicate_ids_are_listed_once(self):
        with pytest.raises(DuplicateStepIdError) as exc_info:
            validate_unique_step_ids([make("a"), make("a"), make("b"), make("a")])
        assert exc_info.value.duplicates == ["a"]
