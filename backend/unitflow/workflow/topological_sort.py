"""
Dependency Graph Sorter — stable topological ordering of top-level steps.

Only top-level steps are sorted: the order of branch and loop children
is structural and never expressed through ``depends_on``.

Ordering uses networkx (lexicographical topological sort) with ties broken
by the original list position, so the same input always yields the
same output. The layered layout ranks canvas nodes through the same
``order_dependency_graph`` entry point.
"""

from __future__ import annotations

from logging import getLogger
from typing import Dict, Iterable, List, Optional, Sequence

import networkx as nx

from unitflow.workflow.errors import (
    CircularDependencyError,
    DanglingDependencyError,
    DuplicateStepIdError,
)
from unitflow.workflow.workflow_model import StepIR

logger = getLogger(__name__)

DependencyMap = Dict[str, List[str]]


def build_dependency_map(steps: Iterable[StepIR]) -> DependencyMap:
    """Map each step id to the ids it depends on (steps without deps omitted)."""
    dependency_map: DependencyMap = {}
    for step in steps:
        if step.depends_on:
            dependency_map[step.id] = list(step.depends_on)
    return dependency_map


def validate_unique_step_ids(steps: Iterable[StepIR]) -> None:
    """Raise ``DuplicateStepIdError`` if any id appears more than once."""
    seen = set()
    duplicates: List[str] = []
    for step in steps:
        if step.id in seen:
            if step.id not in duplicates:
                duplicates.append(step.id)
        else:
            seen.add(step.id)
    if duplicates:
        raise DuplicateStepIdError(duplicates)


def order_dependency_graph(graph: nx.DiGraph, index_of: Dict[str, int]) -> List[str]:
    """Topological order of *graph* (edges run dependency → dependent).

    Ties are broken by *index_of*, so the same input always yields the
    same output.

    Raises:
        CircularDependencyError: With the cycle in depends-on order,
            first id repeated at the end.
    """
    ordered: List[str] = []
    try:
        for node_id in nx.lexicographical_topological_sort(graph, key=index_of.__getitem__):
            ordered.append(node_id)
    except nx.NetworkXUnfeasible as e:
        done = set(ordered)
        stuck = graph.subgraph(n for n in graph if n not in done)
        # find_cycle walks dependency → dependent; reverse it to read as depends-on
        path = [source for source, _ in nx.find_cycle(stuck)]
        path.reverse()
        raise CircularDependencyError(path + path[:1]) from e
    return ordered


def topological_sort(
    steps: Sequence[StepIR],
    dependency_map: Optional[DependencyMap] = None,
) -> List[StepIR]:
    """Return *steps* ordered so every dependency precedes its dependents.

    Raises:
        DanglingDependencyError: A dependency id is not among *steps*.
        CircularDependencyError: The dependencies form a cycle; the
            exception carries the cyclic id sequence.
    """
    if dependency_map is None:
        dependency_map = build_dependency_map(steps)

    index_of: Dict[str, int] = {}
    by_id: Dict[str, StepIR] = {}
    for index, step in enumerate(steps):
        index_of.setdefault(step.id, index)
        by_id.setdefault(step.id, step)

    # ── Dangling references are reported before any cycle analysis ──
    for step in steps:
        for dep_id in dependency_map.get(step.id, []):
            if dep_id not in index_of:
                raise DanglingDependencyError(step.id, dep_id)

    graph = nx.DiGraph()
    graph.add_nodes_from(index_of)
    for step_id, deps in dependency_map.items():
        if step_id in index_of:
            graph.add_edges_from((dep_id, step_id) for dep_id in deps)

    ordered = [by_id[step_id] for step_id in order_dependency_graph(graph, index_of)]
    logger.debug(f"Topological sort ordered {len(ordered)} step(s)")
    return ordered
