"""Graph helpers: entry points, dependency index, scoped resume, topo sort."""

import pytest

from helpers import action, chain, edge, trigger
from relayflow.exceptions import WorkflowCycleError, WorkflowValidationError
from relayflow.workflows.graph import (
    build_adjacency,
    build_graph_index,
    collect_reachable,
    get_children,
    get_entry_points,
    sanitize_node_id,
    topological_sort,
)


def _diamond():
    nodes = [trigger("t1"), action("a"), action("b"), action("c")]
    edges = [edge("t1", "a"), edge("t1", "b"), edge("a", "c"), edge("b", "c")]
    return nodes, edges


def test_sanitize_node_id_replaces_non_alphanumerics():
    assert sanitize_node_id("node-1.x") == "node_1_x"
    assert sanitize_node_id("abc123") == "abc123"


def test_entry_points():
    nodes, edges = _diamond()
    assert get_entry_points(nodes, edges) == ["t1"]


def test_children_keep_edge_order():
    nodes, edges = _diamond()
    assert get_children("t1", edges) == ["a", "b"]


def test_build_adjacency_counts_duplicate_edges():
    adjacency = build_adjacency([edge("a", "b"), edge("a", "b")])
    assert adjacency == {"a": ["b", "b"]}


def test_collect_reachable_includes_start():
    _, edges = _diamond()
    assert collect_reachable(["a"], build_adjacency(edges)) == {"a", "c"}


class TestGraphIndex:

    def test_full_run_counts_every_edge(self):
        nodes, edges = _diamond()
        index = build_graph_index(nodes, edges)
        assert index.incoming_count == {"t1": 0, "a": 1, "b": 1, "c": 2}
        assert index.initial_ready() == ["t1"]
        assert not index.scoped

    def test_empty_start_list_means_full_run(self):
        nodes, edges = _diamond()
        assert not build_graph_index(nodes, edges, []).scoped

    def test_scoped_index_only_counts_edges_inside_subgraph(self):
        nodes, edges = _diamond()
        index = build_graph_index(nodes, edges, ["a"])
        # c keeps only the a -> c edge; b -> c is outside the subgraph
        assert index.incoming_count == {"a": 0, "c": 1}
        assert index.initial_ready() == ["a"]

    def test_start_node_forced_ready_even_with_inbound_edges(self):
        nodes = [trigger("t1"), action("a"), action("b")]
        edges = chain("t1", "a", "b") + [edge("b", "a")]
        index = build_graph_index(nodes, edges, ["a"])
        assert index.incoming_count["a"] == 0
        assert index.initial_ready() == ["a"]


class TestTopologicalSort:

    def test_linear_order(self):
        nodes = [action("c"), action("b"), trigger("t1")]
        edges = chain("t1", "b", "c")
        assert topological_sort(nodes, edges) == ["t1", "b", "c"]

    def test_cycle_raises_with_involved_nodes(self):
        nodes = [trigger("t1"), action("a"), action("b")]
        edges = chain("t1", "a", "b") + [edge("b", "a")]
        with pytest.raises(WorkflowCycleError) as exc_info:
            topological_sort(nodes, edges)
        assert set(exc_info.value.cycle_nodes) == {"a", "b"}
        assert exc_info.value.violations

    def test_cycle_error_is_a_validation_error(self):
        nodes = [action("a"), action("b")]
        with pytest.raises(WorkflowValidationError):
            topological_sort(nodes, [edge("a", "b"), edge("b", "a")])

    def test_empty_graph(self):
        assert topological_sort([], []) == []
