"""
Graph utilities for workflow traversal and dependency counting.

All functions operate on WorkflowNode / WorkflowEdge lists and are pure
(no side effects, no I/O) so they can be called safely from the validator,
the executor, and the CLI alike.
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional

from relayflow.exceptions import WorkflowCycleError
from relayflow.types import WorkflowEdge, WorkflowNode

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9]")


def sanitize_node_id(node_id: str) -> str:
    """Key under which a node's output is stored (non-alphanumerics → ``_``)."""
    return _UNSAFE_ID_CHARS.sub("_", node_id)


# ── Traversal helpers ─────────────────────────────────────────────────────────


def get_entry_points(nodes: list[WorkflowNode], edges: list[WorkflowEdge]) -> list[str]:
    """Return node IDs with no incoming edges (graph roots)."""
    target_ids = {e.target for e in edges}
    return [n.id for n in nodes if n.id not in target_ids]


def get_children(node_id: str, edges: list[WorkflowEdge]) -> list[str]:
    """Return target IDs of every outgoing edge of node_id, in edge order."""
    return [e.target for e in edges if e.source == node_id]


def build_adjacency(edges: list[WorkflowEdge]) -> dict[str, list[str]]:
    """source → [targets], one entry per edge (duplicate edges count twice)."""
    adjacency: dict[str, list[str]] = {}
    for edge in edges:
        adjacency.setdefault(edge.source, []).append(edge.target)
    return adjacency


def collect_reachable(start_ids: Iterable[str], edges_by_source: dict[str, list[str]]) -> set[str]:
    """Every ID forward-reachable from start_ids, start_ids included."""
    reachable: set[str] = set()
    stack = list(start_ids)
    while stack:
        current = stack.pop()
        if not current or current in reachable:
            continue
        reachable.add(current)
        for nxt in edges_by_source.get(current, []):
            if nxt not in reachable:
                stack.append(nxt)
    return reachable


# ── Dependency index used by the scheduler ───────────────────────────────────


@dataclass
class GraphIndex:
    """Adjacency + incoming-edge counts for one run.

    In scoped (resume) mode ``incoming_count`` only covers the subgraph
    forward-reachable from ``start_node_ids`` and only counts edges whose
    endpoints are both inside it; start nodes are forced to zero.
    """

    node_map: dict[str, WorkflowNode]
    edges_by_source: dict[str, list[str]]
    incoming_count: dict[str, int]
    start_node_ids: Optional[list[str]] = None
    reachable: set[str] = field(default_factory=set)

    @property
    def scoped(self) -> bool:
        return self.start_node_ids is not None

    def initial_ready(self) -> list[str]:
        """Node IDs with nothing to wait for, in graph order."""
        return [
            node_id for node_id, count in self.incoming_count.items()
            if count == 0 and (not self.scoped or node_id in self.reachable)
        ]

    def children(self, node_id: str) -> list[str]:
        return self.edges_by_source.get(node_id, [])


def build_graph_index(
    nodes: list[WorkflowNode],
    edges: list[WorkflowEdge],
    start_node_ids: Optional[list[str]] = None,
) -> GraphIndex:
    """Build the scheduler's view of the graph.

    Args:
        nodes:          All nodes of the workflow.
        edges:          All edges of the workflow.
        start_node_ids: Resume points.  Empty or None means a full run.
    """
    node_map = {n.id: n for n in nodes}
    edges_by_source = build_adjacency(edges)

    incoming: dict[str, int] = {n.id: 0 for n in nodes}
    for edge in edges:
        incoming[edge.target] = incoming.get(edge.target, 0) + 1

    starts = list(start_node_ids) if start_node_ids else None
    if starts is None:
        return GraphIndex(node_map, edges_by_source, incoming)

    reachable = collect_reachable(starts, edges_by_source)

    scoped_counts: dict[str, int] = {nid: 0 for nid in reachable}
    for edge in edges:
        if edge.source in reachable and edge.target in reachable:
            scoped_counts[edge.target] += 1

    # Keep graph order for known nodes, then anything reachable but undeclared
    ordered: dict[str, int] = {
        nid: scoped_counts[nid] for nid in incoming if nid in reachable
    }
    for nid, count in scoped_counts.items():
        ordered.setdefault(nid, count)

    for nid in starts:
        if nid in ordered:
            ordered[nid] = 0

    return GraphIndex(node_map, edges_by_source, ordered, starts, reachable)


# ── Topological sort (Kahn's algorithm) ──────────────────────────────────────


def topological_sort(nodes: list[WorkflowNode], edges: list[WorkflowEdge]) -> list[str]:
    """
    Return node IDs in topological order.

    Uses Kahn's BFS algorithm:
      1. Compute in-degree for every node.
      2. Seed queue with zero-in-degree nodes (entry points).
      3. BFS: pop node, emit it, decrement in-degrees of its children.
      4. If emitted count < total nodes → cycle exists.

    The executor itself never calls this; a cycle there leaves the involved
    nodes below their incoming threshold forever, so validate first.

    Raises:
        WorkflowCycleError: if the graph contains a cycle, listing which nodes
            are involved.
    """
    node_ids = [n.id for n in nodes]
    if not node_ids:
        return []

    in_degree: dict[str, int] = {nid: 0 for nid in node_ids}
    adjacency: dict[str, list[str]] = {nid: [] for nid in node_ids}

    for edge in edges:
        # Only count edges whose endpoints exist (validator checks the rest)
        if edge.source in adjacency and edge.target in in_degree:
            adjacency[edge.source].append(edge.target)
            in_degree[edge.target] += 1

    queue: deque[str] = deque(nid for nid in node_ids if in_degree[nid] == 0)
    order: list[str] = []

    while queue:
        node = queue.popleft()
        order.append(node)
        for child in adjacency[node]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    if len(order) != len(node_ids):
        emitted = set(order)
        cycle_nodes = [nid for nid in node_ids if nid not in emitted]
        raise WorkflowCycleError(
            f"Cycle detected in workflow graph. Involved node IDs: {cycle_nodes}",
            cycle_nodes=cycle_nodes,
            violations=[f"Cycle includes nodes: {cycle_nodes}"],
        )

    return order
