from __future__ import annotations

import heapq
from collections import deque
from typing import Any, Mapping, Optional

from milestone_graph.core.model import DependencyGraph


def topological_order(
    graph: DependencyGraph,
    rank: Optional[Mapping[str, Any]] = None,
) -> tuple[list[str], bool]:
    """Kahn's algorithm over the dependents mapping.

    Returns (order, ok). When a cycle leaves nodes unresolved the result is
    ([], False); a partial order is never returned as a success.

    Tie-break among simultaneously ready nodes:
    - default: FIFO in node discovery order (graph.nodes),
    - with ``rank``: smallest (rank[node], discovery index) first; nodes
      missing from ``rank`` come after every ranked node.
    """

    order, remaining = _kahn(graph, rank)
    if remaining:
        return [], False
    return order, True


def unresolved_nodes(graph: DependencyGraph) -> list[str]:
    """Nodes Kahn's algorithm cannot release: cycle members and everything behind them."""
    _, remaining = _kahn(graph, None)
    return remaining


def _kahn(
    graph: DependencyGraph,
    rank: Optional[Mapping[str, Any]],
) -> tuple[list[str], list[str]]:
    nodes = _all_nodes(graph)
    index = {nid: i for i, nid in enumerate(nodes)}

    in_degree: dict[str, int] = {nid: 0 for nid in nodes}
    for deps in graph.dependents.values():
        for dep in deps:
            in_degree[dep] += 1

    ready = _ReadyQueue(index, rank)
    for nid in nodes:
        if in_degree[nid] == 0:
            ready.push(nid)

    result: list[str] = []
    while ready:
        node = ready.pop()
        result.append(node)
        for dependent in graph.dependents.get(node, []):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                ready.push(dependent)

    if len(result) < len(nodes):
        emitted = set(result)
        return result, [nid for nid in nodes if nid not in emitted]
    return result, []


def _all_nodes(graph: DependencyGraph) -> list[str]:
    # Terminal milestones appear only as values; hand-built graphs may omit them from nodes.
    nodes = list(graph.nodes)
    seen = set(nodes)
    for key, deps in graph.dependents.items():
        for nid in [key, *deps]:
            if nid not in seen:
                seen.add(nid)
                nodes.append(nid)
    return nodes


class _ReadyQueue:
    def __init__(self, index: dict[str, int], rank: Optional[Mapping[str, Any]]) -> None:
        self._index = index
        self._rank = rank
        self._fifo: deque[str] = deque()
        self._heap: list[tuple[int, Any, int, str]] = []

    def push(self, nid: str) -> None:
        if self._rank is None:
            self._fifo.append(nid)
            return
        if nid in self._rank:
            key = (0, self._rank[nid], self._index[nid], nid)
        else:
            key = (1, 0, self._index[nid], nid)
        heapq.heappush(self._heap, key)

    def pop(self) -> str:
        if self._rank is None:
            return self._fifo.popleft()
        return heapq.heappop(self._heap)[-1]

    def __bool__(self) -> bool:
        return bool(self._fifo) or bool(self._heap)
