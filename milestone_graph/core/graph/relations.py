from __future__ import annotations

from collections import deque
from typing import Iterable

from milestone_graph.core.model import DependencyEdge, DependencyGraph


def dependencies_of(edges: Iterable[DependencyEdge], milestone_id: str) -> list[str]:
    """Milestones that directly block ``milestone_id`` (deduplicated, edge order)."""
    out: list[str] = []
    for edge in edges:
        if edge.milestone_id == milestone_id and edge.depends_on_id not in out:
            out.append(edge.depends_on_id)
    return out


def dependents_of(graph: DependencyGraph, milestone_id: str) -> list[str]:
    out: list[str] = []
    for nid in graph.dependents.get(milestone_id, []):
        if nid not in out:
            out.append(nid)
    return out


def transitive_dependents(graph: DependencyGraph, milestone_id: str) -> list[str]:
    """Every milestone eventually blocked by ``milestone_id``, in BFS order."""
    q: deque[str] = deque(graph.dependents.get(milestone_id, []))
    seen: set[str] = {milestone_id}
    out: list[str] = []
    while q:
        cur = q.popleft()
        if cur in seen:
            continue
        seen.add(cur)
        out.append(cur)
        for nxt in graph.dependents.get(cur, []):
            if nxt not in seen:
                q.append(nxt)
    return out


def ready_milestones(graph: DependencyGraph, completed: Iterable[str]) -> list[str]:
    """Incomplete milestones whose dependencies are all complete, in discovery order."""
    done = set(completed)
    blockers: dict[str, set[str]] = {nid: set() for nid in graph.nodes}
    for dep, dependents in graph.dependents.items():
        for nid in dependents:
            blockers.setdefault(nid, set()).add(dep)

    return [
        nid
        for nid in graph.nodes
        if nid not in done and blockers.get(nid, set()) <= done
    ]
