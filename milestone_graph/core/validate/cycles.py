from __future__ import annotations

from typing import Iterator, Optional

from milestone_graph.core.model import DependencyGraph


WHITE, GRAY, BLACK = 0, 1, 2


def is_acyclic(graph: DependencyGraph) -> bool:
    """True when the dependency graph is a DAG.

    A cycle is a normal outcome here, reported as False rather than raised.
    """
    return find_cycle(graph) is None


def find_cycle(graph: DependencyGraph) -> Optional[list[str]]:
    """Return the first cycle found as a closed path [v, ..., v], or None.

    Depth-first search with a visited marker (BLACK/GRAY) and a recursion-stack
    marker (GRAY). The recursion is unrolled onto an explicit stack so long
    dependency chains cannot hit the interpreter recursion limit.
    """

    state: dict[str, int] = {}

    roots = list(graph.nodes)
    listed = set(roots)
    # Tolerate hand-built graphs whose keys were not listed in nodes.
    for nid in graph.dependents:
        if nid not in listed:
            roots.append(nid)

    for root in roots:
        if state.get(root, WHITE) != WHITE:
            continue

        path: list[str] = [root]
        frames: list[Iterator[str]] = [iter(graph.dependents.get(root, []))]
        state[root] = GRAY

        while frames:
            advanced = False
            for v in frames[-1]:
                v_state = state.get(v, WHITE)
                if v_state == GRAY:
                    # back-edge: v ... u -> v
                    idx = path.index(v)
                    return path[idx:] + [v]
                if v_state == WHITE:
                    state[v] = GRAY
                    path.append(v)
                    frames.append(iter(graph.dependents.get(v, [])))
                    advanced = True
                    break
            if not advanced:
                frames.pop()
                state[path.pop()] = BLACK

    return None
