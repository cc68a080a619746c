from __future__ import annotations

from typing import Iterable, Optional

from milestone_graph.core.errors import GraphValidationError
from milestone_graph.core.model import DependencyEdge, DependencyGraph


def build_graph(
    edges: Iterable[DependencyEdge],
    milestone_ids: Optional[Iterable[str]] = None,
) -> DependencyGraph:
    """Build the dependents adjacency (dependency -> milestones that depend on it).

    Edges are taken as-is: self-loops and parallel edges pass through so the
    cycle validator and scheduler see exactly what the store returned.
    ``milestone_ids`` adds milestones that carry no edges at all.
    """

    dependents: dict[str, list[str]] = {}
    nodes: list[str] = []
    seen: set[str] = set()

    def _discover(nid: str) -> None:
        if nid not in seen:
            seen.add(nid)
            nodes.append(nid)

    for edge in edges:
        _discover(edge.depends_on_id)
        _discover(edge.milestone_id)
        dependents.setdefault(edge.depends_on_id, []).append(edge.milestone_id)

    if milestone_ids is not None:
        for mid in milestone_ids:
            _discover(mid)

    return DependencyGraph(dependents=dependents, nodes=nodes)


def check_edges(
    edges: Iterable[DependencyEdge],
    milestone_ids: Optional[Iterable[str]] = None,
) -> list[GraphValidationError]:
    """Reject edges that would make the acyclic/order verdicts misleading.

    Parallel edges are allowed. Referential checks run only when the caller
    knows the contract's milestone ids.
    """

    known: Optional[set[str]] = set(milestone_ids) if milestone_ids is not None else None
    errors: list[GraphValidationError] = []

    for i, edge in enumerate(edges):
        edge_path = f"dependencies[{i}]"

        blank = False
        for field_name in ("milestone_id", "depends_on_id"):
            value = getattr(edge, field_name)
            if not isinstance(value, str) or not value.strip():
                blank = True
                errors.append(
                    GraphValidationError(
                        code="E_EMPTY_ID",
                        message=f"{field_name} must be a non-empty string",
                        path=f"{edge_path}.{field_name}",
                    )
                )
        if blank:
            continue

        if edge.milestone_id == edge.depends_on_id:
            errors.append(
                GraphValidationError(
                    code="E_SELF_LOOP",
                    message=f"milestone depends on itself: {edge.milestone_id}",
                    path=edge_path,
                )
            )

        if known is not None:
            for field_name in ("milestone_id", "depends_on_id"):
                value = getattr(edge, field_name)
                if value not in known:
                    errors.append(
                        GraphValidationError(
                            code="E_UNKNOWN_MILESTONE",
                            message=f"{field_name} references unknown milestone: {value}",
                            path=f"{edge_path}.{field_name}",
                        )
                    )

    return _sorted(errors)


def build_validated_graph(
    edges: Iterable[DependencyEdge],
    milestone_ids: Optional[Iterable[str]] = None,
) -> tuple[Optional[DependencyGraph], list[GraphValidationError]]:
    """Strict build. Returns (graph, errors); graph is None when errors exist."""

    edge_list = list(edges)
    id_list = list(milestone_ids) if milestone_ids is not None else None

    errors = check_edges(edge_list, id_list)
    if errors:
        return None, errors
    return build_graph(edge_list, id_list), []


def _sorted(errors: Iterable[GraphValidationError]) -> list[GraphValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
