from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from milestone_graph.core.config import EngineConfig
from milestone_graph.core.errors import (
    CycleDetectedError,
    GraphValidationError,
    MalformedEdgesError,
)
from milestone_graph.core.graph.build_graph import build_graph, build_validated_graph
from milestone_graph.core.graph.relations import (
    dependencies_of,
    dependents_of,
    ready_milestones,
    transitive_dependents,
)
from milestone_graph.core.model import (
    DependencyEdge,
    DependencyGraph,
    Milestone,
    TimelineAnalysis,
)
from milestone_graph.core.schedule.topo_order import topological_order, unresolved_nodes
from milestone_graph.core.store.edge_store import EdgeStore
from milestone_graph.core.timeline.analyze import analyze_timeline
from milestone_graph.core.validate.cycles import find_cycle, is_acyclic


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockerReport:
    milestone_id: str
    depends_on: list[str]
    dependents: list[str]
    blocks_transitively: list[str]


class DependencyEngine:
    """Per-contract graph queries over an EdgeStore.

    Every call fetches a fresh snapshot and builds its own graph, so calls for
    different contracts can run concurrently. Stores that offer
    ``fetch_contract`` hand edges and milestones over from one read; with only
    the two separate fetches, a write landing between them can pair edges and
    milestones from different store states. StoreUnavailableError from the
    store propagates unchanged.
    """

    def __init__(self, store: EdgeStore, config: Optional[EngineConfig] = None) -> None:
        self.store = store
        self.config = config or EngineConfig()

    def resolve_graph(self, contract_id: str) -> DependencyGraph:
        return self._snapshot(contract_id).graph

    def _snapshot(self, contract_id: str) -> _Snapshot:
        edges, milestones = self._fetch(contract_id)
        milestone_ids = [m.id for m in milestones]

        if not self.config.strict_edges:
            graph = build_graph(edges, milestone_ids)
        else:
            built, errors = build_validated_graph(edges, milestone_ids)
            if errors or built is None:
                logger.info("contract %s: %d malformed edges", contract_id, len(errors))
                raise MalformedEdgesError(contract_id, errors)
            graph = built

        logger.debug(
            "contract %s: built graph with %d nodes, %d edges",
            contract_id,
            len(graph),
            graph.edge_count(),
        )
        return _Snapshot(edges=edges, milestones=milestones, graph=graph)

    def _fetch(self, contract_id: str) -> tuple[list[DependencyEdge], list[Milestone]]:
        fetch_contract = getattr(self.store, "fetch_contract", None)
        if fetch_contract is not None:
            contract = fetch_contract(contract_id)
            return list(contract.edges), list(contract.milestones)
        return (
            self.store.fetch_edges(contract_id),
            self.store.fetch_milestones_ordered(contract_id),
        )

    def validate(self, contract_id: str) -> bool:
        return is_acyclic(self.resolve_graph(contract_id))

    def find_cycle(self, contract_id: str) -> Optional[list[str]]:
        return find_cycle(self.resolve_graph(contract_id))

    def execution_order(self, contract_id: str) -> list[str]:
        snap = self._snapshot(contract_id)
        rank = None
        if self.config.tie_break == "sequence":
            rank = {m.id: m.sequence for m in snap.milestones}

        order, ok = topological_order(snap.graph, rank)
        if not ok:
            remaining = unresolved_nodes(snap.graph)
            raise CycleDetectedError(
                code="E_CYCLE_DETECTED",
                message="dependency cycle detected; unresolved milestones: " + ", ".join(remaining),
                path=contract_id,
            )
        return order

    def timeline(self, contract_id: str) -> TimelineAnalysis:
        milestones = self.store.fetch_milestones_ordered(contract_id)
        analysis = analyze_timeline(milestones, contract_id=contract_id)
        if analysis.slack < timedelta(0):
            logger.warning(
                "contract %s: critical path exceeds total duration (slack %s)",
                contract_id,
                analysis.slack,
            )
        return analysis

    def blockers(self, contract_id: str, milestone_id: str) -> BlockerReport:
        snap = self._snapshot(contract_id)
        if milestone_id not in snap.graph.nodes:
            raise GraphValidationError(
                code="E_UNKNOWN_MILESTONE",
                message=f"unknown milestone: {milestone_id}",
                path=contract_id,
            )
        return BlockerReport(
            milestone_id=milestone_id,
            depends_on=dependencies_of(snap.edges, milestone_id),
            dependents=dependents_of(snap.graph, milestone_id),
            blocks_transitively=transitive_dependents(snap.graph, milestone_id),
        )

    def ready(self, contract_id: str) -> list[str]:
        snap = self._snapshot(contract_id)
        completed = [m.id for m in snap.milestones if m.is_completed]
        return ready_milestones(snap.graph, completed)


@dataclass(frozen=True)
class _Snapshot:
    edges: list[DependencyEdge]
    milestones: list[Milestone]
    graph: DependencyGraph
