from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from milestone_graph.core.errors import StoreUnavailableError
from milestone_graph.core.model import DependencyEdge, Milestone


logger = logging.getLogger(__name__)


class EdgeStore(Protocol):
    """What the engine needs from the persistence layer.

    Both calls return a point-in-time snapshot and raise StoreUnavailableError
    when the store cannot be reached. Retries, if any, belong to implementations.
    Stores may also offer ``fetch_contract(contract_id) -> ContractSnapshot``
    to return both from a single read; the engine prefers it when present.
    """

    def fetch_edges(self, contract_id: str) -> list[DependencyEdge]: ...

    def fetch_milestones_ordered(self, contract_id: str) -> list[Milestone]: ...


@dataclass(frozen=True)
class ContractSnapshot:
    contract_id: str
    milestones: list[Milestone] = field(default_factory=list)
    edges: list[DependencyEdge] = field(default_factory=list)


def order_by_sequence(milestones: Iterable[Milestone]) -> list[Milestone]:
    return sorted(milestones, key=lambda m: (m.sequence, m.id))


class InMemoryEdgeStore:
    def __init__(self, contracts: Iterable[ContractSnapshot] = ()) -> None:
        self._contracts: dict[str, ContractSnapshot] = {}
        self.available = True
        for c in contracts:
            self.put_contract(c)

    def put_contract(self, contract: ContractSnapshot) -> None:
        self._contracts[contract.contract_id] = contract

    def contract_ids(self) -> list[str]:
        return sorted(self._contracts.keys())

    def fetch_contract(self, contract_id: str) -> ContractSnapshot:
        """Edges and sequence-ordered milestones from the same read."""
        self._ensure_available(contract_id)
        contract = self._contracts.get(contract_id)
        if contract is None:
            return ContractSnapshot(contract_id=contract_id)
        return ContractSnapshot(
            contract_id=contract_id,
            milestones=order_by_sequence(contract.milestones),
            edges=list(contract.edges),
        )

    def fetch_edges(self, contract_id: str) -> list[DependencyEdge]:
        self._ensure_available(contract_id)
        contract = self._contracts.get(contract_id)
        if contract is None:
            logger.debug("no edges recorded for contract %s", contract_id)
            return []
        return list(contract.edges)

    def fetch_milestones_ordered(self, contract_id: str) -> list[Milestone]:
        self._ensure_available(contract_id)
        contract = self._contracts.get(contract_id)
        if contract is None:
            return []
        return order_by_sequence(contract.milestones)

    def _ensure_available(self, contract_id: str) -> None:
        if not self.available:
            raise StoreUnavailableError(
                code="E_STORE_UNAVAILABLE",
                message=f"edge store is not available (contract {contract_id})",
                path=contract_id,
            )
