from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class MilestoneGraphError(Exception):
    """Base error envelope. Validation functions return these; loaders and the engine raise them."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<snapshot>"
        return f"{loc}: {self.code}: {self.message}"


class SnapshotLoadError(MilestoneGraphError):
    pass


class StoreUnavailableError(MilestoneGraphError):
    pass


class GraphValidationError(MilestoneGraphError):
    pass


class MalformedEdgesError(GraphValidationError):
    """Raised by the strict build; ``errors`` holds every offending edge."""

    def __init__(self, contract_id: str, errors: list[GraphValidationError]) -> None:
        first = errors[0] if errors else None
        super().__init__(
            code=first.code if first else "E_MALFORMED_EDGES",
            message=f"{len(errors)} malformed dependency edge(s); first: {first.message if first else '-'}",
            path=contract_id,
        )
        object.__setattr__(self, "errors", errors)


class CycleDetectedError(MilestoneGraphError):
    pass
