from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional


@dataclass(frozen=True)
class Milestone:
    id: str
    contract_id: str
    sequence: int
    critical_path: bool = False
    estimated_duration: Optional[timedelta] = None
    actual_duration: Optional[timedelta] = None

    estimated_start: Optional[datetime] = None
    estimated_end: Optional[datetime] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None

    title: Optional[str] = None
    status: Optional[str] = None
    percentage_complete: Optional[float] = None

    @property
    def is_completed(self) -> bool:
        if self.actual_end is not None:
            return True
        return self.percentage_complete is not None and self.percentage_complete >= 100.0


@dataclass(frozen=True)
class DependencyEdge:
    milestone_id: str
    depends_on_id: str
    dependency_type: str = "finish_to_start"


@dataclass(frozen=True)
class DependencyGraph:
    dependents: dict[str, list[str]]  # depends_on_id -> [milestone_id, ...]
    nodes: list[str]  # discovery order

    def __len__(self) -> int:
        return len(self.nodes)

    def edge_count(self) -> int:
        return sum(len(v) for v in self.dependents.values())


@dataclass(frozen=True)
class TimelineEntry:
    milestone_id: str
    is_critical: bool
    estimated_duration: Optional[timedelta] = None
    earliest_start: Optional[datetime] = None
    earliest_finish: Optional[datetime] = None
    latest_start: Optional[datetime] = None
    latest_finish: Optional[datetime] = None


@dataclass(frozen=True)
class TimelineAnalysis:
    contract_id: Optional[str]
    total_duration: timedelta
    critical_path_duration: timedelta
    slack: timedelta
    entries: list[TimelineEntry] = field(default_factory=list)
