from __future__ import annotations

from datetime import timedelta
from typing import Iterable, Optional

from milestone_graph.core.model import Milestone, TimelineAnalysis, TimelineEntry


def analyze_timeline(
    milestones: Iterable[Milestone],
    contract_id: Optional[str] = None,
) -> TimelineAnalysis:
    """Sum durations over sequence-ordered milestones.

    Criticality comes from each milestone's ``critical_path`` flag; the
    dependency graph is not consulted. Milestones without an estimated
    duration contribute nothing. Slack may come out negative when flagged
    durations exceed the total, which callers treat as a data-quality signal.
    """

    total = timedelta(0)
    critical = timedelta(0)
    entries: list[TimelineEntry] = []

    for m in milestones:
        entries.append(
            TimelineEntry(
                milestone_id=m.id,
                is_critical=m.critical_path,
                estimated_duration=m.estimated_duration,
                earliest_start=m.estimated_start,
                earliest_finish=m.estimated_end,
                latest_start=m.estimated_start,
                latest_finish=m.estimated_end,
            )
        )
        if m.estimated_duration is None:
            continue
        total += m.estimated_duration
        if m.critical_path:
            critical += m.estimated_duration

    return TimelineAnalysis(
        contract_id=contract_id,
        total_duration=total,
        critical_path_duration=critical,
        slack=total - critical,
        entries=entries,
    )


def format_duration(d: timedelta) -> str:
    """Render a duration as hours, e.g. ``6h`` or ``-1.5h``."""
    hours = d.total_seconds() / 3600
    if hours == int(hours):
        return f"{int(hours)}h"
    return f"{hours:g}h"
