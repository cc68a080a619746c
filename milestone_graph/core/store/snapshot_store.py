from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, cast

import yaml

from milestone_graph.core.errors import SnapshotLoadError, StoreUnavailableError
from milestone_graph.core.model import DependencyEdge, Milestone
from milestone_graph.core.store.edge_store import ContractSnapshot, InMemoryEdgeStore


logger = logging.getLogger(__name__)

_TIMESTAMP_FIELDS = ("estimated_start", "estimated_end", "actual_start", "actual_end")

_Report = Callable[[str, str, str], None]


def load_snapshot(path: str) -> dict[str, Any]:
    """Load a YAML/JSON snapshot file.

    Returns a dict with keys: schema_version, contracts.
    Does not coerce types; parse_snapshot owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise SnapshotLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise SnapshotLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except SnapshotLoadError:
        raise
    except (yaml.YAMLError, ValueError) as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise SnapshotLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise SnapshotLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    return {
        "schema_version": data.get("schema_version"),
        "contracts": data.get("contracts"),
        "__file__": str(p),
    }


def parse_snapshot(
    snapshot: dict[str, Any],
) -> tuple[Optional[list[ContractSnapshot]], list[SnapshotLoadError]]:
    """Turn a raw snapshot into typed contracts.

    Returns (contracts, errors). Contracts is None when errors exist.
    """

    file = cast(Optional[str], snapshot.get("__file__"))
    errors: list[SnapshotLoadError] = []

    def err(code: str, message: str, path: str) -> None:
        errors.append(SnapshotLoadError(code=code, message=message, file=file, path=path))

    contracts_raw = snapshot.get("contracts")
    if not isinstance(contracts_raw, list):
        err("E_REQUIRED_FIELD", "contracts is required and must be an array", "contracts")
        return None, errors

    out: list[ContractSnapshot] = []
    seen_contracts: set[str] = set()

    for ci, raw_contract in enumerate(contracts_raw):
        cpath = f"contracts[{ci}]"
        if not isinstance(raw_contract, dict):
            err("E_INVALID_TYPE", "contract must be an object", cpath)
            continue

        cid = raw_contract.get("id")
        if not isinstance(cid, str) or not cid.strip():
            err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{cpath}.id")
            continue
        if cid in seen_contracts:
            err("E_DUPLICATE_ID", f"duplicate contract id: {cid}", f"{cpath}.id")
            continue
        seen_contracts.add(cid)

        milestones = _parse_milestones(raw_contract.get("milestones", []), cid, cpath, err)
        edges = _parse_edges(raw_contract.get("dependencies", []), cpath, err)
        out.append(ContractSnapshot(contract_id=cid, milestones=milestones, edges=edges))

    if errors:
        return None, _sorted(errors)
    return out, []


def _parse_milestones(raw: Any, contract_id: str, cpath: str, err: _Report) -> list[Milestone]:
    if not isinstance(raw, list):
        err("E_INVALID_TYPE", "milestones must be an array", f"{cpath}.milestones")
        return []

    milestones: list[Milestone] = []
    seen: set[str] = set()

    for i, m in enumerate(raw):
        mpath = f"{cpath}.milestones[{i}]"
        if not isinstance(m, dict):
            err("E_INVALID_TYPE", "milestone must be an object", mpath)
            continue

        mid = m.get("id")
        if not isinstance(mid, str) or not mid.strip():
            err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{mpath}.id")
            continue
        if mid in seen:
            err("E_DUPLICATE_ID", f"duplicate milestone id: {mid}", f"{mpath}.id")
            continue
        seen.add(mid)

        sequence = m.get("sequence", i + 1)
        if not isinstance(sequence, int) or isinstance(sequence, bool):
            err("E_INVALID_TYPE", "sequence must be an integer", f"{mpath}.sequence")
            continue

        critical = m.get("critical_path", False)
        if not isinstance(critical, bool):
            err("E_INVALID_TYPE", "critical_path must be a boolean", f"{mpath}.critical_path")
            continue

        ok = True
        durations: dict[str, Optional[timedelta]] = {}
        for key in ("estimated_duration_hours", "actual_duration_hours"):
            hours = m.get(key)
            if hours is None:
                durations[key] = None
            elif not isinstance(hours, (int, float)) or isinstance(hours, bool):
                err("E_INVALID_TYPE", f"{key} must be a number", f"{mpath}.{key}")
                ok = False
            elif (isinstance(hours, float) and not math.isfinite(hours)) or hours < 0:
                err("E_INVALID_VALUE", f"{key} must be a finite non-negative number", f"{mpath}.{key}")
                ok = False
            else:
                try:
                    durations[key] = timedelta(hours=hours)
                except OverflowError:
                    err("E_INVALID_VALUE", f"{key} is out of range", f"{mpath}.{key}")
                    ok = False

        timestamps: dict[str, Optional[datetime]] = {}
        for key in _TIMESTAMP_FIELDS:
            try:
                timestamps[key] = _as_datetime(m.get(key))
            except ValueError as e:
                err("E_INVALID_VALUE", f"{key}: {e}", f"{mpath}.{key}")
                ok = False

        pct = m.get("percentage_complete")
        pct_value: Optional[float] = None
        if pct is not None and (not isinstance(pct, (int, float)) or isinstance(pct, bool)):
            err("E_INVALID_TYPE", "percentage_complete must be a number", f"{mpath}.percentage_complete")
            ok = False
        elif pct is not None:
            try:
                pct_value = float(pct)
            except OverflowError:
                pct_value = math.inf
            if not math.isfinite(pct_value):
                err("E_INVALID_VALUE", "percentage_complete must be finite", f"{mpath}.percentage_complete")
                ok = False

        if not ok:
            continue

        title = m.get("title")
        status = m.get("status")
        milestones.append(
            Milestone(
                id=mid,
                contract_id=contract_id,
                sequence=sequence,
                critical_path=critical,
                estimated_duration=durations["estimated_duration_hours"],
                actual_duration=durations["actual_duration_hours"],
                estimated_start=timestamps["estimated_start"],
                estimated_end=timestamps["estimated_end"],
                actual_start=timestamps["actual_start"],
                actual_end=timestamps["actual_end"],
                title=title if isinstance(title, str) else None,
                status=status if isinstance(status, str) else None,
                percentage_complete=pct_value,
            )
        )

    return milestones


def _parse_edges(raw: Any, cpath: str, err: _Report) -> list[DependencyEdge]:
    if not isinstance(raw, list):
        err("E_INVALID_TYPE", "dependencies must be an array", f"{cpath}.dependencies")
        return []

    edges: list[DependencyEdge] = []
    for i, d in enumerate(raw):
        dpath = f"{cpath}.dependencies[{i}]"
        if not isinstance(d, dict):
            err("E_INVALID_TYPE", "dependency must be an object", dpath)
            continue

        mid = d.get("milestone_id")
        dep = d.get("depends_on_id")
        if not isinstance(mid, str) or not isinstance(dep, str):
            err(
                "E_REQUIRED_FIELD",
                "milestone_id and depends_on_id are required strings",
                dpath,
            )
            continue

        dtype = d.get("dependency_type", "finish_to_start")
        if not isinstance(dtype, str):
            err("E_INVALID_TYPE", "dependency_type must be a string", f"{dpath}.dependency_type")
            continue

        edges.append(DependencyEdge(milestone_id=mid, depends_on_id=dep, dependency_type=dtype))
    return edges


def _as_datetime(v: Any) -> Optional[datetime]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v
    if isinstance(v, date):
        return datetime(v.year, v.month, v.day)
    if isinstance(v, str):
        return datetime.fromisoformat(v)
    raise ValueError(f"expected an ISO-8601 timestamp, got {type(v).__name__}")


def _sorted(errors: Iterable[SnapshotLoadError]) -> list[SnapshotLoadError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


class FileEdgeStore:
    """EdgeStore backed by a snapshot file, re-read on every fetch."""

    def __init__(self, path: str) -> None:
        self.path = path

    def fetch_contract(self, contract_id: str) -> ContractSnapshot:
        return self._load().fetch_contract(contract_id)

    def fetch_edges(self, contract_id: str) -> list[DependencyEdge]:
        return self._load().fetch_edges(contract_id)

    def fetch_milestones_ordered(self, contract_id: str) -> list[Milestone]:
        return self._load().fetch_milestones_ordered(contract_id)

    def _load(self) -> InMemoryEdgeStore:
        try:
            raw = load_snapshot(self.path)
        except SnapshotLoadError as e:
            logger.warning("snapshot unavailable: %s", e)
            raise StoreUnavailableError(code="E_STORE_UNAVAILABLE", message=str(e), file=self.path) from e

        contracts, errors = parse_snapshot(raw)
        if errors or contracts is None:
            logger.warning("snapshot %s has %d errors", self.path, len(errors))
            raise StoreUnavailableError(
                code="E_STORE_UNAVAILABLE",
                message="; ".join(str(e) for e in errors[:5]),
                file=self.path,
            )
        return InMemoryEdgeStore(contracts)
