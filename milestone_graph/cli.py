from __future__ import annotations

import json
import logging
from typing import Any, NoReturn, Optional

import typer

from milestone_graph.core.config import ConfigError, EngineConfig, load_config, make_config
from milestone_graph.core.engine import DependencyEngine
from milestone_graph.core.errors import (
    CycleDetectedError,
    GraphValidationError,
    MalformedEdgesError,
    MilestoneGraphError,
    SnapshotLoadError,
    StoreUnavailableError,
)
from milestone_graph.core.store.edge_store import InMemoryEdgeStore
from milestone_graph.core.store.snapshot_store import load_snapshot, parse_snapshot
from milestone_graph.core.timeline.analyze import format_duration
from milestone_graph.core.validate.cycles import find_cycle

app = typer.Typer(add_completion=False, no_args_is_help=True)

logger = logging.getLogger(__name__)

FORMATS = ("text", "json")

PathArg = typer.Argument(..., help="Path to a milestone snapshot file (.yaml/.yml/.json)")
ContractOpt = typer.Option(
    None, "--contract", help="Contract id (optional when the snapshot holds one contract)"
)
FormatOpt = typer.Option("text", "--format", help="Output format: text|json")
ConfigOpt = typer.Option(None, "--config", help="Optional YAML engine config file")
LogLevelOpt = typer.Option(None, "--log-level", help="Override log level (DEBUG, INFO, ...)")


@app.callback()
def _callback() -> None:
    """Milestone dependency graph CLI."""
    return


@app.command("validate")
def validate(
    path: str = PathArg,
    contract: Optional[str] = ContractOpt,
    format: str = FormatOpt,
    config_file: Optional[str] = ConfigOpt,
    log_level: Optional[str] = LogLevelOpt,
) -> None:
    """Check a contract's dependency edges and prove the graph is acyclic."""
    engine, contract_id = _open_engine("validate", path, contract, format, config_file, log_level)

    graph = _resolve(engine, "validate", contract_id, format)
    cycle = find_cycle(graph)
    if cycle is not None:
        err = GraphValidationError(
            code="E_CYCLE_DETECTED",
            message="dependency cycle detected: " + " -> ".join(cycle),
            file=path,
            path=contract_id,
        )
        _fail("validate", format, [err], exit_code=2, contract_id=contract_id)

    summary = {
        "node_count": len(graph),
        "edge_count": graph.edge_count(),
        "acyclic": True,
    }
    if format == "json":
        _emit_json("validate", True, exit_code=0, contract_id=contract_id, errors=[], result=summary)
    typer.echo(
        f"OK: contract {contract_id}: {len(graph)} milestones, "
        f"{graph.edge_count()} dependencies, acyclic"
    )


@app.command("order")
def order(
    path: str = PathArg,
    contract: Optional[str] = ContractOpt,
    format: str = FormatOpt,
    config_file: Optional[str] = ConfigOpt,
    log_level: Optional[str] = LogLevelOpt,
    tie_break: Optional[str] = typer.Option(
        None, "--tie-break", help="Ordering among ready milestones: discovery|sequence"
    ),
) -> None:
    """Print a legal execution order (topological order) for a contract."""
    overrides = {"tie_break": tie_break} if tie_break is not None else {}
    engine, contract_id = _open_engine(
        "order", path, contract, format, config_file, log_level, overrides
    )

    try:
        ids = engine.execution_order(contract_id)
    except CycleDetectedError as e:
        _fail("order", format, [e], exit_code=2, contract_id=contract_id)
    except (MalformedEdgesError, StoreUnavailableError) as e:
        _fail_engine("order", format, e, contract_id)

    if format == "json":
        _emit_json(
            "order", True, exit_code=0, contract_id=contract_id, errors=[], result={"order": ids}
        )
    for i, mid in enumerate(ids, start=1):
        typer.echo(f"{i}. {mid}")


@app.command("timeline")
def timeline(
    path: str = PathArg,
    contract: Optional[str] = ContractOpt,
    format: str = FormatOpt,
    config_file: Optional[str] = ConfigOpt,
    log_level: Optional[str] = LogLevelOpt,
) -> None:
    """Total duration, critical-path duration and slack for a contract."""
    engine, contract_id = _open_engine("timeline", path, contract, format, config_file, log_level)

    try:
        analysis = engine.timeline(contract_id)
    except StoreUnavailableError as e:
        _fail_engine("timeline", format, e, contract_id)

    if format == "json":
        result = {
            "total_duration_hours": _hours(analysis.total_duration),
            "critical_path_duration_hours": _hours(analysis.critical_path_duration),
            "slack_hours": _hours(analysis.slack),
            "milestones": [
                {
                    "id": e.milestone_id,
                    "critical_path": e.is_critical,
                    "estimated_duration_hours": (
                        _hours(e.estimated_duration) if e.estimated_duration is not None else None
                    ),
                    "earliest_start": _iso(e.earliest_start),
                    "earliest_finish": _iso(e.earliest_finish),
                }
                for e in analysis.entries
            ],
        }
        _emit_json("timeline", True, exit_code=0, contract_id=contract_id, errors=[], result=result)

    typer.echo(
        f"Contract {contract_id}: total={format_duration(analysis.total_duration)} "
        f"critical_path={format_duration(analysis.critical_path_duration)} "
        f"slack={format_duration(analysis.slack)}"
    )
    for e in analysis.entries:
        mark = "*" if e.is_critical else " "
        dur = format_duration(e.estimated_duration) if e.estimated_duration is not None else "-"
        typer.echo(f"{mark} {e.milestone_id} {dur}")


@app.command("blockers")
def blockers(
    milestone: str = typer.Argument(..., help="Milestone id"),
    path: str = PathArg,
    contract: Optional[str] = ContractOpt,
    format: str = FormatOpt,
    config_file: Optional[str] = ConfigOpt,
    log_level: Optional[str] = LogLevelOpt,
) -> None:
    """Show what blocks a milestone and what it blocks."""
    engine, contract_id = _open_engine("blockers", path, contract, format, config_file, log_level)

    try:
        report = engine.blockers(contract_id, milestone)
    except (GraphValidationError, StoreUnavailableError) as e:
        _fail_engine("blockers", format, e, contract_id)

    if format == "json":
        result = {
            "milestone_id": report.milestone_id,
            "depends_on": report.depends_on,
            "dependents": report.dependents,
            "blocks_transitively": report.blocks_transitively,
        }
        _emit_json("blockers", True, exit_code=0, contract_id=contract_id, errors=[], result=result)

    typer.echo(f"Milestone {report.milestone_id}")
    typer.echo("Depends on: " + (", ".join(report.depends_on) or "-"))
    typer.echo("Dependents: " + (", ".join(report.dependents) or "-"))
    typer.echo("Blocks (transitive): " + (", ".join(report.blocks_transitively) or "-"))


@app.command("ready")
def ready(
    path: str = PathArg,
    contract: Optional[str] = ContractOpt,
    format: str = FormatOpt,
    config_file: Optional[str] = ConfigOpt,
    log_level: Optional[str] = LogLevelOpt,
) -> None:
    """List incomplete milestones whose dependencies are all complete."""
    engine, contract_id = _open_engine("ready", path, contract, format, config_file, log_level)

    try:
        ids = engine.ready(contract_id)
    except (MalformedEdgesError, StoreUnavailableError) as e:
        _fail_engine("ready", format, e, contract_id)

    if format == "json":
        _emit_json("ready", True, exit_code=0, contract_id=contract_id, errors=[], result={"ready": ids})
    if not ids:
        typer.echo("No milestones ready")
        return
    for mid in ids:
        typer.echo(mid)


def _open_engine(
    command: str,
    path: str,
    contract: Optional[str],
    format: str,
    config_file: Optional[str],
    log_level: Optional[str],
    overrides: Optional[dict[str, Any]] = None,
) -> tuple[DependencyEngine, str]:
    if format not in FORMATS:
        err = GraphValidationError(
            code=f"E_{command.upper()}_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: text, json)",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)

    try:
        config = load_config(config_file)
        extra: dict[str, Any] = dict(overrides or {})
        if log_level is not None:
            extra["log_level"] = log_level
        config = make_config(extra, config)
    except FileNotFoundError:
        err = SnapshotLoadError(
            code="E_CONFIG_FILE_NOT_FOUND",
            message=f"config file not found: {config_file}",
            path="config",
        )
        _fail(command, format, [err], exit_code=1)
    except ConfigError as e:
        err = GraphValidationError(code="E_CONFIG_INVALID", message=str(e), path="config")
        _fail(command, format, [err], exit_code=2)

    _configure_logging(config)

    try:
        raw = load_snapshot(path)
    except SnapshotLoadError as e:
        _fail(command, format, [e], exit_code=1)

    contracts, errors = parse_snapshot(raw)
    if errors or contracts is None:
        _fail(command, format, list(errors), exit_code=2)

    store = InMemoryEdgeStore(contracts)
    contract_id = contract
    if contract_id is None:
        ids = store.contract_ids()
        if len(ids) != 1:
            err = GraphValidationError(
                code="E_CONTRACT_REQUIRED",
                message=f"--contract is required when the snapshot holds {len(ids)} contracts",
                file=path,
                path="contract",
            )
            _fail(command, format, [err], exit_code=2)
        contract_id = ids[0]
    elif contract_id not in store.contract_ids():
        err = GraphValidationError(
            code="E_UNKNOWN_CONTRACT",
            message=f"--contract references unknown id: {contract_id}",
            file=path,
            path="contract",
        )
        _fail(command, format, [err], exit_code=2)

    logger.debug("%s: contract %s from %s", command, contract_id, path)
    return DependencyEngine(store, config), contract_id


def _resolve(engine: DependencyEngine, command: str, contract_id: str, format: str) -> Any:
    try:
        return engine.resolve_graph(contract_id)
    except (MalformedEdgesError, StoreUnavailableError) as e:
        _fail_engine(command, format, e, contract_id)


def _configure_logging(config: EngineConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("milestone_graph").setLevel(config.log_level)


def _fail_engine(command: str, format: str, e: MilestoneGraphError, contract_id: str) -> NoReturn:
    if isinstance(e, MalformedEdgesError):
        _fail(command, format, list(getattr(e, "errors", [e])), exit_code=2, contract_id=contract_id)
    exit_code = 1 if isinstance(e, StoreUnavailableError) else 2
    _fail(command, format, [e], exit_code=exit_code, contract_id=contract_id)


def _fail(
    command: str,
    format: str,
    errors: list[MilestoneGraphError],
    *,
    exit_code: int,
    contract_id: Optional[str] = None,
) -> NoReturn:
    if format == "json":
        _emit_json(
            command, False, exit_code=exit_code, contract_id=contract_id, errors=errors, result=None
        )
    _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _to_item(e: MilestoneGraphError) -> dict:
    if isinstance(e, (SnapshotLoadError, StoreUnavailableError)):
        source = "load"
    elif isinstance(e, CycleDetectedError) or e.code == "E_CYCLE_DETECTED":
        source = "cycle"
    else:
        source = "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _emit_json(
    command: str,
    ok: bool,
    *,
    exit_code: int,
    contract_id: Optional[str],
    errors: list[MilestoneGraphError],
    result: Optional[dict],
) -> NoReturn:
    payload = {
        "tool": "milestones",
        "command": command,
        "contract_id": contract_id,
        "ok": ok,
        "error_count": len(errors),
        "errors": [_to_item(e) for e in errors],
        "result": result,
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _print_errors(errors: list[MilestoneGraphError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def _hours(d: Any) -> float:
    return d.total_seconds() / 3600


def _iso(v: Any) -> Optional[str]:
    return v.isoformat() if v is not None else None


def main() -> None:
    app(prog_name="milestones")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
