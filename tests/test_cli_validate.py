import json

from typer.testing import CliRunner

from milestone_graph.cli import app


runner = CliRunner()


def test_cli_validate_success():
    r = runner.invoke(app, ["validate", "examples/contract-basic.yaml"])
    assert r.exit_code == 0
    assert "OK: contract CONTRACT-001" in r.stdout
    assert "acyclic" in r.stdout


def test_cli_validate_cycle():
    r = runner.invoke(app, ["validate", "examples/contract-cycle.yaml"])
    assert r.exit_code == 2
    assert "E_CYCLE_DETECTED" in r.output


def test_cli_validate_malformed_edges():
    r = runner.invoke(app, ["validate", "examples/contract-self-loop.yaml"])
    assert r.exit_code == 2
    out = r.output
    assert "E_SELF_LOOP" in out
    assert "E_UNKNOWN_MILESTONE" in out


def test_cli_validate_json_success():
    r = runner.invoke(app, ["validate", "examples/contract-basic.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["command"] == "validate"
    assert payload["ok"] is True
    assert payload["error_count"] == 0
    assert payload["result"]["node_count"] == 4
    assert payload["result"]["edge_count"] == 3


def test_cli_validate_json_cycle():
    r = runner.invoke(app, ["validate", "examples/contract-cycle.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert {e["code"] for e in payload["errors"]} == {"E_CYCLE_DETECTED"}
    assert payload["errors"][0]["source"] == "cycle"


def test_cli_validate_missing_file():
    r = runner.invoke(app, ["validate", "examples/does-not-exist.yaml", "--format", "json"])
    assert r.exit_code == 1
    payload = json.loads(r.stdout)
    assert payload["errors"][0]["code"] == "E_FILE_NOT_FOUND"
    assert payload["errors"][0]["source"] == "load"


def test_cli_validate_invalid_snapshot():
    r = runner.invoke(app, ["validate", "examples/invalid-negative-duration.yaml"])
    assert r.exit_code == 2
    assert "E_INVALID_VALUE" in r.output


def test_cli_validate_unknown_format():
    r = runner.invoke(app, ["validate", "examples/contract-basic.yaml", "--format", "xml"])
    assert r.exit_code == 2
    assert "E_VALIDATE_UNKNOWN_FORMAT" in r.output


def test_cli_contract_required_for_multi_contract_snapshot():
    r = runner.invoke(app, ["validate", "examples/multi-contract.json"])
    assert r.exit_code == 2
    assert "E_CONTRACT_REQUIRED" in r.output

    r = runner.invoke(app, ["validate", "examples/multi-contract.json", "--contract", "CONTRACT-A"])
    assert r.exit_code == 0

    r = runner.invoke(app, ["validate", "examples/multi-contract.json", "--contract", "NOPE"])
    assert r.exit_code == 2
    assert "E_UNKNOWN_CONTRACT" in r.output
