from pathlib import Path

import pytest

from milestone_graph.core.config import ConfigError, EngineConfig, load_config, make_config


def test_defaults():
    cfg = load_config(None, environ={})
    assert cfg == EngineConfig()
    assert cfg.strict_edges is True
    assert cfg.tie_break == "discovery"


def test_load_from_file():
    cfg = load_config("examples/engine-config.yaml", environ={})
    assert cfg.tie_break == "sequence"
    assert cfg.log_level == "INFO"


def test_env_overrides_file():
    env = {"MILESTONE_GRAPH_STRICT_EDGES": "false", "MILESTONE_GRAPH_LOG_LEVEL": "debug"}
    cfg = load_config("examples/engine-config.yaml", environ=env)
    assert cfg.strict_edges is False
    assert cfg.tie_break == "sequence"
    assert cfg.log_level == "DEBUG"


def test_empty_file_is_defaults(tmp_path: Path):
    p = tmp_path / "cfg.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config(str(p), environ={}) == EngineConfig()


def test_unknown_key_rejected(tmp_path: Path):
    p = tmp_path / "cfg.yaml"
    p.write_text("retries: 3\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(p), environ={})


def test_bad_values_rejected():
    with pytest.raises(ConfigError):
        make_config({"tie_break": "random"})
    with pytest.raises(ConfigError):
        make_config({"strict_edges": "maybe"})
    with pytest.raises(ConfigError):
        make_config({"log_level": "LOUD"})


def test_missing_file_raises():
    with pytest.raises(FileNotFoundError):
        load_config("examples/nope.yaml", environ={})
