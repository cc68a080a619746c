from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal, Mapping, Optional, cast

import yaml


TieBreak = Literal["discovery", "sequence"]

ALLOWED_TIE_BREAKS: set[str] = {"discovery", "sequence"}
ALLOWED_LOG_LEVELS: set[str] = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

ENV_PREFIX = "MILESTONE_GRAPH_"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class EngineConfig:
    # Reject self-loops and dangling references before any verdict is computed.
    strict_edges: bool = True
    tie_break: TieBreak = "discovery"
    log_level: str = "WARNING"


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load engine settings from a YAML file.

    Format:
      strict_edges: true
      tie_break: discovery | sequence
      log_level: WARNING
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping of setting -> value")
    unknown = sorted(set(raw.keys()) - {"strict_edges", "tie_break", "log_level"})
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(str(k) for k in unknown)}")
    return raw


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    out: dict[str, Any] = {}
    for key in ("strict_edges", "tie_break", "log_level"):
        value = env.get(ENV_PREFIX + key.upper())
        if value is not None and value.strip():
            out[key] = value.strip()
    return out


def make_config(values: Mapping[str, Any], base: Optional[EngineConfig] = None) -> EngineConfig:
    cfg = base or EngineConfig()

    if "strict_edges" in values:
        cfg = replace(cfg, strict_edges=_as_bool(values["strict_edges"]))

    if "tie_break" in values:
        tie_break = values["tie_break"]
        if not isinstance(tie_break, str) or tie_break not in ALLOWED_TIE_BREAKS:
            raise ConfigError(f"tie_break must be one of {sorted(ALLOWED_TIE_BREAKS)}")
        cfg = replace(cfg, tie_break=cast(TieBreak, tie_break))

    if "log_level" in values:
        level = values["log_level"]
        if not isinstance(level, str) or level.upper() not in ALLOWED_LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {sorted(ALLOWED_LOG_LEVELS)}")
        cfg = replace(cfg, log_level=level.upper())

    return cfg


def load_config(
    config_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EngineConfig:
    """Defaults, then the optional YAML file, then MILESTONE_GRAPH_* environment variables."""
    cfg = EngineConfig()
    if config_file:
        cfg = make_config(load_config_file(config_file), cfg)
    return make_config(env_overrides(environ), cfg)


def _as_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        lowered = v.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"strict_edges must be a boolean, got {v!r}")
