"""
Engine settings (``ticketflow_config.settings``).

Settings come from three places, later ones winning:

1. the defaults on ``EngineSettings``;
2. an optional YAML file (keys are the field names);
3. ``TICKETFLOW_<FIELD_NAME>`` environment variables.

Unknown YAML keys raise ``ValueError`` so a typo does not silently fall
back to a default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from ticketflow_config.loader import load_yaml_file

ENV_PREFIX = "TICKETFLOW_"


@dataclass(frozen=True)
class EngineSettings:
    max_auto_transition_depth: int = 10
    sla_sweep_interval_seconds: float = 3600.0
    database_url: str = "sqlite:///ticketflow.db"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.max_auto_transition_depth < 0:
            raise ValueError("max_auto_transition_depth must be >= 0")
        if self.sla_sweep_interval_seconds <= 0:
            raise ValueError("sla_sweep_interval_seconds must be > 0")


def _coerce(name: str, raw: Any) -> Any:
    if name == "max_auto_transition_depth":
        return int(raw)
    if name == "sla_sweep_interval_seconds":
        return float(raw)
    if name == "log_level":
        return str(raw).upper()
    return str(raw)


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineSettings:
    """Build ``EngineSettings`` from defaults, an optional file and the environment."""
    env = os.environ if environ is None else environ
    names = {f.name for f in fields(EngineSettings)}
    overrides: dict[str, Any] = {}

    if path is not None:
        data = load_yaml_file(path)
        unknown = sorted(set(data) - names)
        if unknown:
            raise ValueError(f"Unknown settings in {path}: {unknown}")
        overrides.update({k: _coerce(k, v) for k, v in data.items()})

    for name in names:
        value = env.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            overrides[name] = _coerce(name, value)

    return replace(EngineSettings(), **overrides)
