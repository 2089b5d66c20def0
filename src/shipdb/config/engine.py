"""Pattern engine selection."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """``module:attribute`` references to the engine and parametric factories."""

    pattern_engine: str
    parametric: str | None = None


def get_engine_config() -> EngineConfig:
    values = require_env_vars(("SHIPDB_PATTERN_ENGINE",))
    return EngineConfig(
        pattern_engine=values["SHIPDB_PATTERN_ENGINE"].strip(),
        parametric=optional_env_var("SHIPDB_PARAMETRIC"),
    )
