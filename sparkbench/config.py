"""Resolution of the configuration, data and cache directories."""

from __future__ import annotations

import os
from dataclasses import dataclass

APP_NAME = "llm-bench"


@dataclass
class DirConfig:
    """Resolved directory paths."""

    config: str
    data: str
    cache: str


def _xdg(variable: str, *fallback: str) -> str:
    base = os.environ.get(variable, "")
    if base:
        return os.path.join(base, APP_NAME)
    return os.path.join(os.path.expanduser("~"), *fallback, APP_NAME)


def dirs() -> DirConfig:
    """Resolve directories.

    Individual LLM_BENCH_*_DIR variables win over LLM_BENCH_HOME, which wins
    over the XDG defaults.
    """
    resolved = DirConfig(
        config=_xdg("XDG_CONFIG_HOME", ".config"),
        data=_xdg("XDG_DATA_HOME", ".local", "share"),
        cache=_xdg("XDG_CACHE_HOME", ".cache"),
    )

    home = os.environ.get("LLM_BENCH_HOME", "")
    if home:
        resolved.config = os.path.join(home, "config")
        resolved.data = os.path.join(home, "data")
        resolved.cache = os.path.join(home, "cache")

    overrides = {
        "LLM_BENCH_CONFIG_DIR": "config",
        "LLM_BENCH_DATA_DIR": "data",
        "LLM_BENCH_CACHE_DIR": "cache",
    }
    for variable, attribute in overrides.items():
        value = os.environ.get(variable, "")
        if value:
            setattr(resolved, attribute, value)

    return resolved