"""App config: director data paths, default seed, env overrides.

Env overrides: DIRECTOR_CONFIG_PATH, STORYLET_LIBRARY_DIR, DIRECTOR_SNAPSHOT_DIR,
DIRECTOR_SEED, DIRECTOR_STRICT_LIBRARY.
"""
from __future__ import annotations

from pathlib import Path

from shared.config import (
    DATA_ROOT,
    DIRECTOR_CONFIG_PATH,
    DIRECTOR_SNAPSHOT_DIR,
    DIRECTOR_STRICT_LIBRARY,
    STORYLET_LIBRARY_DIR,
)
from shared.runtime_settings import env_int

DEFAULT_SEED = env_int("DIRECTOR_SEED", 0)
STRICT_LIBRARY = DIRECTOR_STRICT_LIBRARY


def resolve_config_path() -> Path:
    return Path(DIRECTOR_CONFIG_PATH)


def resolve_library_dir() -> Path:
    return Path(STORYLET_LIBRARY_DIR)


def resolve_snapshot_dir() -> Path:
    return Path(DIRECTOR_SNAPSHOT_DIR)


__all__ = [
    "DATA_ROOT",
    "DEFAULT_SEED",
    "DIRECTOR_CONFIG_PATH",
    "STORYLET_LIBRARY_DIR",
    "STRICT_LIBRARY",
    "resolve_config_path",
    "resolve_library_dir",
    "resolve_snapshot_dir",
]
