"""Shared configuration constants used by the backend, API and CLI."""
from __future__ import annotations

import os
from pathlib import Path


def _env_flag(name: str, default: bool = False) -> bool:
    """Read boolean env flag."""
    val = os.environ.get(name, "").strip().lower()
    if not val:
        return default
    return val in ("1", "true", "yes", "on")


# Project root: resolve relative to this file's location
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Data directories (shared) - use absolute paths to avoid CWD dependency
DATA_ROOT = Path(os.environ.get("DIRECTOR_DATA_ROOT", str(_PROJECT_ROOT / "data")))
DIRECTOR_CONFIG_PATH = os.environ.get("DIRECTOR_CONFIG_PATH", str(DATA_ROOT / "director" / "config.yaml"))
STORYLET_LIBRARY_DIR = os.environ.get("STORYLET_LIBRARY_DIR", str(DATA_ROOT / "storylets"))
DIRECTOR_SNAPSHOT_DIR = os.environ.get("DIRECTOR_SNAPSHOT_DIR", str(DATA_ROOT / "snapshots"))

# Strict library mode: fail on invalid storylet entries instead of skipping them
DIRECTOR_STRICT_LIBRARY = _env_flag("DIRECTOR_STRICT_LIBRARY", default=False)
