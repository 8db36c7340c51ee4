"""Pytest setup: shared builders for director tests."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
DATA_ROOT = REPO_ROOT / "data"


def pytest_sessionstart(session) -> None:
    """Point data paths at the repo's sample data and keep library loading lenient."""
    os.environ.setdefault("DIRECTOR_CONFIG_PATH", str(DATA_ROOT / "director" / "config.yaml"))
    os.environ.setdefault("STORYLET_LIBRARY_DIR", str(DATA_ROOT / "storylets"))
    os.environ["DIRECTOR_STRICT_LIBRARY"] = "0"


@pytest.fixture
def make_storylet():
    """Factory for Storylet models with sensible defaults."""
    from backend.app.models.storylet import Storylet

    def _make(key: int, **overrides: Any) -> Storylet:
        data: dict[str, Any] = {"key": key, "id": f"storylet_{key}", "outcome_ref": f"outcomes/{key}"}
        data.update(overrides)
        return Storylet.model_validate(data)

    return _make


@pytest.fixture
def make_config():
    """Factory for DirectorConfig from plain dicts (jitter off unless asked for)."""
    from backend.app.director.settings import DirectorConfig

    def _make(**sections: Any):
        data: dict[str, Any] = {"scoring": {"jitter_scale": 0.0}}
        for name, value in sections.items():
            if isinstance(value, dict) and isinstance(data.get(name), dict):
                data[name] = {**data[name], **value}
            else:
                data[name] = value
        return DirectorConfig.from_mapping(data)

    return _make


@pytest.fixture
def adult_world():
    from backend.app.models.world import WorldSnapshot

    return WorldSnapshot(age=30, stats={"wealth": 50, "health": 80}, tags=["city"])
