"""Storylet library loader with module-level cache.

Accepts a single YAML file or a directory of ``*.yaml``/``*.yml`` files. Each
file holds either a list of storylets or a mapping with a ``storylets`` list.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from backend.app.config import STORYLET_LIBRARY_DIR, STRICT_LIBRARY
from backend.app.director.errors import ConfigError
from backend.app.models.storylet import Storylet
from backend.app.world.storylet_library import StoryletLibrary

logger = logging.getLogger(__name__)

_LIBRARY_CACHE: dict[str, StoryletLibrary] = {}


def _read_yaml(path: Path) -> object:
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def _candidate_files(path: Path) -> Iterable[Path]:
    if path.is_file():
        yield path
        return
    files = list(path.glob("*.yaml")) + list(path.glob("*.yml"))
    yield from sorted(files, key=lambda p: p.name)


def _coerce_entries(data: object) -> list:
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        entries = data.get("storylets")
        if isinstance(entries, list):
            return entries
        return [data]
    return []


def parse_storylets(path: Path, strict: bool = False) -> tuple[list[Storylet], list[str]]:
    """Parse every storylet under ``path``. Returns (storylets, problems)."""
    storylets: list[Storylet] = []
    problems: list[str] = []
    for file in _candidate_files(path):
        try:
            data = _read_yaml(file)
        except yaml.YAMLError as e:
            problems.append(f"{file.name}: invalid YAML ({e})")
            continue
        for idx, entry in enumerate(_coerce_entries(data)):
            try:
                storylets.append(Storylet.model_validate(entry))
            except ValidationError as e:
                label = entry.get("id", idx) if isinstance(entry, dict) else idx
                for err in e.errors():
                    loc = ".".join(str(part) for part in err.get("loc", ()))
                    problems.append(f"{file.name}[{label}] {loc}: {err.get('msg', 'invalid')}")
    if problems:
        if strict:
            raise ConfigError(f"Invalid storylets under {path}", problems)
        for problem in problems:
            logger.warning("Skipping invalid storylet: %s", problem)
    return storylets, problems


def load_storylet_library(path: str | Path | None = None, strict: bool | None = None) -> StoryletLibrary:
    """Load (and cache) the storylet library at ``path``."""
    p = Path(path) if path is not None else Path(STORYLET_LIBRARY_DIR)
    cache_key = str(p.resolve())
    cached = _LIBRARY_CACHE.get(cache_key)
    if cached is not None:
        return cached
    if not p.exists():
        raise ConfigError("Storylet library not found", [str(p)])
    storylets, _problems = parse_storylets(p, strict=STRICT_LIBRARY if strict is None else strict)
    library = StoryletLibrary(storylets)
    logger.info("Loaded %d storylets from %s", len(library), p)
    _LIBRARY_CACHE[cache_key] = library
    return library


def clear_library_cache() -> None:
    _LIBRARY_CACHE.clear()
