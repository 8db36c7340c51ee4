"""Tests for the storylet library and its YAML loader."""
from __future__ import annotations

from pathlib import Path

import pytest

from backend.app.director.errors import ConfigError, StoryletLookupError
from backend.app.world.storylet_library import StoryletLibrary
from backend.app.world.storylet_loader import clear_library_cache, load_storylet_library, parse_storylets

STORYLET_DIR = Path(__file__).resolve().parents[2] / "data" / "storylets"


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_library_cache()
    yield
    clear_library_cache()


class TestLoader:
    def test_repo_library_loads_in_key_order(self):
        library = load_storylet_library(STORYLET_DIR)
        keys = library.keys()
        assert keys == sorted(keys)
        assert {100, 200, 300, 400, 500} <= set(keys)

    def test_cache_returns_same_library(self):
        assert load_storylet_library(STORYLET_DIR) is load_storylet_library(STORYLET_DIR)

    def test_invalid_entries_skipped(self, tmp_path):
        (tmp_path / "mixed.yaml").write_text(
            "- {key: 1, id: ok}\n- {key: -5, id: bad_key}\n- {key: 2, id: extra, unknown_field: 1}\n",
            encoding="utf-8",
        )
        storylets, problems = parse_storylets(tmp_path)
        assert [s.key for s in storylets] == [1]
        assert len(problems) == 2

    def test_strict_mode_raises(self, tmp_path):
        (tmp_path / "bad.yaml").write_text("- {key: -1, id: bad}\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_storylet_library(tmp_path, strict=True)

    def test_missing_path(self, tmp_path):
        with pytest.raises(ConfigError):
            load_storylet_library(tmp_path / "missing")


class TestLibrary:
    def test_lookup(self, make_storylet):
        library = StoryletLibrary([make_storylet(3)])
        assert library.get(3).key == 3
        assert 3 in library
        with pytest.raises(StoryletLookupError):
            library.get(4)

    def test_later_definition_wins(self, make_storylet):
        library = StoryletLibrary([make_storylet(3, base_weight=1), make_storylet(3, base_weight=2)])
        assert len(library) == 1
        assert library.get(3).base_weight == 2

    def test_tag_matching_uses_domain(self, make_storylet):
        library = StoryletLibrary(
            [
                make_storylet(1, tags=["home"]),
                make_storylet(2, domain="romance"),
                make_storylet(3, tags=["romance"], base_weight=5),
            ]
        )
        assert library.keys_for_tags(["romance"]) == [2, 3]
        assert library.best_match_for_tags(["romance"]) == 3
        assert library.best_match_for_tags(["nothing"]) is None
        assert library.keys_for_tags([]) == []
