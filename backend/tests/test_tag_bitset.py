"""Tests for the 64-bit tag prefilter."""
from __future__ import annotations

import itertools
import os
import subprocess
import sys
from pathlib import Path

from backend.app.director.tag_bitset import (
    TagBitset,
    prefiltered_intersect,
    tag_bit,
    tags_intersect,
)

REPO_ROOT = Path(__file__).resolve().parents[2]
TAGS = ["romance", "career", "financial", "academic", "conflict", "home", "social", "stress", "work", "date"]


def _colliding_pair() -> tuple[str, str]:
    """Two distinct tags sharing a bit (pigeonhole guarantees one within 65 names)."""
    seen: dict[int, str] = {}
    for i in itertools.count():
        tag = f"tag{i}"
        bit = tag_bit(tag)
        if bit in seen:
            return seen[bit], tag
        seen[bit] = tag
    raise AssertionError("unreachable")


class TestTagBitset:
    def test_empty_tags_give_zero_mask(self):
        assert TagBitset.from_tags([]).mask == 0
        assert TagBitset.from_tags(None) == TagBitset()
        assert not TagBitset.from_tags([])

    def test_bits_are_in_range(self):
        for tag in TAGS:
            assert 0 <= tag_bit(tag) < 64

    def test_equality_depends_only_on_tag_set(self):
        a = TagBitset.from_tags(["romance", "career", "home"])
        b = TagBitset.from_tags(["home", "romance", "career", "romance"])
        assert a == b
        assert hash(a) == hash(b)

    def test_no_false_negatives(self):
        """Any two tag sets that share a tag must match."""
        for size in (1, 2, 3):
            for group in itertools.combinations(TAGS, size):
                for other in TAGS:
                    a = TagBitset.from_tags(group)
                    b = TagBitset.from_tags([other, "unrelated_tag"])
                    if other in group:
                        assert a.matches(b)

    def test_contains_all_is_sound_for_subsets(self):
        present = TagBitset.from_tags(TAGS)
        assert present.contains_all(TagBitset.from_tags(["romance", "work"]))

    def test_union_and_intersection(self):
        home = TagBitset.from_tags(["home"])
        work = TagBitset.from_tags(["work"])
        both = home | work
        assert both == TagBitset.from_tags(["home", "work"])
        assert (both & home) == home
        assert both.contains_all(work)
        assert not (TagBitset() & both)

    def test_collision_is_caught_by_exact_check(self):
        first, second = _colliding_pair()
        a_bits = TagBitset.from_tags([first])
        b_bits = TagBitset.from_tags([second])
        assert a_bits.matches(b_bits)
        assert not tags_intersect([first], [second])
        assert not prefiltered_intersect(a_bits, [first], b_bits, [second])

    def test_immutable(self):
        bits = TagBitset.from_tags(["romance"])
        try:
            bits._mask = 0
        except AttributeError:
            pass
        else:
            raise AssertionError("TagBitset should reject attribute assignment")


def test_masks_stable_across_processes_and_hash_seeds():
    """Masks must not depend on the per-process string hash salt."""
    expected = TagBitset.from_tags(TAGS).mask
    code = (
        "from backend.app.director.tag_bitset import TagBitset;"
        f"print(TagBitset.from_tags({TAGS!r}).mask)"
    )
    for hash_seed in ("1", "12345"):
        env = dict(os.environ, PYTHONHASHSEED=hash_seed)
        out = subprocess.run(
            [sys.executable, "-c", code],
            capture_output=True,
            text=True,
            cwd=str(REPO_ROOT),
            env=env,
            timeout=60,
        )
        assert out.returncode == 0, out.stderr
        assert int(out.stdout.strip()) == expected
