"""In-memory storylet library with a precomputed tag bitset per storylet."""
from __future__ import annotations

import logging
from typing import Iterable, Iterator

from backend.app.director.errors import StoryletLookupError
from backend.app.director.tag_bitset import TagBitset, prefiltered_intersect
from backend.app.models.storylet import Storylet

logger = logging.getLogger(__name__)


class StoryletLibrary:
    """Storylets indexed by numeric key; iteration is always in ascending key order."""

    def __init__(self, storylets: Iterable[Storylet] = ()) -> None:
        self._by_key: dict[int, Storylet] = {}
        self._bits: dict[int, TagBitset] = {}
        self._sorted_keys: list[int] | None = None
        for storylet in storylets:
            self.add(storylet)

    def add(self, storylet: Storylet) -> None:
        if storylet.key in self._by_key:
            logger.warning(
                "Storylet key %d redefined (%s replaces %s)",
                storylet.key,
                storylet.id,
                self._by_key[storylet.key].id,
            )
        self._by_key[storylet.key] = storylet
        self._bits[storylet.key] = TagBitset.from_tags(storylet.all_tags)
        self._sorted_keys = None

    def get(self, key: int) -> Storylet:
        try:
            return self._by_key[key]
        except KeyError:
            raise StoryletLookupError(key) from None

    def find(self, key: int) -> Storylet | None:
        return self._by_key.get(key)

    def bits(self, key: int) -> TagBitset:
        return self._bits[key]

    def keys(self) -> list[int]:
        if self._sorted_keys is None:
            self._sorted_keys = sorted(self._by_key)
        return list(self._sorted_keys)

    def __iter__(self) -> Iterator[Storylet]:
        for key in self.keys():
            yield self._by_key[key]

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)

    def keys_for_tags(self, tags: Iterable[str]) -> list[int]:
        """Keys of storylets sharing at least one tag with ``tags`` (ascending)."""
        wanted = list(tags)
        wanted_bits = TagBitset.from_tags(wanted)
        if not wanted_bits:
            return []
        return [
            s.key
            for s in self
            if prefiltered_intersect(self._bits[s.key], s.all_tags, wanted_bits, wanted)
        ]

    def best_match_for_tags(self, tags: Iterable[str]) -> int | None:
        """Highest base weight among tag matches, lowest key on ties."""
        best: Storylet | None = None
        for key in self.keys_for_tags(tags):
            storylet = self._by_key[key]
            if best is None or storylet.base_weight > best.base_weight:
                best = storylet
        return best.key if best is not None else None
