"""64-bit tag bitsets used as a cheap prefilter for tag matching.

Each tag maps to one bit through a fixed-key blake2b digest, so masks are stable
across processes and platforms (``hash()`` is salted per process and is never
used here). A positive ``matches`` may be a collision; callers confirm with an
exact set comparison before trusting it.
"""
from __future__ import annotations

import hashlib
from typing import Iterable

_BITS = 64
_MASK = (1 << _BITS) - 1
_PERSON = b"narrdir-tags"


def tag_bit(tag: str) -> int:
    """Return the bit index (0..63) for a tag."""
    digest = hashlib.blake2b(tag.encode("utf-8"), digest_size=8, person=_PERSON).digest()
    return int.from_bytes(digest, "little") % _BITS


class TagBitset:
    """Immutable 64-bit mask over a set of tags."""

    __slots__ = ("_mask",)

    def __init__(self, mask: int = 0) -> None:
        object.__setattr__(self, "_mask", int(mask) & _MASK)

    def __setattr__(self, name, value):
        raise AttributeError("TagBitset is immutable")

    @classmethod
    def from_tags(cls, tags: Iterable[str] | None) -> "TagBitset":
        mask = 0
        for tag in tags or ():
            mask |= 1 << tag_bit(tag)
        return cls(mask)

    @property
    def mask(self) -> int:
        return self._mask

    def matches(self, other: "TagBitset") -> bool:
        """True when the masks share at least one bit (may be a collision)."""
        return bool(self & other)

    def contains_all(self, other: "TagBitset") -> bool:
        """True when every bit of ``other`` is set here (prefilter for a subset test)."""
        return (self & other) == other

    def __or__(self, other: "TagBitset") -> "TagBitset":
        return TagBitset(self._mask | other._mask)

    def __and__(self, other: "TagBitset") -> "TagBitset":
        return TagBitset(self._mask & other._mask)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagBitset):
            return NotImplemented
        return self._mask == other._mask

    def __hash__(self) -> int:
        return hash(self._mask)

    def __bool__(self) -> bool:
        return self._mask != 0

    def __repr__(self) -> str:
        return f"TagBitset(0x{self._mask:016x})"


def tags_intersect(a: Iterable[str], b: Iterable[str]) -> bool:
    """Exact check: do two tag collections share a tag."""
    return not set(a).isdisjoint(b)


def prefiltered_intersect(
    bits_a: TagBitset, tags_a: Iterable[str], bits_b: TagBitset, tags_b: Iterable[str]
) -> bool:
    """Bitset prefilter followed by the exact set check."""
    if not bits_a.matches(bits_b):
        return False
    return tags_intersect(tags_a, tags_b)
