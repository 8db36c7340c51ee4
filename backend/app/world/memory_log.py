"""In-memory memory surface: tag lookups over remembered facts per actor pair."""
from __future__ import annotations

from typing import Iterable, Protocol

from backend.app.models.world import MemoryFact


class MemoryQuery(Protocol):
    def tags_since(self, actor: str, target: str | None, since_tick: int | None) -> set[str]:
        """Tags of facts for the actor (and target, when given) at or after ``since_tick``."""
        ...


class MemoryLog:
    """Append-only list of ``MemoryFact`` implementing ``MemoryQuery``."""

    def __init__(self, facts: Iterable[MemoryFact] = ()) -> None:
        self._facts: list[MemoryFact] = list(facts)

    def record(self, tick: int, tags: Iterable[str], actor: str = "player", target: str | None = None) -> MemoryFact:
        fact = MemoryFact(tick=tick, actor=actor, target=target, tags=list(tags))
        self._facts.append(fact)
        return fact

    def __len__(self) -> int:
        return len(self._facts)

    def tags_since(self, actor: str, target: str | None, since_tick: int | None) -> set[str]:
        tags: set[str] = set()
        for fact in self._facts:
            if fact.actor != actor:
                continue
            if target is not None and fact.target != target:
                continue
            if since_tick is not None and fact.tick < since_tick:
                continue
            tags.update(fact.tags)
        return tags
