"""Deferred-event queue ordered by (ready_tick, insertion sequence).

The backing list is kept sorted with ``bisect`` so drains never depend on
container iteration order. The sequence counter is part of persisted state.
"""
from __future__ import annotations

import bisect
import logging
from typing import Iterable, NamedTuple

from backend.app.constants import QUEUE_MAX_SIZE_DEFAULT
from backend.app.models.director import QueuedEvent, QueueSource

logger = logging.getLogger(__name__)


class DrainResult(NamedTuple):
    ready: list[QueuedEvent]
    expired: list[QueuedEvent]


class EventQueue:
    def __init__(self, max_size: int = QUEUE_MAX_SIZE_DEFAULT, next_sequence: int = 0) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self.max_size = max_size
        self.next_sequence = next_sequence
        self._entries: list[QueuedEvent] = []

    def __len__(self) -> int:
        return len(self._entries)

    def peek_all(self) -> list[QueuedEvent]:
        return list(self._entries)

    def enqueue(
        self,
        storylet_key: int,
        source: QueueSource,
        ready_tick: int,
        max_wait_ticks: int | None = None,
        priority: int = 0,
        origin_id: str | None = None,
        stage: int | None = None,
        forced: bool = False,
    ) -> tuple[QueuedEvent, list[QueuedEvent]]:
        """Insert a new entry. Returns (entry, evicted entries)."""
        event = QueuedEvent(
            storylet_key=storylet_key,
            source=source,
            ready_tick=ready_tick,
            sequence=self.next_sequence,
            max_wait_ticks=max_wait_ticks,
            priority=priority,
            origin_id=origin_id,
            stage=stage,
            forced=forced,
        )
        self.next_sequence += 1
        self._insert(event)
        return event, self._evict_overflow()

    def requeue(self, event: QueuedEvent) -> list[QueuedEvent]:
        """Re-insert an entry keeping its original sequence."""
        if event.sequence < 0:
            raise ValueError("requeue needs an entry with an assigned sequence")
        self._insert(event)
        self.next_sequence = max(self.next_sequence, event.sequence + 1)
        return self._evict_overflow()

    def restore(self, events: Iterable[QueuedEvent]) -> None:
        """Load persisted entries without triggering eviction."""
        for event in events:
            self._insert(event)
            self.next_sequence = max(self.next_sequence, event.sequence + 1)

    def drain_ready(self, tick: int) -> DrainResult:
        """Remove all entries with ``ready_tick <= tick``; split off the expired ones."""
        cut = bisect.bisect_right(self._entries, tick, key=lambda e: e.ready_tick)
        due, self._entries = self._entries[:cut], self._entries[cut:]
        ready: list[QueuedEvent] = []
        expired: list[QueuedEvent] = []
        for event in due:
            if event.is_expired(tick):
                expired.append(event)
            else:
                ready.append(event)
        if expired:
            logger.info(
                "Queue expired %d entr%s at tick %d: %s",
                len(expired),
                "y" if len(expired) == 1 else "ies",
                tick,
                [e.storylet_key for e in expired],
            )
        return DrainResult(ready, expired)

    def remove(self, sequence: int) -> QueuedEvent | None:
        for idx, event in enumerate(self._entries):
            if event.sequence == sequence:
                return self._entries.pop(idx)
        return None

    def _insert(self, event: QueuedEvent) -> None:
        bisect.insort(self._entries, event, key=lambda e: e.order_key)

    def _evict_overflow(self) -> list[QueuedEvent]:
        # Lowest priority goes first; among equals the latest in queue order.
        evicted: list[QueuedEvent] = []
        while len(self._entries) > self.max_size:
            victim_idx = min(
                range(len(self._entries)),
                key=lambda i: (self._entries[i].priority, -i),
            )
            victim = self._entries.pop(victim_idx)
            evicted.append(victim)
            logger.warning(
                "Queue full (max_size=%d): evicted storylet %d (source=%s, ready_tick=%d)",
                self.max_size,
                victim.storylet_key,
                victim.source.value,
                victim.ready_tick,
            )
        return evicted
