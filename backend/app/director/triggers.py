"""Event proposals emitted by pressure and milestone trackers."""
from __future__ import annotations

from typing import Callable, Iterable, NamedTuple

from backend.app.models.director import QueueSource

# Resolves (explicit storylet key, linked tags) to a library key, or None.
TargetResolver = Callable[[int | None, Iterable[str]], int | None]


class TriggeredEvent(NamedTuple):
    origin_id: str
    source: QueueSource
    storylet_key: int | None
    ready_tick: int
    max_wait_ticks: int | None
    priority: int
    stage: int | None = None
