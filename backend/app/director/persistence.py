"""Snapshot persistence for DirectorState (JSON via pydantic).

All lists are written in a fixed order (cooldowns and fired history by key,
pressures and milestones in config order, queue in queue order) so two equal
states always serialize to identical bytes.
"""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from backend.app.constants import SNAPSHOT_FORMAT_VERSION
from backend.app.core.warnings import add_warning
from backend.app.director.errors import SnapshotError
from backend.app.director.settings import DirectorConfig
from backend.app.director.state import DirectorState, FiredHistory
from backend.app.models.director import QueuedEvent

logger = logging.getLogger(__name__)


class DirectorSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    format_version: int = SNAPSHOT_FORMAT_VERSION
    seed: int = 0
    tick: int
    heat: float
    cooldowns: List[Tuple[int, int]] = Field(default_factory=list)
    pressures: List[Tuple[str, float, int]] = Field(default_factory=list)
    resolved_pressures: List[str] = Field(default_factory=list)
    milestones: List[Tuple[str, int, float]] = Field(default_factory=list)
    queue: List[Any] = Field(default_factory=list)  # validated entry by entry on restore
    next_sequence: int = 0
    last_fired_tick: int | None = None
    fired_count: int = 0
    domain_last_fired: List[Tuple[str, int]] = Field(default_factory=list)
    tag_last_fired: List[Tuple[str, int]] = Field(default_factory=list)
    last_domain: str | None = None
    domain_streak: int = 0


def to_snapshot(state: DirectorState) -> DirectorSnapshot:
    pressures = state.pressures
    milestones = state.milestones
    return DirectorSnapshot(
        seed=state.seed,
        tick=state.tick,
        heat=state.heat,
        cooldowns=sorted(state.cooldowns.items()),
        pressures=[
            (d.id, pressures.runtime[d.id].value, pressures.runtime[d.id].cooldown_remaining)
            for d in pressures.definitions
        ],
        resolved_pressures=[d.id for d in pressures.definitions if pressures.runtime[d.id].resolved],
        milestones=[
            (mid, milestones.stage(mid), milestones.runtime[mid].progress)
            for mid in milestones.order
        ],
        queue=[event.model_dump(mode="json") for event in state.queue.peek_all()],
        next_sequence=state.queue.next_sequence,
        last_fired_tick=state.last_fired_tick,
        fired_count=state.fired_count,
        domain_last_fired=sorted(state.history.domains.items()),
        tag_last_fired=sorted(state.history.tags.items()),
        last_domain=state.history.last_domain,
        domain_streak=state.history.domain_streak,
    )


def _check_version(version: int) -> None:
    if version != SNAPSHOT_FORMAT_VERSION:
        raise SnapshotError(
            f"unsupported snapshot format_version {version} (expected {SNAPSHOT_FORMAT_VERSION})"
        )


def from_snapshot(snapshot: DirectorSnapshot, config: DirectorConfig, diagnostics: Any = None) -> DirectorState:
    """Rebuild a DirectorState against ``config``.

    Pressures or milestones that no longer exist in the config are dropped with
    a warning; new ones start from their initial values.
    """
    _check_version(snapshot.format_version)
    state = DirectorState.new(config, seed=snapshot.seed)
    state.tick = snapshot.tick
    state.heat = snapshot.heat
    state.cooldowns = {key: tick for key, tick in snapshot.cooldowns}
    state.last_fired_tick = snapshot.last_fired_tick
    state.fired_count = snapshot.fired_count
    state.history = FiredHistory(
        domains=dict(snapshot.domain_last_fired),
        tags=dict(snapshot.tag_last_fired),
        last_domain=snapshot.last_domain,
        domain_streak=max(0, snapshot.domain_streak),
    )

    for pid, value, cooldown_remaining in snapshot.pressures:
        rt = state.pressures.runtime.get(pid)
        if rt is None:
            add_warning(diagnostics, f"snapshot pressure '{pid}' not in config; dropped")
            continue
        rt.value = value if math.isfinite(value) else 0.0
        rt.cooldown_remaining = max(0, cooldown_remaining)
    for pid in snapshot.resolved_pressures:
        if pid in state.pressures:
            state.pressures.runtime[pid].resolved = True

    for mid, stage, progress in snapshot.milestones:
        rt = state.milestones.runtime.get(mid)
        if rt is None:
            add_warning(diagnostics, f"snapshot milestone '{mid}' not in config; dropped")
            continue
        final = state.milestones.definitions[mid].final_stage
        rt.stage = max(0, min(final, stage))
        rt.progress = max(0.0, progress)

    events: list[QueuedEvent] = []
    for idx, raw in enumerate(snapshot.queue):
        try:
            event = QueuedEvent.model_validate(raw)
        except ValidationError as e:
            add_warning(diagnostics, f"snapshot queue entry {idx} malformed; skipped ({e.error_count()} errors)")
            continue
        if event.sequence < 0:
            add_warning(diagnostics, f"snapshot queue entry {idx} has no sequence; skipped")
            continue
        events.append(event)
    state.queue.restore(events)
    state.queue.next_sequence = max(state.queue.next_sequence, snapshot.next_sequence)
    return state


def dumps_state(state: DirectorState) -> str:
    return to_snapshot(state).model_dump_json(indent=2)


def loads_state(raw: str, config: DirectorConfig, diagnostics: Any = None) -> DirectorState:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"snapshot is not valid JSON: {e}") from e
    if isinstance(data, dict) and "format_version" in data:
        # Reject other formats before strict validation reports confusing field errors.
        try:
            version = int(data["format_version"])
        except (TypeError, ValueError) as e:
            raise SnapshotError(f"snapshot format_version is not an integer: {e}") from e
        _check_version(version)
    try:
        snapshot = DirectorSnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotError(f"snapshot failed validation: {e}") from e
    return from_snapshot(snapshot, config, diagnostics)


def save_snapshot(state: DirectorState, path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dumps_state(state), encoding="utf-8")
    logger.info("Saved director snapshot to %s (tick=%d)", p, state.tick)
    return p


def load_snapshot(path: str | Path, config: DirectorConfig, diagnostics: Any = None) -> DirectorState:
    p = Path(path)
    if not p.is_file():
        raise SnapshotError(f"snapshot not found: {p}")
    return loads_state(p.read_text(encoding="utf-8"), config, diagnostics)
