"""Staged long-term arcs.

Progress only moves when the host reports it (``advance`` or
``advance_for_storylet``); ticks never advance a milestone. Every stage
threshold crossed by an update proposes one queued event, in ascending stage
order, so a large jump that crosses two thresholds yields two events. Once
the final stage is reached the milestone is complete and stays silent.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

from backend.app.constants import THRESHOLD_EPSILON
from backend.app.director.settings import MilestoneDefinition
from backend.app.director.tag_bitset import TagBitset, prefiltered_intersect
from backend.app.director.triggers import TargetResolver, TriggeredEvent
from backend.app.models.director import QueueSource

logger = logging.getLogger(__name__)


@dataclass
class MilestoneRuntime:
    progress: float = 0.0
    stage: int = 0  # thresholds crossed so far


class MilestoneTracker:
    def __init__(self, definitions: list[MilestoneDefinition]) -> None:
        self.definitions = {d.id: d for d in definitions}
        self.order = [d.id for d in definitions]
        self.runtime: dict[str, MilestoneRuntime] = {d.id: MilestoneRuntime() for d in definitions}
        self._advancing_bits = {d.id: TagBitset.from_tags(d.advancing_tags) for d in definitions}

    def __contains__(self, milestone_id: object) -> bool:
        return milestone_id in self.runtime

    def stage(self, milestone_id: str) -> int:
        return self.runtime[milestone_id].stage

    def stage_proximity(self, milestone_id: str) -> float:
        """How close progress is to the next threshold, in [0, 1]; 0 once complete."""
        d = self.definitions[milestone_id]
        rt = self.runtime[milestone_id]
        if rt.stage >= d.final_stage:
            return 0.0
        return max(0.0, min(1.0, rt.progress / d.stage_thresholds[rt.stage]))

    def advance(
        self,
        milestone_id: str,
        amount: float,
        tick: int,
        resolve_target: TargetResolver,
    ) -> list[TriggeredEvent]:
        """Add progress and return one event per newly crossed stage."""
        if not math.isfinite(amount) or amount < 0:
            raise ValueError(f"milestone progress amount must be finite and >= 0, got {amount!r}")
        if milestone_id not in self.runtime:
            raise KeyError(f"unknown milestone '{milestone_id}'")
        d = self.definitions[milestone_id]
        rt = self.runtime[milestone_id]
        if rt.stage >= d.final_stage:
            return []

        rt.progress += amount
        events: list[TriggeredEvent] = []
        while rt.stage < d.final_stage and rt.progress + THRESHOLD_EPSILON >= d.stage_thresholds[rt.stage]:
            rt.stage += 1
            key = resolve_target(d.stage_storylets.get(rt.stage), d.linked_tags)
            logger.info(
                "Milestone %s reached stage %d/%d at tick %d (progress=%.2f, target=%s)",
                d.id,
                rt.stage,
                d.final_stage,
                tick,
                rt.progress,
                key,
            )
            events.append(
                TriggeredEvent(
                    origin_id=d.id,
                    source=QueueSource.MILESTONE_TRIGGERED,
                    storylet_key=key,
                    ready_tick=tick + d.ready_delay_ticks,
                    max_wait_ticks=d.max_wait_ticks,
                    priority=d.priority,
                    stage=rt.stage,
                )
            )
        return events

    def advance_for_storylet(
        self,
        tags: Iterable[str],
        tick: int,
        resolve_target: TargetResolver,
    ) -> list[TriggeredEvent]:
        """Advance every milestone whose advancing tags intersect ``tags``."""
        tag_list = list(tags)
        bits = TagBitset.from_tags(tag_list)
        events: list[TriggeredEvent] = []
        for milestone_id in self.order:
            d = self.definitions[milestone_id]
            if not prefiltered_intersect(self._advancing_bits[milestone_id], d.advancing_tags, bits, tag_list):
                continue
            events.extend(self.advance(milestone_id, d.progress_per_storylet, tick, resolve_target))
        return events
