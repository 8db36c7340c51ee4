"""NarrativeDirector: one deterministic tick of storylet selection.

Per tick: advance the clock and heat, tick pressures (queueing any that fire),
drain the ready queue, run the eligibility pipeline, merge queued and fresh
candidates, score, select, and record the firing. A ready forced entry skips
scoring and fires first; otherwise nothing fires inside the
``min_ticks_between_events`` window. ``step`` never raises; every anomaly ends
up in ``StepResult.warnings`` and the tick still advances.
"""
from __future__ import annotations

import logging
from typing import Iterable

from backend.app.constants import RANKED_CANDIDATES_REPORTED
from backend.app.core.error_handling import log_error_with_context
from backend.app.core.warnings import add_warning
from backend.app.director.eligibility import EligibilityContext, collect_eligible, is_on_cooldown
from backend.app.director.errors import StoryletLookupError
from backend.app.director.scoring import (
    Candidate,
    ScoringContext,
    rank_candidates,
    score_candidate,
    select,
    source_label,
)
from backend.app.director.settings import DirectorConfig
from backend.app.director.state import DirectorState
from backend.app.director.tag_bitset import TagBitset
from backend.app.director.triggers import TriggeredEvent
from backend.app.models.director import FiredStorylet, QueuedEvent, QueueSource, ScoredCandidate, StepResult
from backend.app.models.storylet import Storylet
from backend.app.models.world import WorldSnapshot
from backend.app.world.memory_log import MemoryQuery
from backend.app.world.storylet_library import StoryletLibrary

logger = logging.getLogger(__name__)


class NarrativeDirector:
    def __init__(self, config: DirectorConfig, library: StoryletLibrary) -> None:
        self.config = config
        self.library = library
        self._pressure_bits = {p.id: TagBitset.from_tags(p.linked_tags) for p in config.pressures}
        self._milestone_bits = {m.id: TagBitset.from_tags(m.linked_tags) for m in config.milestones}
        # Union of every linked tag set; a candidate missing all of it skips the per-link checks.
        self._linked_bits = TagBitset()
        for bits in [*self._pressure_bits.values(), *self._milestone_bits.values()]:
            self._linked_bits = self._linked_bits | bits

    def new_state(self, seed: int = 0) -> DirectorState:
        return DirectorState.new(self.config, seed=seed)

    # ------------------------------------------------------------------
    # Host-driven mutations between ticks
    # ------------------------------------------------------------------

    def resolve_target(self, explicit_key: int | None, tags: Iterable[str]) -> int | None:
        """Explicit key when it exists in the library, else the best tag match."""
        if explicit_key is not None:
            if explicit_key in self.library:
                return explicit_key
            logger.warning("Configured target storylet %d not in library; falling back to tags", explicit_key)
        return self.library.best_match_for_tags(tags)

    def schedule(
        self,
        state: DirectorState,
        storylet_key: int,
        delay_ticks: int = 0,
        source: QueueSource = QueueSource.SCHEDULED,
        max_wait_ticks: int | None = None,
        priority: int = 0,
        forced: bool = False,
    ) -> tuple[QueuedEvent, list[QueuedEvent]]:
        """Queue a storylet explicitly. Returns (entry, evicted entries).

        A ``forced`` entry fires as soon as it is ready, ahead of scoring and
        past every cooldown and pacing gate.
        """
        if storylet_key not in self.library:
            raise StoryletLookupError(storylet_key)
        if delay_ticks < 0:
            raise ValueError("delay_ticks must be >= 0")
        if source not in (QueueSource.SCHEDULED, QueueSource.PLAYER_TRIGGERED):
            raise ValueError(f"cannot schedule with source {source.value!r}")
        return state.queue.enqueue(
            storylet_key,
            source,
            ready_tick=state.tick + delay_ticks,
            max_wait_ticks=max_wait_ticks,
            priority=priority,
            forced=forced,
        )

    def resolve_pressure(self, state: DirectorState, pressure_id: str) -> None:
        state.pressures.resolve(pressure_id)

    def advance_milestone(self, state: DirectorState, milestone_id: str, amount: float) -> list[QueuedEvent]:
        """Add milestone progress; crossed stages are queued immediately."""
        triggered = state.milestones.advance(milestone_id, amount, state.tick, self.resolve_target)
        return self._enqueue_triggered(state, triggered, diagnostics=None)

    def apply_storylet_outcome(self, state: DirectorState, storylet_key: int) -> list[QueuedEvent]:
        """Advance milestones whose advancing tags match an applied storylet."""
        storylet = self.library.get(storylet_key)
        triggered = state.milestones.advance_for_storylet(storylet.all_tags, state.tick, self.resolve_target)
        return self._enqueue_triggered(state, triggered, diagnostics=None)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def step(
        self,
        state: DirectorState,
        world: WorldSnapshot,
        memory: MemoryQuery | None = None,
    ) -> StepResult:
        state.tick += 1
        result = StepResult(tick=state.tick, heat=state.heat)
        try:
            self._advance_clocks(state, result)
        except Exception as e:
            log_error_with_context(e, node_name="pressure", tick=state.tick, agent_name="NarrativeDirector.step")
            add_warning(result, f"tick state update failed: {e}", log=False)
        try:
            self._select_and_fire(state, world, memory, result)
        except Exception as e:
            log_error_with_context(e, node_name="selection", tick=state.tick, agent_name="NarrativeDirector.step")
            add_warning(result, f"selection failed, no storylet fired: {e}", log=False)
            result.fired = None
        result.heat = state.heat
        if result.fired is not None:
            logger.info(
                "Tick %d fired storylet %d (%s, score=%.3f, heat=%.1f)",
                result.tick,
                result.fired.storylet_key,
                source_label(result.fired.source),
                result.fired.score,
                result.heat,
            )
        else:
            logger.debug("Tick %d: no storylet fired (heat=%.1f)", result.tick, result.heat)
        return result

    def _advance_clocks(self, state: DirectorState, result: StepResult) -> None:
        heat_cfg = self.config.heat
        violation = state.check_heat(heat_cfg)
        if violation is not None:
            add_warning(result, f"InvariantViolation: {violation}; clamped")
        for violation in state.pressures.check_bounds():
            add_warning(result, f"InvariantViolation: {violation}; clamped")
        state.decay_heat(heat_cfg)
        triggered = state.pressures.advance(state.tick, self.resolve_target)
        self._enqueue_triggered(state, triggered, diagnostics=result)

    def _enqueue_triggered(
        self,
        state: DirectorState,
        triggered: list[TriggeredEvent],
        diagnostics: StepResult | None,
    ) -> list[QueuedEvent]:
        queued: list[QueuedEvent] = []
        for trig in triggered:
            if trig.storylet_key is None:
                add_warning(
                    diagnostics,
                    f"{trig.source.value} event from '{trig.origin_id}' has no matching storylet; not queued",
                )
                continue
            event, evicted = state.queue.enqueue(
                trig.storylet_key,
                trig.source,
                ready_tick=trig.ready_tick,
                max_wait_ticks=trig.max_wait_ticks,
                priority=trig.priority,
                origin_id=trig.origin_id,
                stage=trig.stage,
            )
            queued.append(event)
            self._report_evicted(evicted, diagnostics)
        return queued

    @staticmethod
    def _report_evicted(evicted: list[QueuedEvent], diagnostics: StepResult | None) -> None:
        for event in evicted:
            if diagnostics is not None:
                diagnostics.evicted.append(event.storylet_key)
            add_warning(
                diagnostics,
                f"queue overflow evicted storylet {event.storylet_key} (sequence {event.sequence})",
                log=False,
            )

    def _scoring_context(self, state: DirectorState) -> ScoringContext:
        pressures = tuple(
            (tuple(d.linked_tags), self._pressure_bits[d.id], state.pressures.value(d.id))
            for d in self.config.pressures
        )
        milestones = tuple(
            (tuple(d.linked_tags), self._milestone_bits[d.id], state.milestones.stage_proximity(d.id))
            for d in self.config.milestones
        )
        return ScoringContext(
            seed=state.seed,
            tick=state.tick,
            heat=state.heat,
            cooldowns=dict(state.cooldowns),
            pressures=pressures,
            milestones=milestones,
            last_domain=state.history.last_domain,
            linked_bits=self._linked_bits,
        )

    def _select_and_fire(
        self,
        state: DirectorState,
        world: WorldSnapshot,
        memory: MemoryQuery | None,
        result: StepResult,
    ) -> None:
        tick = state.tick
        drained = state.queue.drain_ready(tick)
        result.expired = [event.storylet_key for event in drained.expired]

        forced: list[Candidate] = []
        queued_candidates: list[Candidate] = []
        held: list[QueuedEvent] = []
        for event in drained.ready:
            storylet = self.library.find(event.storylet_key)
            if storylet is None:
                add_warning(result, f"{StoryletLookupError(event.storylet_key)}; queue entry dropped")
                continue
            candidate = Candidate(storylet, self.library.bits(storylet.key), queued=event)
            if event.forced:
                forced.append(candidate)
            elif is_on_cooldown(storylet, state.cooldowns, tick):
                held.append(event)
            else:
                queued_candidates.append(candidate)

        fired_event: QueuedEvent | None = None
        try:
            stats = result.stats
            stats.queue_ready_count = len(drained.ready)
            if forced:
                # Highest priority first, then queue order.
                chosen_forced = min(forced, key=lambda c: (-c.queued.priority, c.queued.order_key))
                fired_event = chosen_forced.queued
                scored = score_candidate(chosen_forced, self._scoring_context(state), self.config)
                self._fire(state, chosen_forced.storylet, scored, result, forced=True)
                return
            if self._pacing_gated(state):
                stats.pacing_gated = True
                logger.debug(
                    "Tick %d inside min_ticks_between_events=%d; holding %d queued entr%s",
                    tick,
                    self.config.min_ticks_between_events,
                    len(queued_candidates),
                    "y" if len(queued_candidates) == 1 else "ies",
                )
                return

            ctx = EligibilityContext(
                world=world,
                memory=memory,
                tick=tick,
                cooldowns=state.cooldowns,
                history=state.history,
                variety=self.config.variety,
            )
            report = collect_eligible(self.library, ctx, diagnostics=result)
            fresh = [
                Candidate(self.library.get(key), self.library.bits(key))
                for key in report.eligible
            ]
            merged = queued_candidates + fresh
            ranked = rank_candidates(merged, self._scoring_context(state), self.config, diagnostics=result)

            stats.fresh_candidate_count = len(fresh)
            stats.merged_candidate_count = len(merged)
            stats.viable_candidate_count = len(ranked)
            stats.rejected_by_stage = dict(sorted(report.rejected.items()))
            result.ranked = ranked[:RANKED_CANDIDATES_REPORTED]

            chosen = select(ranked)
            if chosen is None:
                return
            if chosen.queue_sequence is not None:
                fired_event = next(c.queued for c in queued_candidates if c.queued.sequence == chosen.queue_sequence)
            self._fire(state, self.library.get(chosen.storylet_key), chosen, result)
        finally:
            leftovers = held + [
                c.queued for c in forced + queued_candidates if c.queued is not fired_event
            ]
            for event in leftovers:
                self._report_evicted(state.queue.requeue(event), result)

    def _pacing_gated(self, state: DirectorState) -> bool:
        gap = self.config.min_ticks_between_events
        last = state.last_fired_tick
        return gap > 0 and last is not None and state.tick - last < gap

    def _fire(
        self,
        state: DirectorState,
        storylet: Storylet,
        scored: ScoredCandidate,
        result: StepResult,
        forced: bool = False,
    ) -> None:
        state.apply_fire(storylet, self.config.heat)
        result.fired = FiredStorylet(
            storylet_key=storylet.key,
            outcome_ref=storylet.outcome_ref,
            score=scored.total,
            source=scored.source,
            is_from_queue=scored.is_from_queue,
            forced=forced,
        )
