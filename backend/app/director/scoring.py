"""Candidate scoring and deterministic selection.

score = base + heat_affinity + pressure + milestone - recency + queue_bonus + jitter

The base term is scaled by ``VarietyConfig.same_domain_penalty`` when the
candidate repeats the domain of the last fired storylet.

Every weight and curve comes from ``ScoringConfig``. Jitter is drawn from a
``random.Random`` seeded by (world seed, tick, storylet key), so it is the same
on every replay and independent of evaluation order.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any

from backend.app.core.error_handling import log_error_with_context
from backend.app.core.warnings import add_warning
from backend.app.director.settings import DirectorConfig, HeatConfig, ScoringConfig
from backend.app.director.tag_bitset import TagBitset, prefiltered_intersect
from backend.app.models.director import QueuedEvent, QueueSource, ScoreBreakdown, ScoredCandidate
from backend.app.models.storylet import Storylet

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    storylet: Storylet
    bits: TagBitset
    queued: QueuedEvent | None = None


@dataclass(frozen=True)
class ScoringContext:
    """Read-only view of director state needed to score one tick."""
    seed: int
    tick: int
    heat: float
    cooldowns: dict[int, int]
    # (linked tags, bitset, value) per pressure / milestone, in config order
    pressures: tuple[tuple[tuple[str, ...], TagBitset, float], ...]
    milestones: tuple[tuple[tuple[str, ...], TagBitset, float], ...]
    last_domain: str | None = None
    linked_bits: TagBitset | None = None  # union of all pressure and milestone bitsets


def heat_affinity(heat: float, heat_tier: int, heat_cfg: HeatConfig, scoring: ScoringConfig) -> float:
    """Peaks when the storylet's tier sits at the same relative height as current heat."""
    span = heat_cfg.max_heat - heat_cfg.min_heat
    heat_norm = (heat - heat_cfg.min_heat) / span
    tier_norm = min(heat_tier, scoring.max_heat_tier) / scoring.max_heat_tier
    return scoring.heat_weight * (1.0 - abs(heat_norm - tier_norm))


def recency_penalty(ticks_since: int | None, scoring: ScoringConfig) -> float:
    """Penalty for recently fired storylets; zero at or past the horizon."""
    if ticks_since is None or ticks_since >= scoring.recency_horizon_ticks:
        return 0.0
    freshness = 1.0 - max(0, ticks_since) / scoring.recency_horizon_ticks
    return scoring.recency_curve.evaluate(freshness)


def jitter(seed: int, tick: int, key: int, scale: float) -> float:
    if scale <= 0:
        return 0.0
    return scale * random.Random(f"{seed}:{tick}:{key}").random()


def score_candidate(candidate: Candidate, ctx: ScoringContext, config: DirectorConfig) -> ScoredCandidate:
    storylet = candidate.storylet
    scoring = config.scoring
    tags = storylet.all_tags
    base = storylet.base_weight * scoring.base_weight_multiplier
    if storylet.domain is not None and storylet.domain == ctx.last_domain:
        base *= config.variety.same_domain_penalty
    breakdown = ScoreBreakdown(
        base=base,
        heat_affinity=heat_affinity(ctx.heat, storylet.heat_tier, config.heat, scoring),
    )
    if ctx.linked_bits is None or candidate.bits.matches(ctx.linked_bits):
        for linked, bits, value in ctx.pressures:
            if prefiltered_intersect(candidate.bits, tags, bits, linked):
                breakdown.pressure += scoring.pressure_curve.evaluate(value)
        for linked, bits, proximity in ctx.milestones:
            if prefiltered_intersect(candidate.bits, tags, bits, linked):
                breakdown.milestone += scoring.milestone_curve.evaluate(proximity)

    last = ctx.cooldowns.get(storylet.key)
    breakdown.recency = recency_penalty(None if last is None else ctx.tick - last, scoring)
    if candidate.queued is not None:
        breakdown.queue_bonus = scoring.queue_priority_bonus
    breakdown.jitter = jitter(ctx.seed, ctx.tick, storylet.key, scoring.jitter_scale)

    queued = candidate.queued
    return ScoredCandidate(
        storylet_key=storylet.key,
        total=breakdown.total(),
        breakdown=breakdown,
        source=queued.source if queued is not None else None,
        queue_sequence=queued.sequence if queued is not None else None,
    )


def rank_candidates(
    candidates: list[Candidate],
    ctx: ScoringContext,
    config: DirectorConfig,
    diagnostics: Any = None,
) -> list[ScoredCandidate]:
    """Score every candidate, drop non-viable ones, and sort best first."""
    floor = config.scoring.min_viable_score
    scored: list[ScoredCandidate] = []
    for candidate in candidates:
        try:
            result = score_candidate(candidate, ctx, config)
        except Exception as e:
            log_error_with_context(
                e,
                node_name="scoring",
                tick=ctx.tick,
                agent_name="rank_candidates",
                extra_context={"storylet_key": candidate.storylet.key},
            )
            add_warning(diagnostics, f"scoring failed for storylet {candidate.storylet.key}: {e}")
            continue
        if floor is not None and result.total < floor:
            continue
        scored.append(result)
    scored.sort(key=lambda c: c.rank_key)
    return scored


def select(ranked: list[ScoredCandidate]) -> ScoredCandidate | None:
    return ranked[0] if ranked else None


def source_label(source: QueueSource | None) -> str:
    return source.value if source is not None else "fresh"
