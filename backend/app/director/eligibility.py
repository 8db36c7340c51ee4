"""Eligibility pipeline: decides which storylets may fire this tick.

Stages run cheapest first (life stage, cooldown, variety, stats, world tags) and the
costlier relationship and memory lookups last. The stage order only affects
speed and the rejection counts, never the eligible set.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from backend.app.constants import relationship_band
from backend.app.core.error_handling import log_error_with_context
from backend.app.core.warnings import add_warning
from backend.app.director.settings import VarietyConfig
from backend.app.director.state import FiredHistory
from backend.app.director.tag_bitset import TagBitset
from backend.app.models.storylet import Prerequisites, Storylet, TagCondition
from backend.app.models.world import WorldSnapshot
from backend.app.world.memory_log import MemoryQuery
from backend.app.world.storylet_library import StoryletLibrary

logger = logging.getLogger(__name__)


@dataclass
class EligibilityContext:
    world: WorldSnapshot
    memory: MemoryQuery | None
    tick: int
    cooldowns: dict[int, int]
    history: FiredHistory | None = None
    variety: VarietyConfig | None = None
    world_tags: set[str] = field(init=False)
    world_bits: TagBitset = field(init=False)

    def __post_init__(self) -> None:
        self.world_tags = set(self.world.tags)
        self.world_bits = TagBitset.from_tags(self.world_tags)


@dataclass
class EligibilityReport:
    eligible: list[int] = field(default_factory=list)
    rejected: dict[str, int] = field(default_factory=dict)

    def reject(self, stage: str) -> None:
        self.rejected[stage] = self.rejected.get(stage, 0) + 1


def is_on_cooldown(storylet: Storylet, cooldowns: dict[int, int], tick: int) -> bool:
    last = cooldowns.get(storylet.key)
    if last is None:
        return False
    return tick - last < storylet.min_cooldown_ticks


def _check_life_stage(pre: Prerequisites, ctx: EligibilityContext) -> bool:
    if pre.life_stages and ctx.world.effective_life_stage not in pre.life_stages:
        return False
    if pre.min_age is not None and ctx.world.age < pre.min_age:
        return False
    if pre.max_age is not None and ctx.world.age > pre.max_age:
        return False
    return True


def _check_stats(pre: Prerequisites, ctx: EligibilityContext) -> bool:
    for cond in pre.stats:
        value = ctx.world.stats.get(cond.stat)
        if value is None:
            return False
        if cond.min is not None and value < cond.min:
            return False
        if cond.max is not None and value > cond.max:
            return False
    return True


def _tags_satisfied(cond: TagCondition, present: set[str], present_bits: TagBitset) -> bool:
    if cond.required:
        required_bits = TagBitset.from_tags(cond.required)
        # A missing bit proves a missing tag; a full match still needs the exact check.
        if not present_bits.contains_all(required_bits):
            return False
        if not set(cond.required) <= present:
            return False
    if cond.forbidden:
        forbidden_bits = TagBitset.from_tags(cond.forbidden)
        if present_bits.matches(forbidden_bits) and not present.isdisjoint(cond.forbidden):
            return False
    return True


def _check_world_tags(pre: Prerequisites, ctx: EligibilityContext) -> bool:
    if pre.world_tags.is_empty():
        return True
    return _tags_satisfied(pre.world_tags, ctx.world_tags, ctx.world_bits)


def _check_relationships(pre: Prerequisites, ctx: EligibilityContext) -> bool:
    for cond in pre.relationships:
        rel = ctx.world.relationship(cond.actor, cond.target)
        if rel is None:
            return False
        value = rel.axis(cond.axis)
        if cond.min is not None and value < cond.min:
            return False
        if cond.max is not None and value > cond.max:
            return False
        if cond.band is not None and relationship_band(cond.axis, value) != cond.band:
            return False
    return True


def _check_memory(pre: Prerequisites, ctx: EligibilityContext) -> bool:
    cond = pre.memory
    if cond is None or cond.is_empty():
        return True
    since = None if cond.window_ticks is None else ctx.tick - cond.window_ticks
    remembered = ctx.memory.tags_since(cond.actor, cond.target, since) if ctx.memory is not None else set()
    return _tags_satisfied(cond, remembered, TagBitset.from_tags(remembered))


def _check_cooldown(storylet: Storylet, ctx: EligibilityContext) -> bool:
    return not is_on_cooldown(storylet, ctx.cooldowns, ctx.tick)


def _fired_within(last: int | None, tick: int, interval: int) -> bool:
    return interval > 0 and last is not None and tick - last < interval


def _check_variety(storylet: Storylet, ctx: EligibilityContext) -> bool:
    """Repeat limits per storylet, domain and tag, plus the same-domain streak cap."""
    variety = ctx.variety
    history = ctx.history
    if variety is None or history is None:
        return True
    tick = ctx.tick
    if _fired_within(ctx.cooldowns.get(storylet.key), tick, variety.min_storylet_repeat_interval):
        return False
    domain = storylet.domain
    if domain is not None:
        if _fired_within(history.domains.get(domain), tick, variety.min_domain_repeat_interval):
            return False
        cap = variety.max_consecutive_same_domain
        if cap is not None and domain == history.last_domain and history.domain_streak >= cap:
            return False
    return not any(
        _fired_within(history.tags.get(tag), tick, variety.min_tag_repeat_interval) for tag in storylet.tags
    )


# (stage name, check) in evaluation order
STAGES: tuple[tuple[str, Callable[[Storylet, EligibilityContext], bool]], ...] = (
    ("life_stage", lambda s, ctx: _check_life_stage(s.prerequisites, ctx)),
    ("cooldown", _check_cooldown),
    ("variety", _check_variety),
    ("stats", lambda s, ctx: _check_stats(s.prerequisites, ctx)),
    ("world_tags", lambda s, ctx: _check_world_tags(s.prerequisites, ctx)),
    ("relationships", lambda s, ctx: _check_relationships(s.prerequisites, ctx)),
    ("memory", lambda s, ctx: _check_memory(s.prerequisites, ctx)),
)


def evaluate_storylet(storylet: Storylet, ctx: EligibilityContext) -> str | None:
    """Return the name of the first failing stage, or None when eligible."""
    for name, check in STAGES:
        if not check(storylet, ctx):
            return name
    return None


def collect_eligible(
    library: StoryletLibrary,
    ctx: EligibilityContext,
    diagnostics: Any = None,
) -> EligibilityReport:
    """Evaluate the whole library; eligible keys come back in ascending order."""
    report = EligibilityReport()
    for storylet in library:
        try:
            failed = evaluate_storylet(storylet, ctx)
        except Exception as e:
            log_error_with_context(
                e,
                node_name="eligibility",
                tick=ctx.tick,
                agent_name="collect_eligible",
                extra_context={"storylet_key": storylet.key},
            )
            add_warning(diagnostics, f"eligibility check failed for storylet {storylet.key}: {e}")
            report.reject("error")
            continue
        if failed is None:
            report.eligible.append(storylet.key)
        else:
            report.reject(failed)
    logger.debug(
        "Eligibility at tick %d: %d eligible, rejected=%s",
        ctx.tick,
        len(report.eligible),
        report.rejected,
    )
    return report
