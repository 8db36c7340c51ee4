"""DirectorState: the single persistent aggregate owned by the host.

Created once per world from a seed and config, mutated only by
``NarrativeDirector.step`` (and the explicit scheduling/progress calls), and
persisted wholesale through ``persistence``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from backend.app.director.errors import InvariantViolation
from backend.app.director.event_queue import EventQueue
from backend.app.director.milestones import MilestoneTracker
from backend.app.director.pressure import PressureTracker
from backend.app.director.settings import DirectorConfig, HeatConfig
from backend.app.models.storylet import Storylet

logger = logging.getLogger(__name__)


@dataclass
class FiredHistory:
    """Last fired tick per domain and tag, plus the current same-domain streak."""

    domains: dict[str, int] = field(default_factory=dict)
    tags: dict[str, int] = field(default_factory=dict)
    last_domain: str | None = None
    domain_streak: int = 0

    def record(self, storylet: Storylet, tick: int) -> None:
        for tag in storylet.tags:
            self.tags[tag] = tick
        domain = storylet.domain
        if domain is None:
            self.last_domain = None
            self.domain_streak = 0
            return
        self.domains[domain] = tick
        if domain == self.last_domain:
            self.domain_streak += 1
        else:
            self.last_domain = domain
            self.domain_streak = 1


@dataclass
class DirectorState:
    seed: int
    tick: int
    heat: float
    pressures: PressureTracker
    milestones: MilestoneTracker
    queue: EventQueue
    cooldowns: dict[int, int] = field(default_factory=dict)  # storylet key -> last fired tick
    last_fired_tick: int | None = None
    fired_count: int = 0
    history: FiredHistory = field(default_factory=FiredHistory)

    @classmethod
    def new(cls, config: DirectorConfig, seed: int = 0) -> "DirectorState":
        return cls(
            seed=seed,
            tick=0,
            heat=config.heat.initial_heat,
            pressures=PressureTracker(config.pressures),
            milestones=MilestoneTracker(config.milestones),
            queue=EventQueue(max_size=config.queue.max_size),
        )

    def check_heat(self, heat_cfg: HeatConfig) -> InvariantViolation | None:
        """Clamp heat back into bounds, returning the violation if one was found."""
        if math.isfinite(self.heat) and heat_cfg.min_heat <= self.heat <= heat_cfg.max_heat:
            return None
        violation = InvariantViolation("heat", self.heat, heat_cfg.min_heat, heat_cfg.max_heat)
        self.heat = heat_cfg.clamp(self.heat) if math.isfinite(self.heat) else heat_cfg.baseline
        return violation

    def decay_heat(self, heat_cfg: HeatConfig) -> None:
        """Move heat toward the baseline by one tick of decay without overshooting."""
        if self.heat > heat_cfg.baseline:
            self.heat = max(heat_cfg.baseline, self.heat - heat_cfg.decay_per_tick)
        elif self.heat < heat_cfg.baseline:
            self.heat = min(heat_cfg.baseline, self.heat + heat_cfg.decay_per_tick)
        self.heat = heat_cfg.clamp(self.heat)

    def apply_fire(self, storylet: Storylet, heat_cfg: HeatConfig) -> None:
        self.heat = heat_cfg.clamp(self.heat + storylet.heat_delta * heat_cfg.heat_increase_factor)
        self.cooldowns[storylet.key] = self.tick
        self.history.record(storylet, self.tick)
        self.last_fired_tick = self.tick
        self.fired_count += 1
