"""Pydantic models for director queue entries and per-tick results."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class QueueSource(str, Enum):
    """Provenance of a deferred candidate."""
    SCHEDULED = "scheduled"
    PRESSURE_TRIGGERED = "pressure_triggered"
    MILESTONE_TRIGGERED = "milestone_triggered"
    PLAYER_TRIGGERED = "player_triggered"


class QueuedEvent(BaseModel):
    """A storylet waiting in the event queue until ``ready_tick``."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    storylet_key: int
    source: QueueSource
    ready_tick: int
    sequence: int = -1  # assigned by EventQueue.enqueue
    max_wait_ticks: int | None = None
    priority: int = 0
    origin_id: str | None = None  # pressure or milestone id
    stage: int | None = None  # milestone stage that queued this entry
    forced: bool = False  # fires ahead of scoring once ready

    @property
    def order_key(self) -> tuple[int, int]:
        return (self.ready_tick, self.sequence)

    def is_expired(self, tick: int) -> bool:
        return self.max_wait_ticks is not None and tick > self.ready_tick + self.max_wait_ticks


class ScoreBreakdown(BaseModel):
    """Per-component contributions to a candidate's score."""
    base: float = 0.0
    heat_affinity: float = 0.0
    pressure: float = 0.0
    milestone: float = 0.0
    recency: float = 0.0  # stored as the (positive) penalty subtracted
    queue_bonus: float = 0.0
    jitter: float = 0.0

    def total(self) -> float:
        return (
            self.base
            + self.heat_affinity
            + self.pressure
            + self.milestone
            - self.recency
            + self.queue_bonus
            + self.jitter
        )


class ScoredCandidate(BaseModel):
    storylet_key: int
    total: float
    breakdown: ScoreBreakdown
    source: QueueSource | None = None  # None for fresh candidates
    queue_sequence: int | None = None

    @property
    def is_from_queue(self) -> bool:
        return self.source is not None

    @property
    def rank_key(self) -> tuple[float, int, int, int]:
        """Sort key: best score first, then lower key, queued before fresh, earlier sequence."""
        return (
            -self.total,
            self.storylet_key,
            0 if self.is_from_queue else 1,
            self.queue_sequence if self.queue_sequence is not None else 0,
        )


class FiredStorylet(BaseModel):
    storylet_key: int
    outcome_ref: str
    score: float
    source: QueueSource | None = None
    is_from_queue: bool = False
    forced: bool = False


class StepStats(BaseModel):
    queue_ready_count: int = 0
    fresh_candidate_count: int = 0
    merged_candidate_count: int = 0
    viable_candidate_count: int = 0
    rejected_by_stage: Dict[str, int] = Field(default_factory=dict)
    pacing_gated: bool = False  # inside min_ticks_between_events; only forced entries may fire


class StepResult(BaseModel):
    """Compact result returned to the simulation host for one tick."""
    tick: int
    heat: float
    fired: FiredStorylet | None = None
    expired: List[int] = Field(default_factory=list)
    evicted: List[int] = Field(default_factory=list)
    ranked: List[ScoredCandidate] = Field(default_factory=list)
    stats: StepStats = Field(default_factory=StepStats)
    warnings: List[str] = Field(default_factory=list)
