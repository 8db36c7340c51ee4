"""Director configuration: pydantic models loaded once from YAML.

The config is frozen after construction so scoring stays a pure function of
(state, candidate, config). Validation failures surface as ``ConfigError``.
"""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from backend.app.constants import (
    HEAT_DECAY_PER_TICK_DEFAULT,
    HEAT_MAX_DEFAULT,
    HEAT_MIN_DEFAULT,
    MAX_HEAT_TIER_DEFAULT,
    QUEUE_MAX_SIZE_DEFAULT,
    RECENCY_HORIZON_TICKS_DEFAULT,
)
from backend.app.director.errors import ConfigError

logger = logging.getLogger(__name__)

CurveKind = Literal["linear", "quadratic", "sqrt", "constant"]


class _Frozen(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class ResponseCurve(_Frozen):
    """Maps an input onto ``[0, scale]``: ``scale * f(clamp(x / input_max, 0, 1))``."""

    kind: CurveKind = "linear"
    scale: float = 1.0
    input_max: float = 1.0

    @field_validator("input_max")
    @classmethod
    def _positive_input_max(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("curve input_max must be > 0")
        return v

    def evaluate(self, x: float) -> float:
        t = max(0.0, min(1.0, x / self.input_max))
        if self.kind == "quadratic":
            t = t * t
        elif self.kind == "sqrt":
            t = math.sqrt(t)
        elif self.kind == "constant":
            t = 1.0 if t > 0 else 0.0
        return self.scale * t


class HeatConfig(_Frozen):
    min_heat: float = HEAT_MIN_DEFAULT
    max_heat: float = HEAT_MAX_DEFAULT
    initial_heat: float = HEAT_MIN_DEFAULT
    baseline: float = HEAT_MIN_DEFAULT
    decay_per_tick: float = HEAT_DECAY_PER_TICK_DEFAULT
    heat_increase_factor: float = 1.0

    @model_validator(mode="after")
    def _check_bounds(self) -> "HeatConfig":
        if self.min_heat >= self.max_heat:
            raise ValueError("heat.min_heat must be < heat.max_heat")
        for name in ("initial_heat", "baseline"):
            value = getattr(self, name)
            if value < self.min_heat or value > self.max_heat:
                raise ValueError(f"heat.{name} must be within [min_heat, max_heat]")
        if self.decay_per_tick < 0:
            raise ValueError("heat.decay_per_tick must be >= 0")
        return self

    def clamp(self, value: float) -> float:
        return max(self.min_heat, min(self.max_heat, value))


class ScoringConfig(_Frozen):
    base_weight_multiplier: float = 1.0
    heat_weight: float = 2.0
    max_heat_tier: int = MAX_HEAT_TIER_DEFAULT
    pressure_curve: ResponseCurve = Field(
        default_factory=lambda: ResponseCurve(kind="linear", scale=2.0, input_max=100.0)
    )
    milestone_curve: ResponseCurve = Field(
        default_factory=lambda: ResponseCurve(kind="quadratic", scale=1.5, input_max=1.0)
    )
    recency_curve: ResponseCurve = Field(
        default_factory=lambda: ResponseCurve(kind="linear", scale=0.5, input_max=1.0)
    )
    recency_horizon_ticks: int = RECENCY_HORIZON_TICKS_DEFAULT
    queue_priority_bonus: float = 1.0
    jitter_scale: float = 0.0
    min_viable_score: float | None = 0.0

    @field_validator("max_heat_tier", "recency_horizon_ticks")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("jitter_scale")
    @classmethod
    def _non_negative_jitter(cls, v: float) -> float:
        if v < 0:
            raise ValueError("scoring.jitter_scale must be >= 0")
        return v


class VarietyConfig(_Frozen):
    """Repetition limits applied to fresh candidates. Zero intervals disable a check."""

    min_storylet_repeat_interval: int = 0
    min_domain_repeat_interval: int = 0
    min_tag_repeat_interval: int = 0
    max_consecutive_same_domain: int | None = None
    same_domain_penalty: float = 1.0  # multiplier on base weight when the domain repeats

    @field_validator("min_storylet_repeat_interval", "min_domain_repeat_interval", "min_tag_repeat_interval")
    @classmethod
    def _non_negative_interval(cls, v: int) -> int:
        if v < 0:
            raise ValueError("variety intervals must be >= 0")
        return v

    @field_validator("max_consecutive_same_domain")
    @classmethod
    def _positive_streak(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("variety.max_consecutive_same_domain must be > 0")
        return v

    @field_validator("same_domain_penalty")
    @classmethod
    def _penalty_range(cls, v: float) -> float:
        if v < 0 or v > 1:
            raise ValueError("variety.same_domain_penalty must be within [0, 1]")
        return v


class QueueConfig(_Frozen):
    max_size: int = QUEUE_MAX_SIZE_DEFAULT

    @field_validator("max_size")
    @classmethod
    def _positive_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("queue.max_size must be > 0")
        return v


class PressureDefinition(_Frozen):
    id: str
    description: str = ""
    growth_per_tick: float
    decay_per_tick: float = 0.0
    fire_threshold: float
    max_value: float = 100.0
    initial_value: float = 0.0
    cooldown_ticks: int = 0
    linked_tags: List[str] = Field(default_factory=list)
    storylet_key: int | None = None
    ready_delay_ticks: int = 0
    max_wait_ticks: int | None = None
    priority: int = 0

    @model_validator(mode="after")
    def _check_values(self) -> "PressureDefinition":
        if self.growth_per_tick < 0 or self.decay_per_tick < 0:
            raise ValueError(f"pressure '{self.id}': growth/decay must be >= 0")
        if self.fire_threshold <= 0:
            raise ValueError(f"pressure '{self.id}': fire_threshold must be > 0")
        if self.fire_threshold > self.max_value:
            raise ValueError(f"pressure '{self.id}': fire_threshold exceeds max_value")
        if self.initial_value < 0 or self.initial_value > self.max_value:
            raise ValueError(f"pressure '{self.id}': initial_value outside [0, max_value]")
        if self.cooldown_ticks < 0 or self.ready_delay_ticks < 0:
            raise ValueError(f"pressure '{self.id}': tick counts must be >= 0")
        if self.max_wait_ticks is not None and self.max_wait_ticks < 0:
            raise ValueError(f"pressure '{self.id}': max_wait_ticks must be >= 0")
        return self


class MilestoneDefinition(_Frozen):
    id: str
    description: str = ""
    stage_thresholds: List[float]
    linked_tags: List[str] = Field(default_factory=list)
    advancing_tags: List[str] = Field(default_factory=list)
    progress_per_storylet: float = 1.0
    stage_storylets: Dict[int, int] = Field(default_factory=dict)
    ready_delay_ticks: int = 0
    max_wait_ticks: int | None = None
    priority: int = 0

    @model_validator(mode="after")
    def _check_stages(self) -> "MilestoneDefinition":
        thresholds = self.stage_thresholds
        if not thresholds:
            raise ValueError(f"milestone '{self.id}': stage_thresholds must not be empty")
        if thresholds[0] <= 0:
            raise ValueError(f"milestone '{self.id}': stage thresholds must be > 0")
        if any(b <= a for a, b in zip(thresholds, thresholds[1:])):
            raise ValueError(f"milestone '{self.id}': stage thresholds must be strictly increasing")
        bad = [s for s in self.stage_storylets if s < 1 or s > len(thresholds)]
        if bad:
            raise ValueError(f"milestone '{self.id}': stage_storylets has unknown stage(s) {bad}")
        if self.progress_per_storylet < 0 or self.ready_delay_ticks < 0:
            raise ValueError(f"milestone '{self.id}': progress and delays must be >= 0")
        return self

    @property
    def final_stage(self) -> int:
        return len(self.stage_thresholds)


class DirectorConfig(_Frozen):
    heat: HeatConfig = Field(default_factory=HeatConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    variety: VarietyConfig = Field(default_factory=VarietyConfig)
    min_ticks_between_events: int = 0
    pressures: List[PressureDefinition] = Field(default_factory=list)
    milestones: List[MilestoneDefinition] = Field(default_factory=list)

    @field_validator("min_ticks_between_events")
    @classmethod
    def _non_negative_gap(cls, v: int) -> int:
        if v < 0:
            raise ValueError("min_ticks_between_events must be >= 0")
        return v

    @model_validator(mode="after")
    def _unique_ids(self) -> "DirectorConfig":
        for label, items in (("pressure", self.pressures), ("milestone", self.milestones)):
            seen: set[str] = set()
            for item in items:
                if item.id in seen:
                    raise ValueError(f"duplicate {label} id '{item.id}'")
                seen.add(item.id)
        return self

    @classmethod
    def from_mapping(cls, data: Any) -> "DirectorConfig":
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Invalid director config", [f"expected a mapping, got {type(data).__name__}"])
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError("Invalid director config", _format_validation_errors(e)) from e


def _format_validation_errors(error: ValidationError) -> list[str]:
    problems = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
        problems.append(f"{loc}: {err.get('msg', 'invalid')}")
    return problems


def _read_yaml(path: Path) -> object:
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def load_director_config(path: str | Path) -> DirectorConfig:
    """Load and validate a director config YAML file."""
    p = Path(path)
    if not p.is_file():
        raise ConfigError("Director config not found", [str(p)])
    try:
        data = _read_yaml(p)
    except yaml.YAMLError as e:
        raise ConfigError("Director config is not valid YAML", [f"{p}: {e}"]) from e
    config = DirectorConfig.from_mapping(data)
    logger.info(
        "Loaded director config %s (%d pressures, %d milestones)",
        p,
        len(config.pressures),
        len(config.milestones),
    )
    return config


def validate_config_file(path: str | Path) -> list[str]:
    """Return config problems as a list (empty when valid)."""
    try:
        load_director_config(path)
    except ConfigError as e:
        return e.problems or [str(e)]
    return []
