"""Pydantic models for storylet definitions (authored content).

A storylet is a discrete narrative event: prerequisites decide when it may fire,
``outcome_ref`` names the outcome the host applies once it does. The director
only ever reads these models.
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from backend.app.constants import (
    LIFE_STAGES,
    RELATIONSHIP_AXES,
    RELATIONSHIP_BANDS,
)


class StatCondition(BaseModel):
    """Inclusive threshold on a named world stat."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    stat: str
    min: float | None = None
    max: float | None = None

    @model_validator(mode="after")
    def _check_range(self) -> "StatCondition":
        if self.min is None and self.max is None:
            raise ValueError(f"stat condition on '{self.stat}' needs min or max")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"stat condition on '{self.stat}' has min > max")
        return self


class RelationshipCondition(BaseModel):
    """Threshold or band on one relationship axis between an actor/target pair."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    actor: str = "player"
    target: str
    axis: str
    min: float | None = None
    max: float | None = None
    band: str | None = None

    @field_validator("axis")
    @classmethod
    def _known_axis(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in RELATIONSHIP_AXES:
            raise ValueError(f"unknown relationship axis '{v}'")
        return v

    @model_validator(mode="after")
    def _check_condition(self) -> "RelationshipCondition":
        if self.min is None and self.max is None and self.band is None:
            raise ValueError("relationship condition needs min, max or band")
        if self.band is not None:
            bands = RELATIONSHIP_BANDS.get(self.axis, ())
            if self.band not in {name for name, _ in bands}:
                raise ValueError(f"unknown band '{self.band}' for axis '{self.axis}'")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("relationship condition has min > max")
        return self


class TagCondition(BaseModel):
    """Tags that must all be present / must all be absent."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    required: List[str] = Field(default_factory=list)
    forbidden: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.required and not self.forbidden


class MemoryCondition(TagCondition):
    """Tag condition evaluated over remembered facts inside a recency window."""

    actor: str = "player"
    target: str | None = None
    window_ticks: int | None = None  # None = whole history

    @field_validator("window_ticks")
    @classmethod
    def _non_negative_window(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("memory.window_ticks must be >= 0")
        return v


class Prerequisites(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    life_stages: List[str] = Field(default_factory=list)
    min_age: int | None = None
    max_age: int | None = None
    stats: List[StatCondition] = Field(default_factory=list)
    relationships: List[RelationshipCondition] = Field(default_factory=list)
    world_tags: TagCondition = Field(default_factory=TagCondition)
    memory: MemoryCondition | None = None

    @field_validator("life_stages")
    @classmethod
    def _known_stages(cls, v: List[str]) -> List[str]:
        out = [s.strip().lower() for s in v]
        unknown = [s for s in out if s not in LIFE_STAGES]
        if unknown:
            raise ValueError(f"unknown life stage(s): {', '.join(unknown)}")
        return out


class Storylet(BaseModel):
    """One authored narrative event."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    key: int
    id: str
    name: str = ""
    domain: str | None = None
    tags: List[str] = Field(default_factory=list)
    base_weight: float = 1.0
    heat_tier: int = 0
    heat_delta: float = 0.0
    min_cooldown_ticks: int = 0
    outcome_ref: str = ""
    prerequisites: Prerequisites = Field(default_factory=Prerequisites)

    @field_validator("key")
    @classmethod
    def _non_negative_key(cls, v: int) -> int:
        if v < 0:
            raise ValueError("storylet key must be >= 0")
        return v

    @field_validator("base_weight")
    @classmethod
    def _non_negative_weight(cls, v: float) -> float:
        if v < 0:
            raise ValueError("base_weight must be >= 0")
        return v

    @field_validator("heat_tier", "min_cooldown_ticks")
    @classmethod
    def _non_negative_int(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @property
    def all_tags(self) -> list[str]:
        """Tags plus the domain, which also participates in tag matching."""
        if self.domain and self.domain not in self.tags:
            return [*self.tags, self.domain]
        return list(self.tags)
