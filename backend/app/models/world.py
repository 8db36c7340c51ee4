"""Read-only world and memory inputs consumed by the director each tick."""
from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.constants import (
    RELATIONSHIP_MAX,
    RELATIONSHIP_MIN,
    life_stage_for_age,
)


class RelationshipState(BaseModel):
    """Axis values for one directed actor -> target relationship."""
    model_config = ConfigDict(extra="forbid")

    actor: str = "player"
    target: str
    affection: float = 0.0
    trust: float = 0.0
    attraction: float = 0.0
    familiarity: float = 0.0
    resentment: float = 0.0

    @field_validator("affection", "trust", "attraction", "familiarity", "resentment")
    @classmethod
    def _clamp_axis(cls, v: float) -> float:
        return max(RELATIONSHIP_MIN, min(RELATIONSHIP_MAX, float(v)))

    def axis(self, name: str) -> float:
        return float(getattr(self, name))


class WorldSnapshot(BaseModel):
    """World state as seen by the director for one tick."""
    model_config = ConfigDict(extra="forbid")

    age: int = 0
    life_stage: str | None = None
    stats: Dict[str, float] = Field(default_factory=dict)
    relationships: List[RelationshipState] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @field_validator("life_stage")
    @classmethod
    def _normalize_stage(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip().lower() or None

    @property
    def effective_life_stage(self) -> str:
        return self.life_stage or life_stage_for_age(self.age)

    def relationship(self, actor: str, target: str) -> RelationshipState | None:
        for rel in self.relationships:
            if rel.actor == actor and rel.target == target:
                return rel
        return None


class MemoryFact(BaseModel):
    """A remembered event between an actor and (optionally) a target."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    tick: int
    actor: str = "player"
    target: str | None = None
    tags: List[str] = Field(default_factory=list)
