"""Application models (storylets, world inputs, director results)."""
from .director import (
    FiredStorylet,
    QueuedEvent,
    QueueSource,
    ScoreBreakdown,
    ScoredCandidate,
    StepResult,
    StepStats,
)
from .storylet import (
    MemoryCondition,
    Prerequisites,
    RelationshipCondition,
    StatCondition,
    Storylet,
    TagCondition,
)
from .world import MemoryFact, RelationshipState, WorldSnapshot

__all__ = [
    "FiredStorylet",
    "QueuedEvent",
    "QueueSource",
    "ScoreBreakdown",
    "ScoredCandidate",
    "StepResult",
    "StepStats",
    "MemoryCondition",
    "Prerequisites",
    "RelationshipCondition",
    "StatCondition",
    "Storylet",
    "TagCondition",
    "MemoryFact",
    "RelationshipState",
    "WorldSnapshot",
]
