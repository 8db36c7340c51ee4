"""Centralized tuning constants shared across the director."""
from __future__ import annotations

# Snapshot format
SNAPSHOT_FORMAT_VERSION = 1

# Heat defaults (narrative pacing scalar)
HEAT_MIN_DEFAULT = 0.0
HEAT_MAX_DEFAULT = 100.0
HEAT_DECAY_PER_TICK_DEFAULT = 0.5

# Queue
QUEUE_MAX_SIZE_DEFAULT = 50

# Scoring
MAX_HEAT_TIER_DEFAULT = 10
RECENCY_HORIZON_TICKS_DEFAULT = 48
RANKED_CANDIDATES_REPORTED = 5

# Floating point slack when comparing accumulated values to thresholds
THRESHOLD_EPSILON = 1e-9

# Life stages by age (inclusive lower bound, inclusive upper bound; None = open)
LIFE_STAGE_AGES: tuple[tuple[str, int, int | None], ...] = (
    ("presim", 0, 5),
    ("child", 6, 12),
    ("teen", 13, 18),
    ("young_adult", 19, 29),
    ("adult", 30, 59),
    ("elder", 60, 89),
    ("digital", 90, None),
)
LIFE_STAGES: tuple[str, ...] = tuple(name for name, _, _ in LIFE_STAGE_AGES)

# Relationship axes; every axis ranges over RELATIONSHIP_MIN..RELATIONSHIP_MAX
RELATIONSHIP_MIN = -10.0
RELATIONSHIP_MAX = 10.0
RELATIONSHIP_AXES: tuple[str, ...] = ("affection", "trust", "attraction", "familiarity", "resentment")

# Named bands per axis as (band, upper bound). The first bound is inclusive, later
# bounds are exclusive, None is open-ended.
RELATIONSHIP_BANDS: dict[str, tuple[tuple[str, float | None], ...]] = {
    "affection": (
        ("stranger", -5.0),  # value <= -5
        ("acquaintance", 1.0),
        ("friendly", 5.0),
        ("close", 8.0),
        ("devoted", None),
    ),
    "trust": (
        ("unknown", -5.0),  # value <= -5
        ("wary", -1.0),
        ("neutral", 2.0),
        ("trusted", 7.0),
        ("deep_trust", None),
    ),
}


def life_stage_for_age(age: int) -> str:
    """Map an age in years to its life stage."""
    for name, low, high in LIFE_STAGE_AGES:
        if age >= low and (high is None or age <= high):
            return name
    return LIFE_STAGES[0]


def relationship_band(axis: str, value: float) -> str | None:
    """Return the named band for ``value`` on ``axis`` (None when the axis has no bands)."""
    bands = RELATIONSHIP_BANDS.get(axis)
    if not bands:
        return None
    first_name, first_bound = bands[0]
    if first_bound is not None and value <= first_bound:
        return first_name
    for name, upper in bands[1:]:
        if upper is None or value < upper:
            return name
    return bands[-1][0]
