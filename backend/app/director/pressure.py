"""Ticking narrative pressures.

Each tick a pressure grows (or decays when resolved), and once it reaches its
fire threshold it proposes one queued event, resets to zero and cools down
before growing again.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from backend.app.constants import THRESHOLD_EPSILON
from backend.app.director.errors import InvariantViolation
from backend.app.director.settings import PressureDefinition
from backend.app.director.triggers import TargetResolver, TriggeredEvent
from backend.app.models.director import QueueSource

logger = logging.getLogger(__name__)


@dataclass
class PressureRuntime:
    value: float = 0.0
    cooldown_remaining: int = 0
    resolved: bool = False  # consumed by the next update

    @property
    def cooling_down(self) -> bool:
        return self.cooldown_remaining > 0


class PressureTracker:
    """Runtime values for the configured pressures, in config order."""

    def __init__(self, definitions: list[PressureDefinition]) -> None:
        self.definitions = list(definitions)
        self.runtime: dict[str, PressureRuntime] = {
            d.id: PressureRuntime(value=d.initial_value) for d in self.definitions
        }

    def __contains__(self, pressure_id: object) -> bool:
        return pressure_id in self.runtime

    def value(self, pressure_id: str) -> float:
        return self.runtime[pressure_id].value

    def resolve(self, pressure_id: str) -> None:
        """Mark a pressure resolved for the next update (it decays instead of growing)."""
        if pressure_id not in self.runtime:
            raise KeyError(f"unknown pressure '{pressure_id}'")
        self.runtime[pressure_id].resolved = True

    def check_bounds(self) -> list[InvariantViolation]:
        """Clamp out-of-range values, returning one violation per fix."""
        violations = []
        for d in self.definitions:
            rt = self.runtime[d.id]
            if math.isfinite(rt.value) and 0.0 <= rt.value <= d.max_value:
                continue
            violations.append(InvariantViolation(f"pressure[{d.id}]", rt.value, 0.0, d.max_value))
            rt.value = 0.0 if not math.isfinite(rt.value) else max(0.0, min(d.max_value, rt.value))
        return violations

    def advance(self, tick: int, resolve_target: TargetResolver) -> list[TriggeredEvent]:
        """Run one tick of growth/decay and return the events of pressures that fired."""
        fired: list[TriggeredEvent] = []
        for d in self.definitions:
            rt = self.runtime[d.id]
            resolved, rt.resolved = rt.resolved, False
            if rt.cooling_down:
                rt.cooldown_remaining -= 1
                continue
            if resolved:
                rt.value -= d.decay_per_tick
            else:
                rt.value += d.growth_per_tick
            rt.value = max(0.0, min(d.max_value, rt.value))
            if rt.value + THRESHOLD_EPSILON < d.fire_threshold:
                continue

            key = resolve_target(d.storylet_key, d.linked_tags)
            logger.info(
                "Pressure %s fired at tick %d (value=%.2f, target=%s)",
                d.id,
                tick,
                rt.value,
                key,
            )
            fired.append(
                TriggeredEvent(
                    origin_id=d.id,
                    source=QueueSource.PRESSURE_TRIGGERED,
                    storylet_key=key,
                    ready_tick=tick + d.ready_delay_ticks,
                    max_wait_ticks=d.max_wait_ticks,
                    priority=d.priority,
                )
            )
            rt.value = 0.0
            rt.cooldown_remaining = d.cooldown_ticks
        return fired
