from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    agents: int
    trail_total: float
    trail_max: float
    food_total: float
    params_version: int
    tick_duration_ms: float = 0.0
