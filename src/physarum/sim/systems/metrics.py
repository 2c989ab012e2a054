from __future__ import annotations

from ..core.field import ScalarField
from ..types.metrics import TickMetrics


def create_metrics(
    tick: int,
    agents: int,
    trail: ScalarField,
    food_total: float,
    params_version: int,
    duration_ms: float,
) -> TickMetrics:
    return TickMetrics(
        tick=tick,
        agents=agents,
        trail_total=trail.total(),
        trail_max=trail.max(),
        food_total=food_total,
        params_version=params_version,
        tick_duration_ms=duration_ms,
    )
