from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    metadata: "SnapshotMetadata"
    fields: "SnapshotFields"


@dataclass(slots=True)
class SnapshotMetadata:
    width: int
    height: int
    sim_dt: float
    tick_rate: float
    seed: Optional[int]
    config_version: str
    params_version: int
    generation: int


@dataclass(slots=True)
class SnapshotFields:
    trail: np.ndarray
    food: np.ndarray
