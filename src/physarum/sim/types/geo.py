from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class GeoRecord:
    name: str
    latitude: float
    longitude: float
    population: float
