from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml


@dataclass
class Parameter:
    value: float
    min: float
    max: float
    step: float

    def clamp(self, value: float) -> float:
        return max(self.min, min(self.max, float(value)))


@dataclass(frozen=True)
class AgentParams:
    speed: float
    turning_speed: float
    deposit: float
    food_desire: float
    num_agents: int
    sensor_angle: float
    sensor_size: int
    sensor_distance: float
    decay_factor: float
    version: int = 0


_INTEGER_PARAMETERS = frozenset({"num_agents", "sensor_size"})


def _default_parameters() -> Dict[str, Parameter]:
    return {
        "speed": Parameter(3.4, 0.1, 20.0, 0.1),
        "turning_speed": Parameter(0.64, 0.01, 3.141, 0.01),
        "deposit": Parameter(0.99, 0.01, 1.0, 0.01),
        "food_desire": Parameter(8.3, 0.001, 10.0, 0.01),
        "num_agents": Parameter(10000, 1, 200000, 100),
        "sensor_angle": Parameter(0.52, 3.141 / 360, 3.141, 3.141 / 360),
        "sensor_size": Parameter(1, 1, 4, 1),
        "sensor_distance": Parameter(10, 1, 50, 1),
        "decay_factor": Parameter(0.01, 0.01, 1.0, 0.01),
    }


class ParameterSet:
    """Live simulation knobs, each with a declared range.

    Writers go through ``set`` which clamps into ``[min, max]`` and bumps
    ``version``. The engine reads one frozen ``snapshot()`` per tick so a
    value edited mid-tick only takes effect on the next one.
    """

    def __init__(self, parameters: Optional[Dict[str, Parameter]] = None):
        self._parameters = _default_parameters()
        if parameters:
            self._parameters.update(parameters)
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def names(self) -> list[str]:
        return list(self._parameters)

    def get(self, name: str) -> float:
        return self._parameters[name].value

    def parameter(self, name: str) -> Parameter:
        return self._parameters[name]

    def set(self, name: str, value: float) -> float:
        parameter = self._parameters[name]
        clamped = parameter.clamp(value)
        if name in _INTEGER_PARAMETERS:
            clamped = int(round(clamped))
        parameter.value = clamped
        self._version += 1
        return clamped

    def update(self, values: Dict[str, float]) -> Dict[str, float]:
        unknown = [name for name in values if name not in self._parameters]
        if unknown:
            raise KeyError(f"Unknown parameters: {', '.join(sorted(unknown))}")
        return {name: self.set(name, value) for name, value in values.items()}

    def snapshot(self) -> AgentParams:
        values = {name: parameter.value for name, parameter in self._parameters.items()}
        for name in _INTEGER_PARAMETERS:
            values[name] = int(values[name])
        return AgentParams(version=self._version, **values)

    def describe(self) -> Dict[str, Dict[str, float]]:
        return {
            name: {"value": p.value, "min": p.min, "max": p.max, "step": p.step}
            for name, p in self._parameters.items()
        }


@dataclass
class FoodConfig:
    border_thickness: int = 20
    border_penalty: float = 100.0
    mask_threshold: float = 220.0
    mask_penalty: float = 200.0
    ring_radius: int = 5
    ring_samples: int = 100


@dataclass
class GeoConfig:
    records_path: Optional[Path] = None
    mask_path: Optional[Path] = None
    # Pixel of record 0 on a 400x400 grid.
    reference_pixel: tuple[float, float] = (232.0, 123.0)
    map_fill: float = 0.92
    population_domain: tuple[float, float] = (0.0, 12_000_000.0)
    intensity_range: tuple[float, float] = (10.0, 1000.0)


@dataclass
class SimulationConfig:
    width: int = 400
    height: int = 400
    seed: Optional[int] = 42
    time_step: float = 1.0 / 60.0
    diffusion: bool = False
    geographic: bool = False
    point_start: bool = False
    start_fraction: float = 0.2
    config_version: str = "v1"
    food: FoodConfig = field(default_factory=FoodConfig)
    geo: GeoConfig = field(default_factory=GeoConfig)
    parameters: ParameterSet = field(default_factory=ParameterSet)

    @property
    def center(self) -> tuple[float, float]:
        return (self.width * 0.5, self.height * 0.5)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data, base_dir=Path(path).parent)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 2


def _parameter_from_raw(name: str, raw: object) -> Parameter:
    defaults = _default_parameters()
    if name not in defaults:
        raise KeyError(f"Unknown parameter: {name}")
    base = defaults[name]
    if isinstance(raw, dict):
        parameter = Parameter(
            value=float(raw.get("value", base.value)),
            min=float(raw.get("min", base.min)),
            max=float(raw.get("max", base.max)),
            step=float(raw.get("step", base.step)),
        )
    else:
        parameter = Parameter(float(raw), base.min, base.max, base.step)
    parameter.value = parameter.clamp(parameter.value)
    if name in _INTEGER_PARAMETERS:
        parameter.value = int(round(parameter.value))
    return parameter


def _pair(value: tuple[float, float] | list[float] | None, default: tuple[float, float]) -> tuple[float, float]:
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return (float(value[0]), float(value[1]))
    return default


def _resolve_path(value: object, base_dir: Optional[Path]) -> Optional[Path]:
    if value is None:
        return None
    path = Path(str(value))
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    return path


def load_config(raw: dict, base_dir: Optional[Path] = None) -> SimulationConfig:
    food = FoodConfig(**raw.get("food", {}))
    geo_raw = raw.get("geo", {})
    default_geo = GeoConfig()
    geo = GeoConfig(
        records_path=_resolve_path(geo_raw.get("records_path"), base_dir),
        mask_path=_resolve_path(geo_raw.get("mask_path"), base_dir),
        reference_pixel=_pair(geo_raw.get("reference_pixel"), default_geo.reference_pixel),
        map_fill=float(geo_raw.get("map_fill", default_geo.map_fill)),
        population_domain=_pair(geo_raw.get("population_domain"), default_geo.population_domain),
        intensity_range=_pair(geo_raw.get("intensity_range"), default_geo.intensity_range),
    )
    parameters = ParameterSet(
        {name: _parameter_from_raw(name, value) for name, value in raw.get("parameters", {}).items()}
    )
    sim_values = {k: v for k, v in raw.items() if k not in {"food", "geo", "parameters"}}
    return SimulationConfig(food=food, geo=geo, parameters=parameters, **sim_values)
