from __future__ import annotations

import logging
from time import perf_counter
from typing import List, Optional, Sequence

import numpy as np
from pygame.math import Vector2

from .agent import Agent
from .config import AgentParams, SimulationConfig
from .field import ScalarField
from .rng import DeterministicRng
from ..systems import fields, food as food_system, metrics as metrics_system, steering
from ..types.geo import GeoRecord
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotFields, SnapshotMetadata
from ..utils.geodata import load_geo_records, load_mask

logger = logging.getLogger(__name__)


class World:
    """Simulation context: both fields, the agent collection and the live parameters.

    ``step`` advances one tick in the fixed order agents -> deposit ->
    decay/diffuse. ``reset`` rebuilds fields and agents off to the side and
    swaps them in only once everything is constructed.
    """

    def __init__(
        self,
        config: SimulationConfig,
        records: Optional[Sequence[GeoRecord]] = None,
        mask: Optional[np.ndarray] = None,
    ):
        self._config = config
        self._rng = DeterministicRng(config.seed)
        self._records: List[GeoRecord] = list(records) if records is not None else []
        self._mask = mask
        if config.geographic:
            self._load_geo_sources(records is None, mask is None)
        self._trail = ScalarField(config.width, config.height)
        self._food = ScalarField(config.width, config.height)
        self._food_total = 0.0
        self._agents: List[Agent] = []
        self._metrics: TickMetrics | None = None
        self._params: AgentParams = config.parameters.snapshot()
        self._generation = 0
        self.reset()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def trail(self) -> ScalarField:
        return self._trail

    @property
    def food(self) -> ScalarField:
        return self._food

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def params(self) -> AgentParams:
        return self._params

    def reset(
        self,
        records: Optional[Sequence[GeoRecord]] = None,
        mask: Optional[np.ndarray] = None,
    ) -> None:
        config = self._config
        params = config.parameters.snapshot()
        next_records = list(records) if records is not None else self._records
        next_mask = mask if mask is not None else self._mask
        food = food_system.build_food_field(
            config.width,
            config.height,
            config.food,
            config.geo,
            config.geographic,
            next_records,
            next_mask,
        )
        trail = ScalarField(config.width, config.height)
        self._rng.reset()
        agents = self._spawn_agents(params.num_agents)

        self._records = next_records
        self._mask = next_mask
        self._trail = trail
        self._food = food
        self._food_total = food.total()
        self._agents = agents
        self._params = params
        self._metrics = None
        self._generation += 1
        logger.info(
            "World reset: %dx%d grid, %d agents, geographic=%s, diffusion=%s",
            config.width,
            config.height,
            len(agents),
            config.geographic,
            config.diffusion,
        )

    def step(self, tick: int) -> TickMetrics:
        start = perf_counter()
        params = self._config.parameters.snapshot()
        self._params = params
        trail = self._trail
        food = self._food
        steering.update_agents(self._agents, trail, food, params)
        fields.deposit_pass(trail, self._agents, params)
        fields.decay_diffuse_pass(trail, params, self._config.diffusion)
        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            tick, len(self._agents), trail, self._food_total, params.version, elapsed_ms
        )
        self._metrics = metrics
        return metrics

    def snapshot(self, tick: int) -> Snapshot:
        metrics = self._metrics
        if metrics is None:
            metrics = metrics_system.create_metrics(
                tick, len(self._agents), self._trail, self._food_total, self._params.version, 0.0
            )
        config = self._config
        metadata = SnapshotMetadata(
            width=config.width,
            height=config.height,
            sim_dt=config.time_step,
            tick_rate=0.0 if config.time_step <= 0 else 1.0 / config.time_step,
            seed=config.seed,
            config_version=config.config_version,
            params_version=self._params.version,
            generation=self._generation,
        )
        return Snapshot(
            tick=tick,
            metrics=metrics,
            metadata=metadata,
            fields=SnapshotFields(trail=self._trail.snapshot(), food=self._food.snapshot()),
        )

    def _spawn_agents(self, count: int) -> List[Agent]:
        config = self._config
        center = Vector2(config.center)
        half_width = config.width * config.start_fraction * 0.5
        half_height = config.height * config.start_fraction * 0.5
        agents: List[Agent] = []
        for agent_id in range(max(0, int(count))):
            if config.point_start:
                position = center.copy()
            else:
                position = self._rng.next_point_in_square(center, half_width, half_height)
            agents.append(Agent(id=agent_id, position=position, heading=self._rng.next_heading()))
        return agents

    def _load_geo_sources(self, load_records: bool, load_image: bool) -> None:
        geo = self._config.geo
        if load_records and geo.records_path is not None:
            self._records = load_geo_records(geo.records_path)
        if load_image and geo.mask_path is not None:
            self._mask = load_mask(geo.mask_path)
