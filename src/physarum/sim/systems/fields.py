from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from ..core.agent import Agent
from ..core.config import AgentParams
from ..core.field import ScalarField

CENTER_WEIGHT = 0.85

# (dx, dy, weight) for the eight neighbours of the 3x3 diffusion kernel.
NEIGHBOR_WEIGHTS: Tuple[Tuple[int, int, float], ...] = (
    (-1, -1, 0.0125),
    (0, -1, 0.025),
    (1, -1, 0.0125),
    (-1, 0, 0.025),
    (1, 0, 0.025),
    (-1, 1, 0.0125),
    (0, 1, 0.025),
    (1, 1, 0.0125),
)


def agent_cells(agents: Iterable[Agent], width: int, height: int) -> tuple[np.ndarray, np.ndarray]:
    positions = np.array([(agent.position.x, agent.position.y) for agent in agents], dtype=np.float64)
    if positions.size == 0:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty
    xs = np.floor(positions[:, 0] + 0.5).astype(np.int64) % width
    ys = np.floor(positions[:, 1] + 0.5).astype(np.int64) % height
    return xs, ys


def deposit_pass(trail: ScalarField, agents: Iterable[Agent], params: AgentParams) -> None:
    xs, ys = agent_cells(agents, trail.width, trail.height)
    if xs.size == 0:
        return
    # add.at accumulates repeated indices, plain fancy assignment would not.
    np.add.at(trail.values, (ys, xs), params.deposit)


def decay_diffuse_pass(trail: ScalarField, params: AgentParams, diffusion: bool) -> None:
    old = trail.snapshot()
    live = trail.values
    np.multiply(old, (1.0 - params.decay_factor) * CENTER_WEIGHT, out=live)
    if not diffusion:
        return
    for dx, dy, weight in NEIGHBOR_WEIGHTS:
        live += np.roll(old, shift=(dy, dx), axis=(0, 1)) * weight


def update_trail(trail: ScalarField, agents: Iterable[Agent], params: AgentParams, diffusion: bool) -> None:
    deposit_pass(trail, agents, params)
    decay_diffuse_pass(trail, params, diffusion)
