from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from ..core.agent import Agent
from ..core.config import AgentParams
from ..core.field import ScalarField
from ..utils.math2d import round_half_up, wrap_coordinate


def sensor_offsets(sensor_size: int) -> range:
    # 2s x 2s window anchored on the target cell: offsets -s .. s-1.
    size = max(0, int(sensor_size))
    return range(-size, size)


def sensor_cell(agent: Agent, offset_angle: float, sensor_distance: float) -> tuple[int, int]:
    angle = agent.heading + offset_angle
    return (
        round_half_up(agent.position.x + sensor_distance * math.cos(angle)),
        round_half_up(agent.position.y + sensor_distance * math.sin(angle)),
    )


def sense(
    agent: Agent,
    offset_angle: float,
    trail: ScalarField,
    food: ScalarField,
    params: AgentParams,
    offsets: Sequence[int] | None = None,
) -> float:
    if offsets is None:
        offsets = sensor_offsets(params.sensor_size)
    cx, cy = sensor_cell(agent, offset_angle, params.sensor_distance)
    return trail.window_sum(cx, cy, offsets) + params.food_desire * food.window_sum(cx, cy, offsets)


def update_heading(agent: Agent, trail: ScalarField, food: ScalarField, params: AgentParams) -> None:
    offsets = sensor_offsets(params.sensor_size)
    left = sense(agent, params.sensor_angle, trail, food, params, offsets)
    forward = sense(agent, 0.0, trail, food, params, offsets)
    right = sense(agent, -params.sensor_angle, trail, food, params, offsets)

    # The three rules are evaluated independently and may stack.
    if right > left and right > forward:
        agent.heading -= params.turning_speed
    if left > right and left > forward:
        agent.heading += params.turning_speed
    if forward < 0:
        agent.heading += math.pi


def update_position(agent: Agent, params: AgentParams) -> None:
    agent.position.x += params.speed * math.cos(agent.heading)
    agent.position.y += params.speed * math.sin(agent.heading)


def wrap_position(agent: Agent, width: float, height: float) -> None:
    agent.position.x = wrap_coordinate(agent.position.x, width)
    agent.position.y = wrap_coordinate(agent.position.y, height)


def update_agent(agent: Agent, trail: ScalarField, food: ScalarField, params: AgentParams) -> None:
    update_heading(agent, trail, food, params)
    update_position(agent, params)
    wrap_position(agent, trail.width, trail.height)


def sense_all(
    xs: np.ndarray,
    ys: np.ndarray,
    headings: np.ndarray,
    offset_angle: float,
    trail: ScalarField,
    food: ScalarField,
    params: AgentParams,
) -> np.ndarray:
    """Batched ``sense`` for every agent at once, one gather per window cell."""
    width, height = trail.width, trail.height
    angles = headings + offset_angle
    cx = np.floor(xs + params.sensor_distance * np.cos(angles) + 0.5).astype(np.int64)
    cy = np.floor(ys + params.sensor_distance * np.sin(angles) + 0.5).astype(np.int64)
    trail_sum = np.zeros(xs.shape, dtype=np.float64)
    food_sum = np.zeros(xs.shape, dtype=np.float64)
    offsets = sensor_offsets(params.sensor_size)
    for dy in offsets:
        rows = (cy + dy) % height
        for dx in offsets:
            cols = (cx + dx) % width
            trail_sum += trail.values[rows, cols]
            food_sum += food.values[rows, cols]
    return trail_sum + params.food_desire * food_sum


def update_agents(agents: Sequence[Agent], trail: ScalarField, food: ScalarField, params: AgentParams) -> None:
    """Array form of ``update_agent`` applied to the whole population.

    Agents only read the fields during this pass, so sensing every agent
    against the same arrays matches the one-by-one update.
    """
    if not agents:
        return
    xs = np.fromiter((agent.position.x for agent in agents), dtype=np.float64, count=len(agents))
    ys = np.fromiter((agent.position.y for agent in agents), dtype=np.float64, count=len(agents))
    headings = np.fromiter((agent.heading for agent in agents), dtype=np.float64, count=len(agents))

    left = sense_all(xs, ys, headings, params.sensor_angle, trail, food, params)
    forward = sense_all(xs, ys, headings, 0.0, trail, food, params)
    right = sense_all(xs, ys, headings, -params.sensor_angle, trail, food, params)

    headings[(right > left) & (right > forward)] -= params.turning_speed
    headings[(left > right) & (left > forward)] += params.turning_speed
    headings[forward < 0] += math.pi

    xs += params.speed * np.cos(headings)
    ys += params.speed * np.sin(headings)
    xs = np.mod(xs, trail.width)
    ys = np.mod(ys, trail.height)
    # np.mod of a tiny negative can land exactly on the size.
    xs[xs >= trail.width] -= trail.width
    ys[ys >= trail.height] -= trail.height

    for agent, x, y, heading in zip(agents, xs.tolist(), ys.tolist(), headings.tolist()):
        agent.position.x = x
        agent.position.y = y
        agent.heading = heading
