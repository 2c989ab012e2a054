from __future__ import annotations

import math

import numpy as np
import pytest
from pygame.math import Vector2

from conftest import make_params
from physarum.sim.core.agent import Agent
from physarum.sim.core.field import ScalarField
from physarum.sim.systems import steering


def _fields(size: int = 100) -> tuple[ScalarField, ScalarField]:
    return ScalarField(size, size), ScalarField(size, size)


def _agent(x: float = 50.0, y: float = 50.0, heading: float = 0.0) -> Agent:
    return Agent(id=0, position=Vector2(x, y), heading=heading)


# heading 0, sensor angle pi/2: forward -> (60, 50), left -> (50, 60), right -> (50, 40)
_PARAMS = dict(sensor_distance=10, sensor_angle=math.pi / 2, sensor_size=1, food_desire=1.0, turning_speed=0.3)


def test_sense_sums_trail_and_weighted_food_over_window():
    trail, food = _fields()
    params = make_params(sensor_distance=10, sensor_size=1, food_desire=2.5)
    # Window for sensor_size 1 covers offsets -1 and 0 around the target cell (60, 50).
    for x, y in [(59, 49), (60, 49), (59, 50), (60, 50)]:
        trail.add(x, y, 1.0)
        food.add(x, y, 2.0)
    trail.add(61, 51, 100.0)

    value = steering.sense(_agent(), 0.0, trail, food, params)

    assert value == pytest.approx(4.0 + 2.5 * 8.0)


def test_compound_turn_and_reversal_apply_together():
    trail, food = _fields()
    params = make_params(speed=2.0, **_PARAMS)
    food.add(60, 50, -1.0)  # forward < 0
    trail.add(50, 60, 5.0)  # left
    trail.add(50, 40, 2.0)  # right
    agent = _agent()

    steering.update_agent(agent, trail, food, params)

    expected = 0.3 + math.pi
    assert agent.heading == pytest.approx(expected)
    assert agent.position.x == pytest.approx(50.0 + 2.0 * math.cos(expected))
    assert agent.position.y == pytest.approx(50.0 + 2.0 * math.sin(expected))


def test_right_turn_when_right_strictly_dominates():
    trail, food = _fields()
    params = make_params(**_PARAMS)
    trail.add(50, 40, 3.0)
    agent = _agent()

    steering.update_heading(agent, trail, food, params)

    assert agent.heading == pytest.approx(-0.3)


@pytest.mark.parametrize(
    "left,forward,right",
    [(0.0, 0.0, 0.0), (1.0, 5.0, 2.0), (3.0, 1.0, 3.0), (2.0, 2.0, 1.0)],
)
def test_no_turn_without_strict_side_maximum(left, forward, right):
    trail, food = _fields()
    params = make_params(**_PARAMS)
    trail.add(50, 60, left)
    trail.add(60, 50, forward)
    trail.add(50, 40, right)
    agent = _agent()

    steering.update_heading(agent, trail, food, params)

    assert agent.heading == pytest.approx(0.0)


def test_negative_forward_reverses_even_when_all_equal():
    trail, food = _fields()
    food.values[:] = -1.0
    params = make_params(**_PARAMS)
    agent = _agent(heading=0.5)

    steering.update_heading(agent, trail, food, params)

    assert agent.heading == pytest.approx(0.5 + math.pi)


def test_heading_accumulates_without_wrapping():
    trail, food = _fields()
    food.values[:] = -1.0
    params = make_params(**_PARAMS)
    agent = _agent(heading=0.0)

    for _ in range(3):
        steering.update_heading(agent, trail, food, params)

    assert agent.heading == pytest.approx(3 * math.pi)


@pytest.mark.parametrize("speed", [0.1, 3.4, 20.0, 750.0])
def test_position_stays_inside_torus_for_any_heading(speed):
    trail, food = _fields(50)
    params = make_params(speed=speed, sensor_distance=10)
    for step in range(64):
        heading = step * (2 * math.pi / 64) + 0.01
        for start in [(0.0, 0.0), (49.99, 49.99), (0.2, 49.7), (25.0, 25.0)]:
            agent = _agent(start[0], start[1], heading)
            steering.update_agent(agent, trail, food, params)
            assert 0.0 <= agent.position.x < 50.0
            assert 0.0 <= agent.position.y < 50.0


def test_wrap_handles_tiny_negative_coordinates():
    agent = _agent(-1e-17, -1e-300)

    steering.wrap_position(agent, 50, 40)

    assert 0.0 <= agent.position.x < 50.0
    assert 0.0 <= agent.position.y < 40.0


def test_extreme_sensor_parameters_never_index_out_of_bounds():
    trail, food = _fields(30)
    params = make_params(sensor_distance=10_000, sensor_size=40)
    agent = _agent(1.0, 29.0, heading=2.0)

    steering.update_agent(agent, trail, food, params)

    assert 0.0 <= agent.position.x < 30.0


def _scattered_agents(count: int, size: int, seed: int) -> list[Agent]:
    rng = np.random.default_rng(seed)
    positions = rng.uniform(0.0, size, size=(count, 2))
    headings = rng.uniform(-10.0, 10.0, size=count)
    # A few agents parked on the seam so sensor windows straddle the wrap.
    positions[:4] = [(0.0, 0.0), (size - 0.5, 0.49), (0.5, size - 0.01), (size / 2, 0.0)]
    return [
        Agent(id=index, position=Vector2(float(x), float(y)), heading=float(h))
        for index, ((x, y), h) in enumerate(zip(positions, headings))
    ]


@pytest.mark.parametrize("sensor_size", [1, 3])
def test_batched_update_matches_one_by_one_update(sensor_size):
    size = 60
    rng = np.random.default_rng(5)
    trail = ScalarField(size, size, rng.uniform(0.0, 3.0, size=(size, size)))
    food = ScalarField(size, size, rng.uniform(-2.0, 1.0, size=(size, size)))
    # Flat patch so some agents see exact ties.
    trail.values[20:40, 20:40] = 0.0
    food.values[20:40, 20:40] = 0.0
    params = make_params(sensor_size=sensor_size, sensor_distance=7, sensor_angle=0.6, turning_speed=0.4, speed=3.4)

    expected = _scattered_agents(300, size, seed=9)
    batched = _scattered_agents(300, size, seed=9)
    for agent in expected:
        steering.update_agent(agent, trail, food, params)
    steering.update_agents(batched, trail, food, params)

    for want, got in zip(expected, batched):
        assert got.heading == pytest.approx(want.heading, abs=1e-9)
        assert got.position.x == pytest.approx(want.position.x, abs=1e-9)
        assert got.position.y == pytest.approx(want.position.y, abs=1e-9)
        assert 0.0 <= got.position.x < size
        assert 0.0 <= got.position.y < size


def test_sense_all_agrees_with_sense():
    size = 40
    rng = np.random.default_rng(2)
    trail = ScalarField(size, size, rng.uniform(0.0, 1.0, size=(size, size)))
    food = ScalarField(size, size, rng.uniform(-1.0, 1.0, size=(size, size)))
    params = make_params(sensor_size=2, sensor_distance=12, food_desire=8.3)
    agents = _scattered_agents(50, size, seed=4)
    xs = np.array([agent.position.x for agent in agents])
    ys = np.array([agent.position.y for agent in agents])
    headings = np.array([agent.heading for agent in agents])

    values = steering.sense_all(xs, ys, headings, 0.52, trail, food, params)

    assert values.tolist() == pytest.approx([steering.sense(agent, 0.52, trail, food, params) for agent in agents])


def test_batched_update_with_extreme_sensors_and_no_agents():
    trail, food = _fields(30)
    params = make_params(sensor_distance=10_000, sensor_size=40, speed=750.0)
    agents = [_agent(1.0, 29.0, heading=2.0), _agent(-1e-17, 0.0, heading=-2.0)]

    steering.update_agents(agents, trail, food, params)
    steering.update_agents([], trail, food, params)

    for agent in agents:
        assert 0.0 <= agent.position.x < 30.0
        assert 0.0 <= agent.position.y < 30.0
