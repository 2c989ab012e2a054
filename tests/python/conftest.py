import os
import sys
from dataclasses import replace
from pathlib import Path

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from physarum.sim.core.config import AgentParams, FoodConfig, ParameterSet, SimulationConfig  # noqa: E402


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-config-tests",
        action="store_true",
        default=False,
        help="run tests that are intended only for configuration changes",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "config_change: marks tests that should only run when configuration files change",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-config-tests"):
        return

    skip_marker = pytest.mark.skip(
        reason="Run only when configuration is modified (use --run-config-tests)",
    )

    for item in items:
        if "config_change" in item.keywords:
            item.add_marker(skip_marker)


def make_params(**overrides) -> AgentParams:
    return replace(ParameterSet().snapshot(), **overrides)


@pytest.fixture
def small_config() -> SimulationConfig:
    config = SimulationConfig(
        width=80,
        height=80,
        seed=11,
        food=FoodConfig(border_thickness=5),
    )
    config.parameters.set("num_agents", 50)
    config.parameters.set("sensor_distance", 4)
    config.parameters.set("speed", 1.0)
    return config
