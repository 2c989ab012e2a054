from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from dataclasses import replace
from pathlib import Path
from typing import Optional

import numpy as np

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.systems import render
from ..sim.systems.fields import agent_cells
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)


_BASIC_HEADER = [
    "tick",
    "agents",
    "trail_total",
    "trail_max",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "agents",
    "trail_total",
    "trail_max",
    "tick_ms",
    "trail_mean",
    "trail_active_cells",
    "trail_coverage",
    "occupied_cells",
    "avg_agents_per_cell",
    "max_cell_occupancy",
    "food_total",
    "params_version",
    "tick_ms_per_agent",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.agents,
        f"{metrics.trail_total:.4f}",
        f"{metrics.trail_max:.4f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: TickMetrics, tick_ms: float) -> list[object]:
    trail = world.trail.values
    cell_count = trail.size
    active_cells = int(np.count_nonzero(trail > 1e-6))
    trail_mean = metrics.trail_total / cell_count if cell_count else 0.0
    coverage = active_cells / cell_count if cell_count else 0.0

    xs, ys = agent_cells(world.agents, world.trail.width, world.trail.height)
    if xs.size:
        flat = ys * world.trail.width + xs
        counts = np.bincount(flat)
        occupied_cells = int(np.count_nonzero(counts))
        max_cell_occupancy = int(counts.max())
        avg_agents_per_cell = metrics.agents / occupied_cells
    else:
        occupied_cells = 0
        max_cell_occupancy = 0
        avg_agents_per_cell = 0.0
    tick_ms_per_agent = 0.0 if metrics.agents <= 0 else tick_ms / metrics.agents

    return [
        metrics.tick,
        metrics.agents,
        f"{metrics.trail_total:.4f}",
        f"{metrics.trail_max:.4f}",
        f"{tick_ms:.3f}",
        f"{trail_mean:.6f}",
        active_cells,
        f"{coverage:.4f}",
        occupied_cells,
        f"{avg_agents_per_cell:.4f}",
        max_cell_occupancy,
        f"{metrics.food_total:.4f}",
        metrics.params_version,
        f"{tick_ms_per_agent:.6f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def _correlation(xs: list[float], ys: list[float]) -> float:
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    mean_x = sum(xs) / len(xs)
    mean_y = sum(ys) / len(ys)
    num = 0.0
    denom_x = 0.0
    denom_y = 0.0
    for x, y in zip(xs, ys):
        dx = x - mean_x
        dy = y - mean_y
        num += dx * dy
        denom_x += dx * dx
        denom_y += dy * dy
    denom = math.sqrt(denom_x * denom_y)
    if denom == 0.0:
        return 0.0
    return float(num / denom)


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 500,
    config: Optional[SimulationConfig] = None,
    frames_dir: Optional[Path] = None,
    frame_every: int = 1,
    frame_view: str = "trail",
) -> World:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")
    if frame_view not in {"trail", "food"}:
        raise ValueError(f"Unknown frame view: {frame_view}")

    config = config if config is not None else SimulationConfig()
    if seed is not None:
        config = replace(config, seed=seed)
    world = World(config)

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    frame_stride = max(1, int(frame_every))
    frames_written = 0
    tick_ms_series: list[float] = []
    trail_total_series: list[float] = []
    trail_max_series: list[float] = []
    peak_trail = (-1.0, -1)

    try:
        for tick in range(steps):
            metrics = world.step(tick)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

            if summary_path:
                tick_ms_series.append(tick_ms)
                trail_total_series.append(metrics.trail_total)
                trail_max_series.append(metrics.trail_max)
                if metrics.trail_max > peak_trail[0]:
                    peak_trail = (metrics.trail_max, tick)

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))

            if frames_dir is not None and tick % frame_stride == 0:
                rgba = render.render_view(world.trail.values, world.food.values, frame_view)
                render.save_frame(rgba, Path(frames_dir) / f"{tick:06d}.png")
                frames_written += 1
    finally:
        if csv_file:
            csv_file.close()

    logger.info("Headless run finished: %d steps, %d frames", steps, frames_written)

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": config.seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "width": config.width,
            "height": config.height,
            "agents": len(world.agents),
            "diffusion": config.diffusion,
            "geographic": config.geographic,
            "frames_written": frames_written,
            "tick_ms": _summary_stats(tick_ms_series),
            "trail_total": _summary_stats(trail_total_series),
            "trail_max": _summary_stats(trail_max_series),
            "correlations": {
                "tick_ms_vs_trail_total": _correlation(tick_ms_series, trail_total_series),
            },
            "peaks": {
                "trail_max": {"value": float(peak_trail[0]), "tick": peak_trail[1]},
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "trail_total": _summary_stats(trail_total_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    return world


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless physarum simulation")
    parser.add_argument("--steps", type=int, default=600)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML simulation config")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=500,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument("--frames-dir", type=Path, default=None, help="Directory to save PNG frames into")
    parser.add_argument("--frame-every", type=int, default=1, help="Save one frame every N ticks")
    parser.add_argument("--frame-view", choices=["trail", "food"], default="trail")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = SimulationConfig.from_yaml(args.config) if args.config else None
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config=config,
        frames_dir=args.frames_dir,
        frame_every=args.frame_every,
        frame_view=args.frame_view,
    )


if __name__ == "__main__":
    main()
