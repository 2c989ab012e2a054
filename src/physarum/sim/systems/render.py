from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import pygame

FOOD_RANGE = (-100.0, 200.0)


def trail_to_rgba(trail: np.ndarray) -> np.ndarray:
    red = np.clip(trail * 255.0, 0.0, 255.0)
    rgba = np.empty(trail.shape + (4,), dtype=np.uint8)
    rgba[..., 0] = red
    rgba[..., 1] = red / 5.0
    rgba[..., 2] = np.minimum(red * red / 200.0, 255.0)
    rgba[..., 3] = 255
    return rgba


def food_to_gray(food: np.ndarray, value_range: tuple[float, float] = FOOD_RANGE) -> np.ndarray:
    low, high = value_range
    gray = np.clip((food - low) / (high - low), 0.0, 1.0) * 255.0
    rgba = np.empty(food.shape + (4,), dtype=np.uint8)
    rgba[..., 0] = gray
    rgba[..., 1] = gray
    rgba[..., 2] = gray
    rgba[..., 3] = 255
    return rgba


def to_surface(rgba: np.ndarray) -> pygame.Surface:
    # pygame.surfarray expects (W, H, 3), fields are (H, W).
    return pygame.surfarray.make_surface(np.ascontiguousarray(rgba[..., :3].transpose(1, 0, 2)))


def render_view(trail: np.ndarray, food: np.ndarray, view: str = "trail") -> np.ndarray:
    if view == "trail":
        return trail_to_rgba(trail)
    if view == "food":
        return food_to_gray(food)
    raise ValueError(f"Unknown view: {view}")


def encode_png(rgba: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    pygame.image.save(to_surface(rgba), buffer, "frame.png")
    return buffer.getvalue()


def save_frame(rgba: np.ndarray, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pygame.image.save(to_surface(rgba), str(path))
    return path
