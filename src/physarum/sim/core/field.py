from __future__ import annotations

from typing import Sequence

import numpy as np

from ..utils.math2d import round_half_up


class ScalarField:
    """W x H grid of floats stored row-major as an ``(H, W)`` array.

    Coordinates are rounded half-up to the nearest cell and every index is
    wrapped toroidally, so reads and writes never leave the grid.
    """

    def __init__(self, width: int, height: int, values: np.ndarray | None = None):
        self._width = int(width)
        self._height = int(height)
        if values is None:
            self._values = np.zeros((self._height, self._width), dtype=np.float64)
        else:
            if values.shape != (self._height, self._width):
                raise ValueError(
                    f"Field values have shape {values.shape}, expected {(self._height, self._width)}"
                )
            self._values = np.array(values, dtype=np.float64)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def values(self) -> np.ndarray:
        return self._values

    def cell(self, x: float, y: float) -> tuple[int, int]:
        return (round_half_up(x) % self._width, round_half_up(y) % self._height)

    def get(self, x: float, y: float) -> float:
        ix, iy = self.cell(x, y)
        return float(self._values[iy, ix])

    def add(self, x: float, y: float, delta: float) -> None:
        ix, iy = self.cell(x, y)
        self._values[iy, ix] += delta

    def window_sum(self, cx: int, cy: int, offsets: Sequence[int]) -> float:
        # Row by row, left to right: the same order the batched sensing adds in.
        total = 0.0
        for dy in offsets:
            row = self._values[(cy + dy) % self._height]
            for dx in offsets:
                total += float(row[(cx + dx) % self._width])
        return total

    def snapshot(self) -> np.ndarray:
        frozen = self._values.copy()
        frozen.flags.writeable = False
        return frozen

    def total(self) -> float:
        return float(self._values.sum())

    def max(self) -> float:
        return float(self._values.max()) if self._values.size else 0.0
