from __future__ import annotations

import math
import random
from typing import Optional

from pygame.math import Vector2


class DeterministicRng:
    def __init__(self, seed: Optional[int]):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    def reset(self) -> None:
        # Unseeded sources draw fresh OS entropy on every reset.
        self._random.seed(self._seed)

    def next_heading(self) -> float:
        return self._random.uniform(0.0, 2.0 * math.pi)

    def next_point_in_square(self, center: Vector2, half_width: float, half_height: float) -> Vector2:
        return Vector2(
            center.x + self._random.uniform(-half_width, half_width),
            center.y + self._random.uniform(-half_height, half_height),
        )
