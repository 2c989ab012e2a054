from __future__ import annotations

from dataclasses import dataclass, field

from pygame.math import Vector2


@dataclass(slots=True)
class Agent:
    id: int
    position: Vector2 = field(default_factory=Vector2)
    heading: float = 0.0
