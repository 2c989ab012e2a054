from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def wrap_coordinate(value: float, size: float) -> float:
    wrapped = value % size
    # Tiny negatives can round up to exactly ``size``.
    if wrapped >= size:
        wrapped -= size
    return wrapped


def remap(value: float, in_low: float, in_high: float, out_low: float, out_high: float) -> float:
    return out_low + (value - in_low) * (out_high - out_low) / (in_high - in_low)
