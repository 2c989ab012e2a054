from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import List

import numpy as np
import pygame

from ..types.geo import GeoRecord

logger = logging.getLogger(__name__)


def _parse_row(row: list[str], line: int) -> GeoRecord:
    if len(row) < 4:
        raise ValueError(f"Line {line}: expected name,latitude,longitude,population, got {row!r}")
    try:
        return GeoRecord(
            name=row[0].strip(),
            latitude=float(row[1]),
            longitude=float(row[2]),
            population=float(row[3]),
        )
    except ValueError as exc:
        raise ValueError(f"Line {line}: {exc}") from exc


def _looks_like_header(row: list[str]) -> bool:
    if len(row) < 2:
        return False
    try:
        float(row[1])
    except ValueError:
        return True
    return False


def load_geo_records(path: Path) -> List[GeoRecord]:
    """Read ``name,latitude,longitude,population`` rows; the first record is the reference."""
    records: List[GeoRecord] = []
    with Path(path).open(newline="") as handle:
        for line, row in enumerate(csv.reader(handle), start=1):
            if not row or not any(cell.strip() for cell in row):
                continue
            if line == 1 and _looks_like_header(row):
                continue
            records.append(_parse_row(row, line))
    logger.info("Loaded %d geographic records from %s", len(records), path)
    return records


def load_mask(path: Path) -> np.ndarray:
    """Load an image as an ``(H, W, 3)`` uint8 array."""
    surface = pygame.image.load(str(path))
    # surfarray is indexed (x, y); fields are (y, x).
    return np.ascontiguousarray(pygame.surfarray.array3d(surface).transpose(1, 0, 2))
