from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

import numpy as np

from ..core.config import FoodConfig, GeoConfig
from ..core.field import ScalarField
from ..types.geo import GeoRecord
from ..utils.math2d import remap

logger = logging.getLogger(__name__)


def add_negative_border(field: ScalarField, thickness: int = 20, penalty: float = 100.0) -> None:
    """Subtract ``penalty`` from every cell within ``thickness`` of an edge.

    Each edge band is applied on its own, so corner cells are penalised
    once per band they fall in.
    """
    values = field.values
    band = max(0, int(thickness))
    if band == 0:
        return
    values[:, :band] -= penalty
    values[:, max(0, field.width - band):] -= penalty
    values[:band, :] -= penalty
    values[max(0, field.height - band):, :] -= penalty


def add_mask_penalty(
    field: ScalarField, mask: np.ndarray, threshold: float = 220.0, penalty: float = 200.0
) -> int:
    """Penalise every cell whose mask pixel is brighter than ``threshold``.

    ``mask`` is an ``(H, W, channels)`` array; luminance is the mean of the
    first three channels. Returns the number of penalised cells.
    """
    if mask.ndim != 3 or mask.shape[2] < 3:
        raise ValueError(f"Mask must have shape (H, W, >=3), got {mask.shape}")
    if mask.shape[:2] != (field.height, field.width):
        raise ValueError(
            f"Mask size {mask.shape[1]}x{mask.shape[0]} does not match field {field.width}x{field.height}"
        )
    luminance = mask[:, :, :3].astype(np.float64).sum(axis=2) / 3.0
    excluded = luminance > threshold
    field.values[excluded] -= penalty
    return int(excluded.sum())


def add_food_ring(
    field: ScalarField, cx: float, cy: float, intensity: float, radius: int = 5, samples: int = 100
) -> None:
    # Every ring gets the same number of samples, so inner rings end up denser.
    for r in range(1, radius):
        for i in range(samples):
            theta = 2.0 * math.pi * i / samples
            field.add(cx + r * math.cos(theta), cy + r * math.sin(theta), intensity)


def geo_scale(records: Sequence[GeoRecord], width: int, fill: float = 0.92) -> tuple[float, float]:
    longitudes = [record.longitude for record in records]
    latitudes = [record.latitude for record in records]
    lon_range = max(longitudes) - min(longitudes)
    lat_range = max(latitudes) - min(latitudes)
    if lon_range <= 0 or lat_range <= 0:
        raise ValueError("Geographic records must span a non-zero latitude and longitude range")
    span = width * fill
    return (-span / lon_range, span / lat_range)


def population_to_intensity(
    population: float,
    domain: tuple[float, float] = (0.0, 12_000_000.0),
    intensity_range: tuple[float, float] = (10.0, 1000.0),
) -> float:
    return remap(population, domain[0], domain[1], intensity_range[0], intensity_range[1])


def geo_pixel(
    record: GeoRecord, reference: GeoRecord, reference_pixel: tuple[float, float], scale: tuple[float, float]
) -> tuple[float, float]:
    scale_x, scale_y = scale
    x = (reference.longitude - record.longitude) * scale_x + reference_pixel[0]
    y = (reference.latitude - record.latitude) * scale_y + reference_pixel[1]
    return (x, y)


def geo_deposit(
    field: ScalarField,
    records: Sequence[GeoRecord],
    reference_pixel: tuple[float, float],
    geo: Optional[GeoConfig] = None,
    food: Optional[FoodConfig] = None,
) -> int:
    if not records:
        return 0
    geo = geo or GeoConfig()
    food = food or FoodConfig()
    scale = geo_scale(records, field.width, geo.map_fill)
    reference = records[0]
    for record in records:
        x, y = geo_pixel(record, reference, reference_pixel, scale)
        intensity = population_to_intensity(record.population, geo.population_domain, geo.intensity_range)
        add_food_ring(field, x, y, intensity, food.ring_radius, food.ring_samples)
    return len(records)


def scaled_reference_pixel(geo: GeoConfig, width: int) -> tuple[float, float]:
    # Reference pixel is authored for a 400 px wide grid.
    factor = width / 400.0
    return (geo.reference_pixel[0] * factor, geo.reference_pixel[1] * factor)


def build_food_field(
    width: int,
    height: int,
    food: FoodConfig,
    geo: GeoConfig,
    geographic: bool,
    records: Sequence[GeoRecord] = (),
    mask: Optional[np.ndarray] = None,
) -> ScalarField:
    field = ScalarField(width, height)
    add_negative_border(field, food.border_thickness, food.border_penalty)
    if not geographic:
        return field
    if mask is not None:
        excluded = add_mask_penalty(field, mask, food.mask_threshold, food.mask_penalty)
        logger.debug("Mask excluded %d cells", excluded)
    if not records:
        logger.warning("Geographic mode enabled but no geographic records were supplied")
        return field
    deposited = geo_deposit(field, records, scaled_reference_pixel(geo, width), geo, food)
    logger.info("Deposited food for %d geographic records", deposited)
    return field
