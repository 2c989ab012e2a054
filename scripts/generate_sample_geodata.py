#!/usr/bin/env python3
"""Generate a synthetic geographic dataset: a city CSV and a matching brightness mask PNG."""
from __future__ import annotations

import argparse
import csv
import math
import random
import struct
import zlib
from pathlib import Path

WHITE = 255
BLACK = 0


def build_mask_rows(width: int, height: int, radius_fraction: float) -> list[bytes]:
    # Black disc of permitted travel on a white (excluded) background.
    cx = width / 2.0
    cy = height / 2.0
    radius = min(width, height) * radius_fraction
    rows = []
    for y in range(height):
        row = bytearray()
        for x in range(width):
            inside = math.hypot(x - cx, y - cy) <= radius
            level = BLACK if inside else WHITE
            row.extend((level, level, level))
        rows.append(bytes(row))
    return rows


def build_png(width: int, height: int, rows: list[bytes]) -> bytes:
    raw = b"".join(b"\x00" + row for row in rows)
    compressed = zlib.compress(raw)

    def chunk(chunk_type: bytes, data: bytes) -> bytes:
        return (
            struct.pack(">I", len(data))
            + chunk_type
            + data
            + struct.pack(">I", zlib.crc32(chunk_type + data) & 0xFFFFFFFF)
        )

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IDAT", compressed) + chunk(
        b"IEND", b""
    )


def build_cities(count: int, seed: int) -> list[tuple[str, float, float, int]]:
    rng = random.Random(seed)
    center_lat, center_lon = 46.5, 2.5
    cities = [("Capital", center_lat + 2.3, center_lon - 0.2, 2_150_000)]
    for index in range(1, count):
        lat = center_lat + rng.uniform(-4.0, 4.0)
        lon = center_lon + rng.uniform(-4.5, 5.0)
        population = int(5_000 * math.exp(rng.uniform(0.0, 5.0)))
        cities.append((f"City {index:03d}", round(lat, 4), round(lon, 4), population))
    return cities


def write_asset(path: Path, data: bytes, overwrite: bool) -> None:
    if path.exists() and not overwrite:
        raise FileExistsError(f"{path} already exists. Use --overwrite to replace.")
    path.write_bytes(data)


def write_cities(path: Path, cities: list[tuple[str, float, float, int]], overwrite: bool) -> None:
    if path.exists() and not overwrite:
        raise FileExistsError(f"{path} already exists. Use --overwrite to replace.")
    with path.open("w", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(["name", "latitude", "longitude", "population"])
        writer.writerows(cities)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a synthetic city CSV and exclusion mask.")
    parser.add_argument("--output-dir", type=Path, default=Path("data"), help="Directory to write into.")
    parser.add_argument("--size", type=int, default=400, help="Mask width and height in pixels.")
    parser.add_argument("--cities", type=int, default=60, help="Number of cities to generate.")
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--overwrite", action="store_true", help="Overwrite existing files.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    rows = build_mask_rows(args.size, args.size, radius_fraction=0.45)
    write_asset(output_dir / "mask.png", build_png(args.size, args.size, rows), args.overwrite)
    write_cities(output_dir / "cities.csv", build_cities(args.cities, args.seed), args.overwrite)

    print(f"Generated sample geodata in {output_dir}")


if __name__ == "__main__":
    main()
