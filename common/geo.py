from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterator, Tuple


# Zoom 0 covers the whole latitude range with one cell; each level halves it.
BASE_CELL_DEGREES = 180.0


# -------------------------
# Bounds
# -------------------------
@dataclass(frozen=True, slots=True)
class Bounds:
    """Axis-aligned lat/lng rectangle in degrees. Edges are inclusive."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return (self.min_lat <= lat <= self.max_lat) and (self.min_lng <= lng <= self.max_lng)

    def intersects(self, other: "Bounds") -> bool:
        return not (
            other.max_lat < self.min_lat
            or other.min_lat > self.max_lat
            or other.max_lng < self.min_lng
            or other.min_lng > self.max_lng
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "minLat": self.min_lat,
            "maxLat": self.max_lat,
            "minLng": self.min_lng,
            "maxLng": self.max_lng,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Bounds":
        return cls(
            min_lat=float(d["minLat"]),
            max_lat=float(d["maxLat"]),
            min_lng=float(d["minLng"]),
            max_lng=float(d["maxLng"]),
        )


WORLD_BOUNDS = Bounds(min_lat=-90.0, max_lat=90.0, min_lng=-180.0, max_lng=180.0)


# -------------------------
# Grid cell math
# -------------------------
def cell_size(zoom: int) -> float:
    """Cell edge length in degrees for a grid zoom level (180 / 2^zoom)."""
    if zoom < 0:
        raise ValueError("zoom must be >= 0")
    return BASE_CELL_DEGREES / (2 ** int(zoom))


def lat_lng_to_grid(lat: float, lng: float, size: float) -> Tuple[int, int]:
    """
    Map a coordinate to integer grid coordinates (x, y).

    x = floor((lng + 180) / size), y = floor((lat + 90) / size)

    No clamping: lat=90 or lng=180 land in the row/column just past the
    world edge, whose bounds still contain the coordinate.
    """
    x = math.floor((lng + 180.0) / size)
    y = math.floor((lat + 90.0) / size)
    return int(x), int(y)


def grid_to_bounds(x: int, y: int, size: float) -> Bounds:
    """Inverse of lat_lng_to_grid: the rectangle covered by cell (x, y)."""
    min_lat = y * size - 90.0
    min_lng = x * size - 180.0
    return Bounds(min_lat=min_lat, max_lat=min_lat + size, min_lng=min_lng, max_lng=min_lng + size)


def cell_key(x: int, y: int) -> str:
    return f"{x}-{y}"


def parse_cell_key(key: str) -> Tuple[int, int]:
    """
    Parse "x-y" back into integers. Either coordinate may be negative
    (e.g. "-1-3", "2--1"), so split on the first '-' that follows a digit.
    """
    for i in range(1, len(key)):
        if key[i] == "-" and key[i - 1].isdigit():
            try:
                return int(key[:i]), int(key[i + 1:])
            except ValueError:
                break
    raise ValueError(f"Malformed cell key: {key!r}")


def zoom_key(zoom: int) -> str:
    """Directory / stats key for a grid zoom level, e.g. 'z6'."""
    return f"z{int(zoom)}"


def cells_in_span(
    south: float, west: float, north: float, east: float, size: float
) -> Iterator[Tuple[int, int]]:
    """
    Every (x, y) whose cell rectangle intersects the span, edges inclusive.
    A span edge lying exactly on a cell boundary yields the cells on both
    sides of that boundary.
    """
    min_x, min_y = lat_lng_to_grid(south, west, size)
    max_x, max_y = lat_lng_to_grid(north, east, size)
    # A lower edge exactly on a boundary also touches the cell below/left of it;
    # the world edge itself has nothing below it.
    if min_x > 0 and (west + 180.0) / size == min_x:
        min_x -= 1
    if min_y > 0 and (south + 90.0) / size == min_y:
        min_y -= 1
    for x in range(min_x, max_x + 1):
        for y in range(min_y, max_y + 1):
            yield x, y
