"""
Region Module for the Adaptive Vehicle Crawl
--------------------------------

This module provides the rectangular query regions used by the crawl and the
subdivision step which splits a region that keeps yielding new vehicles into
smaller regions one zoom level deeper.

Functions:
  middle_between(a, b) -> float:
    Arithmetic midpoint of two distinct coordinates.

  slices_for_zoom(zoom) -> tuple:
    Rows and columns to split a region of the given zoom into. Odd zooms are
    cut into two rows, even zooms into two columns, so successive generations
    alternate between horizontal and vertical halves.

  subdivide_region(region, new_found, rows, cols) -> list:
    Split a region into rows*cols children covering exactly the parent's
    rectangle, each with zoom+1 and `found_by_parent` set to `new_found`.
"""

from dataclasses import dataclass
from typing import List, Tuple

from ..exceptions import InvalidRegion


def middle_between(number1: float, number2: float) -> float:
    smaller = min(number1, number2)
    larger = max(number1, number2)
    if smaller == larger:
        raise InvalidRegion(f"Cannot compute a center between identical values {smaller}")
    return smaller + (larger - smaller) / 2


@dataclass(frozen=True)
class Region:
    """A rectangle plus zoom level, submitted as one API query."""

    north_east_lat: float
    north_east_lon: float
    south_west_lat: float
    south_west_lon: float
    zoom: int
    found_by_parent: int = 0

    def __post_init__(self):
        if not (self.north_east_lat > self.south_west_lat and self.north_east_lon > self.south_west_lon):
            raise InvalidRegion(
                f"North-east ({self.north_east_lat}, {self.north_east_lon}) must lie north-east of "
                f"south-west ({self.south_west_lat}, {self.south_west_lon})"
            )

    @property
    def center_lat(self) -> float:
        return middle_between(self.south_west_lat, self.north_east_lat)

    @property
    def center_lon(self) -> float:
        return middle_between(self.south_west_lon, self.north_east_lon)

    def as_log_dict(self) -> dict:
        return {
            "ne": [self.north_east_lat, self.north_east_lon],
            "sw": [self.south_west_lat, self.south_west_lon],
            "zoom": self.zoom,
            "found_by_parent": self.found_by_parent,
        }


def slices_for_zoom(zoom: int) -> Tuple[int, int]:
    """Rows and columns for the next subdivision of a region at `zoom`."""
    return (2, 1) if zoom % 2 == 1 else (1, 2)


def _edges(low: float, high: float, parts: int) -> List[float]:
    # Outer edges are the parent's own values; inner edges are shared by both neighbours.
    inner = [low + (high - low) * i / parts for i in range(1, parts)]
    return [low] + inner + [high]


def subdivide_region(region: Region, new_found: int, rows: int, cols: int) -> List[Region]:
    """Subdivide a region into rows*cols smaller regions, ordered south-west to north-east, row by row."""
    if rows < 1 or cols < 1:
        raise ValueError(f"rows and cols must be positive, got {rows}x{cols}")
    if region.north_east_lat == region.south_west_lat or region.north_east_lon == region.south_west_lon:
        raise InvalidRegion("Cannot subdivide a region with a zero span")

    lat_edges = _edges(region.south_west_lat, region.north_east_lat, rows)
    lon_edges = _edges(region.south_west_lon, region.north_east_lon, cols)
    next_zoom = region.zoom + 1

    children = []
    for row in range(rows):
        for col in range(cols):
            children.append(Region(
                north_east_lat=lat_edges[row + 1],
                north_east_lon=lon_edges[col + 1],
                south_west_lat=lat_edges[row],
                south_west_lon=lon_edges[col],
                zoom=next_zoom,
                found_by_parent=new_found,
            ))
    return children
