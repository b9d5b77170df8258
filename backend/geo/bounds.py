from __future__ import annotations

import math
from dataclasses import dataclass

from shapely.geometry import Polygon
from shapely.geometry import box as shapely_box

from rpc.errors import InvalidBoundsError

# 3 decimals is ~111m at the equator: coarse enough to absorb drag jitter,
# fine enough to tell real viewport moves apart.
KEY_DECIMALS = 3


@dataclass(frozen=True)
class MapBounds:
    """
    WGS84 viewport extent in degrees.

    Convention used throughout this repo: north/south are latitudes, east/west
    longitudes, with north > south and east > west. Viewports crossing the
    anti-meridian are not supported.
    """

    north: float
    south: float
    east: float
    west: float

    def __post_init__(self) -> None:
        vals = (self.north, self.south, self.east, self.west)
        if not all(math.isfinite(float(v)) for v in vals):
            raise InvalidBoundsError(f"Bounds must be finite: {vals}")
        if not self.north > self.south:
            raise InvalidBoundsError(
                f"north ({self.north}) must be greater than south ({self.south})"
            )
        if not self.east > self.west:
            raise InvalidBoundsError(
                f"east ({self.east}) must be greater than west ({self.west})"
            )

    @classmethod
    def from_key(cls, key: str) -> "MapBounds":
        parts = (key or "").split("_")
        if len(parts) != 4:
            raise InvalidBoundsError(f"Invalid bounds key: {key!r}")
        try:
            north, south, east, west = (float(p) for p in parts)
        except ValueError as e:
            raise InvalidBoundsError(f"Invalid bounds key: {key!r}") from e
        return cls(north=north, south=south, east=east, west=west)

    def key(self) -> str:
        return normalize_bounds(self)

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def as_polygon(self) -> Polygon:
        return shapely_box(self.west, self.south, self.east, self.north)

    def as_dict(self) -> dict[str, float]:
        return {
            "north": self.north,
            "south": self.south,
            "east": self.east,
            "west": self.west,
        }


def _fmt(v: float) -> str:
    s = f"{float(v):.{KEY_DECIMALS}f}"
    # Avoid "-0.000" and "0.000" producing two keys for the same viewport.
    if float(s) == 0.0:
        return f"{0.0:.{KEY_DECIMALS}f}"
    return s


def normalize_bounds(bounds: MapBounds) -> str:
    """
    Stable cache key for a viewport: `north_south_east_west`, 3 decimals each.
    """
    return "_".join(
        _fmt(v) for v in (bounds.north, bounds.south, bounds.east, bounds.west)
    )
