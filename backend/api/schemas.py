from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from geo.bounds import MapBounds
from mapdata.types import MapCenter, MapFilters, MapViewport


class ApiBounds(BaseModel):
    north: float = Field(ge=-90.0, le=90.0)
    south: float = Field(ge=-90.0, le=90.0)
    east: float = Field(ge=-180.0, le=180.0)
    west: float = Field(ge=-180.0, le=180.0)

    @model_validator(mode="after")
    def _ordered(self) -> "ApiBounds":
        if self.north <= self.south:
            raise ValueError("north must be greater than south")
        if self.east <= self.west:
            raise ValueError("east must be greater than west")
        return self

    def to_bounds(self) -> MapBounds:
        return MapBounds(north=self.north, south=self.south, east=self.east, west=self.west)


class ApiViewport(BaseModel):
    bounds: ApiBounds
    zoom: float = Field(ge=0.0, le=24.0)
    center: MapCenter | None = None

    def to_viewport(self) -> MapViewport:
        return MapViewport(bounds=self.bounds.to_bounds(), zoom=self.zoom, center=self.center)


class MapDataRequest(BaseModel):
    bounds: ApiBounds | None = None
    zoom: float = Field(default=0.0, ge=0.0, le=24.0)
    filters: MapFilters = Field(default_factory=MapFilters)
    enabled: bool = True
    surface: str | None = None


class SearchRequest(BaseModel):
    query: str = ""
    filters: MapFilters = Field(default_factory=MapFilters)
    limit: int | None = Field(default=None, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class StreamMessage(BaseModel):
    """
    Client -> server message on the map stream.

    - viewport: the camera moved
    - frames: recent frame durations (ms) from the client's render loop
    - filters: the filter panel changed
    - marker_click / property_hover: forwarded to the surface
    """

    type: Literal["viewport", "frames", "filters", "marker_click", "property_hover"]
    viewport: ApiViewport | None = None
    frames: list[float] = Field(default_factory=list)
    filters: MapFilters | None = None
    clusterId: str | None = None
    propertyId: str | None = None
