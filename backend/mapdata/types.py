from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from geo.bounds import MapBounds

ListingType = Literal["venta", "renta"]


class MapCenter(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class MapViewport(BaseModel):
    """
    Snapshot of the map camera, derived from map-library events.
    """

    model_config = ConfigDict(frozen=True)

    bounds: MapBounds
    zoom: float = Field(ge=0.0, le=24.0)
    center: MapCenter | None = None


class MapFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    listing_type: ListingType | None = None
    property_type: str | None = None
    price_min: float | None = Field(default=None, ge=0.0)
    price_max: float | None = Field(default=None, ge=0.0)
    bedrooms_min: int | None = Field(default=None, ge=0)
    bathrooms_min: int | None = Field(default=None, ge=0)
    state: str | None = None
    municipality: str | None = None
    colonia: str | None = None

    @field_validator("property_type", "state", "municipality", "colonia", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        # An empty select box means "no filter", same as absence.
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def rpc_params(self) -> dict[str, Any]:
        """
        Filter part of the `get_map_data` parameters. Every key is always present.
        """
        return {
            "p_listing_type": self.listing_type,
            "p_property_type": self.property_type,
            "p_price_min": self.price_min,
            "p_price_max": self.price_max,
            "p_bedrooms_min": self.bedrooms_min,
            "p_bathrooms_min": self.bathrooms_min,
            "p_state": self.state,
            "p_municipality": self.municipality,
        }

    def cache_key(self) -> str:
        return json.dumps(self.rpc_params(), sort_keys=True, separators=(",", ":"))


class PropertyImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    position: int = 0


class PropertyMarker(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    lat: float
    lng: float
    price: float = 0.0
    currency: str = "MXN"
    title: str = ""
    listing_type: str = "venta"
    type: str = "casa"
    bedrooms: int | None = None
    bathrooms: float | None = None
    parking: int | None = None
    sqft: float | None = None
    images: tuple[PropertyImage, ...] = ()
    agent_id: str | None = None
    is_featured: bool = False


class PropertyCluster(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    lat: float
    lng: float
    count: int = 0
    min_price: float | None = None
    max_price: float | None = None
    avg_price: float | None = None
    # Server-computed; treated as opaque.
    expansion_zoom: int


class MapDataResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    properties: tuple[PropertyMarker, ...] = ()
    clusters: tuple[PropertyCluster, ...] = ()
    total_count: int = Field(
        default=0, validation_alias=AliasChoices("total_count", "total_in_viewport")
    )
    is_clustered: bool = False

    def authoritative(self) -> tuple[PropertyMarker, ...] | tuple[PropertyCluster, ...]:
        """
        The half of the result the caller should render.
        """
        return self.clusters if self.is_clustered else self.properties


EMPTY_MAP_DATA = MapDataResponse()
