from __future__ import annotations

from typing import Any, Sequence

from shapely.geometry import Point
from shapely.prepared import prep

from geo.bounds import MapBounds
from mapdata.types import PropertyCluster, PropertyMarker
from render.surface import SurfaceEvents


class PlaceholderSurface(SurfaceEvents):
    """
    Non-interactive fallback (no map library / no API key). Reports counts only.
    """

    name = "placeholder"

    def render(
        self,
        properties: Sequence[PropertyMarker],
        clusters: Sequence[PropertyCluster],
        *,
        is_loading: bool = False,
        bounds: MapBounds | None = None,
        zoom: float | None = None,
    ) -> dict[str, Any]:
        in_view = len(properties)
        if bounds is not None and properties:
            area = prep(bounds.as_polygon())
            in_view = sum(1 for p in properties if area.covers(Point(p.lng, p.lat)))

        clustered = sum(c.count for c in clusters)
        total = len(properties) + clustered
        if is_loading:
            message = "Loading properties..."
        elif total == 0:
            message = "No properties in this area"
        else:
            message = f"{total} properties in this area"

        return {
            "surface": self.name,
            "isLoading": bool(is_loading),
            "message": message,
            "counts": {
                "properties": len(properties),
                "propertiesInView": in_view,
                "clusters": len(clusters),
                "clusteredProperties": clustered,
                "total": total,
            },
            "zoom": float(zoom) if zoom is not None else None,
        }
