from __future__ import annotations

from typing import Any, Sequence

from geo.bounds import MapBounds
from mapdata.types import PropertyCluster, PropertyMarker
from render.surface import SurfaceEvents

_LISTING_COLORS = {
    "venta": "rgba(30, 136, 229, 0.85)",
    "renta": "rgba(67, 160, 71, 0.85)",
}


def format_price(price: float, currency: str = "MXN") -> str:
    """
    Short price label for a marker pin: 950K, 2.4M.
    """
    p = float(price or 0.0)
    if p >= 1_000_000:
        label = f"{p / 1_000_000:.1f}M".replace(".0M", "M")
    elif p >= 1_000:
        label = f"{p / 1_000:.0f}K"
    else:
        label = f"{p:.0f}"
    return f"${label}" if currency == "MXN" else f"{label} {currency}"


def trace_bounds(bounds: MapBounds) -> dict[str, Any]:
    lons = [bounds.west, bounds.east, bounds.east, bounds.west, bounds.west]
    lats = [bounds.south, bounds.south, bounds.north, bounds.north, bounds.south]
    return {
        "type": "scattermapbox",
        "name": "Viewport",
        "lon": lons,
        "lat": lats,
        "mode": "lines",
        "line": {"color": "rgba(55, 71, 79, 0.7)", "width": 1},
        "hoverinfo": "skip",
        "showlegend": False,
    }


def trace_properties(properties: Sequence[PropertyMarker]) -> dict[str, Any]:
    return {
        "type": "scattermapbox",
        "name": "Properties",
        "lon": [p.lng for p in properties],
        "lat": [p.lat for p in properties],
        "mode": "markers+text",
        "text": [format_price(p.price, p.currency) for p in properties],
        "textposition": "top center",
        "customdata": [p.id for p in properties],
        "marker": {
            "size": [12 if p.is_featured else 9 for p in properties],
            "color": [
                _LISTING_COLORS.get(p.listing_type, "rgba(255, 193, 7, 0.85)")
                for p in properties
            ],
        },
        "hovertext": [p.title or p.type for p in properties],
        "hovertemplate": "%{hovertext}<br>%{text}<extra></extra>",
    }


def trace_clusters(clusters: Sequence[PropertyCluster]) -> dict[str, Any]:
    return {
        "type": "scattermapbox",
        "name": "Properties (clusters)",
        "lon": [c.lng for c in clusters],
        "lat": [c.lat for c in clusters],
        "mode": "markers+text",
        "text": [str(c.count) for c in clusters],
        "textposition": "middle center",
        "customdata": [[c.id, c.expansion_zoom] for c in clusters],
        "marker": {
            "size": [min(40, 12 + int(c.count**0.5) * 2) for c in clusters],
            "color": "rgba(229, 57, 53, 0.6)",
            "line": {"color": "rgba(229, 57, 53, 0.9)", "width": 1},
        },
        "hovertemplate": "%{text} properties<extra></extra>",
    }


class PlotlyMapSurface(SurfaceEvents):
    """
    Interactive marker map: builds a plotly `scattermapbox` figure payload.

    Marker clicks and hovers come back from the frontend carrying the trace's
    `customdata` (property id, or [cluster id, expansion zoom]).
    """

    name = "plotly"

    def __init__(self, *, style: str = "carto-positron") -> None:
        super().__init__()
        self.style = style

    def render(
        self,
        properties: Sequence[PropertyMarker],
        clusters: Sequence[PropertyCluster],
        *,
        is_loading: bool = False,
        bounds: MapBounds | None = None,
        zoom: float | None = None,
    ) -> dict[str, Any]:
        traces: list[dict[str, Any]] = []
        if bounds is not None:
            traces.append(trace_bounds(bounds))
        # Clusters under single markers.
        if clusters:
            traces.append(trace_clusters(clusters))
        if properties:
            traces.append(trace_properties(properties))

        if bounds is not None:
            center = {
                "lat": (bounds.north + bounds.south) / 2.0,
                "lon": (bounds.east + bounds.west) / 2.0,
            }
        else:
            center = {"lat": 23.6345, "lon": -102.5528}  # Mexico

        return {
            "surface": self.name,
            "data": traces,
            "layout": {
                "mapbox": {
                    "center": center,
                    "zoom": float(zoom) if zoom is not None else 5.0,
                    "style": self.style,
                },
                "showlegend": False,
                "meta": {
                    "isLoading": bool(is_loading),
                    "stats": {
                        "clusterMode": bool(clusters),
                        "renderedProperties": len(properties),
                        "renderedClusters": len(clusters),
                        "clusteredProperties": sum(c.count for c in clusters),
                    },
                },
            },
        }
