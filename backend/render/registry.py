from __future__ import annotations

from typing import Callable

from config.settings import map_surface_name
from render.placeholder import PlaceholderSurface
from render.plotly_surface import PlotlyMapSurface
from render.surface import MapSurface

_SURFACES: dict[str, Callable[[], MapSurface]] = {
    "plotly": PlotlyMapSurface,
    "placeholder": PlaceholderSurface,
}


def surface_names() -> list[str]:
    return sorted(_SURFACES)


def get_surface(name: str | None = None) -> MapSurface:
    """
    Build a fresh surface. Unknown names fall back to the configured default.
    """
    n = (name or "").strip().lower() or map_surface_name()
    factory = _SURFACES.get(n) or _SURFACES.get(map_surface_name()) or PlotlyMapSurface
    return factory()
