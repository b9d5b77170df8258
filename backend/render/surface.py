from __future__ import annotations

import logging
from typing import Any, Callable, Literal, Protocol, Sequence

from geo.bounds import MapBounds
from mapdata.types import PropertyCluster, PropertyMarker

logger = logging.getLogger(__name__)

SurfaceEvent = Literal["bounds_changed", "marker_click", "property_hover", "map_error"]
SURFACE_EVENTS: tuple[str, ...] = (
    "bounds_changed",
    "marker_click",
    "property_hover",
    "map_error",
)

Listener = Callable[[Any], None]


class MapSurface(Protocol):
    """
    Rendering surface interface.

    - PlotlyMapSurface: interactive marker map payload
    - PlaceholderSurface: aggregate counts only

    Callers (MapView, the API) only use this interface, so implementations can be
    swapped at composition time without touching the fetch pipeline.
    """

    name: str

    def render(
        self,
        properties: Sequence[PropertyMarker],
        clusters: Sequence[PropertyCluster],
        *,
        is_loading: bool = False,
        bounds: MapBounds | None = None,
        zoom: float | None = None,
    ) -> dict[str, Any]: ...

    def on(self, event: SurfaceEvent, listener: Listener) -> Callable[[], None]: ...

    def emit(self, event: SurfaceEvent, payload: Any = None) -> None: ...


class SurfaceEvents:
    """
    Listener bookkeeping shared by the surface implementations.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {e: [] for e in SURFACE_EVENTS}

    def on(self, event: SurfaceEvent, listener: Listener) -> Callable[[], None]:
        if event not in self._listeners:
            raise ValueError(f"Unknown surface event: {event}")
        self._listeners[event].append(listener)

        def off() -> None:
            try:
                self._listeners[event].remove(listener)
            except ValueError:
                pass

        return off

    def emit(self, event: SurfaceEvent, payload: Any = None) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(payload)
            except Exception:
                logger.exception("Surface listener for %s failed", event)
