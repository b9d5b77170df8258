from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Literal

from config.tuning import MapTuning, get_tuning
from debounce.adaptive import AdaptiveDebouncer, FrameSampler
from debounce.fixed import Debouncer
from debounce.scheduler import Scheduler
from mapdata.fetcher import MapDataFetcher
from mapdata.types import EMPTY_MAP_DATA, MapDataResponse, MapFilters, MapViewport
from render.surface import MapSurface
from rpc.errors import KentraError

logger = logging.getLogger(__name__)

GateKind = Literal["adaptive", "fixed"]
UpdateSink = Callable[[dict[str, Any]], None]


class MapView:
    """
    One mounted map: viewport events in, rendered map payloads out.

    Flow: surface `bounds_changed` / `on_viewport()` -> debounce gate -> fetcher ->
    surface.render() -> `sink(event)`.

    - Only committed (debounced) viewports reach the fetcher.
    - A response for a viewport that has since been superseded is cached by the
      fetcher but never rendered here.
    - On failure the last good result stays on screen and `map_error` is emitted.
    """

    def __init__(
        self,
        fetcher: MapDataFetcher,
        surface: MapSurface,
        scheduler: Scheduler,
        *,
        sink: UpdateSink | None = None,
        gate: GateKind = "adaptive",
        filters: MapFilters | None = None,
        tuning: MapTuning | None = None,
    ) -> None:
        t = tuning or get_tuning()
        self.fetcher = fetcher
        self.surface = surface
        self.sink = sink
        self.filters = filters or MapFilters()
        self.viewport: MapViewport | None = None
        self.data: MapDataResponse = EMPTY_MAP_DATA
        self.error: Exception | None = None
        self.is_loading = False
        self.closed = False
        self._generation = 0
        self._task: asyncio.Task | None = None

        self.gate: Debouncer[MapViewport]
        if gate == "fixed":
            self.gate = Debouncer(
                t.debounce.bounds_delay_ms, scheduler, on_commit=self._on_commit
            )
        else:
            self.gate = AdaptiveDebouncer(
                FrameSampler.from_tuning(t.adaptive), scheduler, on_commit=self._on_commit
            )

        self._unsubscribe = [
            surface.on("bounds_changed", self._on_bounds_changed),
            surface.on("marker_click", self._on_marker_click),
            surface.on("property_hover", self._on_property_hover),
        ]

    @property
    def delay_ms(self) -> float:
        return self.gate.delay_ms

    def on_viewport(self, viewport: MapViewport) -> None:
        if self.closed:
            return
        self.gate.push(viewport)

    def record_frames(self, durations_ms: Iterable[float]) -> None:
        if isinstance(self.gate, AdaptiveDebouncer):
            self.gate.record_durations(durations_ms)

    def set_filters(self, filters: MapFilters) -> None:
        """
        Filter changes are user intent, not camera jitter: fetch right away.
        """
        if filters == self.filters:
            return
        self.filters = filters
        if self.viewport is not None:
            self._start_load(self.viewport)

    def render(self) -> dict[str, Any]:
        vp = self.viewport
        return self.surface.render(
            self.data.properties,
            self.data.clusters,
            is_loading=self.is_loading,
            bounds=vp.bounds if vp is not None else None,
            zoom=vp.zoom if vp is not None else None,
        )

    def close(self) -> None:
        """
        Unmount: cancel pending timers and the load task. A request already on the
        wire still completes into the shared cache.
        """
        self.closed = True
        self.gate.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        for off in self._unsubscribe:
            off()
        self._unsubscribe = []

    async def wait_idle(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    def _publish(self, event: dict[str, Any]) -> None:
        if self.sink is not None and not self.closed:
            self.sink(event)

    def _on_commit(self, viewport: MapViewport) -> None:
        if self.closed:
            return
        self._start_load(viewport)

    def _start_load(self, viewport: MapViewport) -> None:
        self.viewport = viewport
        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(
            self._load(self._generation, viewport, self.filters)
        )

    async def _load(self, generation: int, viewport: MapViewport, filters: MapFilters) -> None:
        self.is_loading = True
        try:
            data, stats = await self.fetcher.fetch_with_stats(
                viewport.bounds, viewport.zoom, filters
            )
        except Exception as e:
            if generation != self._generation or self.closed:
                return
            self.is_loading = False
            self.error = e
            message = e.message if isinstance(e, KentraError) else str(e)
            logger.warning("Map data fetch failed: %s", message)
            self.surface.emit("map_error", {"error": message})
            # Keep showing the previous result.
            self._publish(
                {
                    "type": "map_error",
                    "error": message,
                    "bounds": viewport.bounds.as_dict(),
                    "zoom": viewport.zoom,
                    "render": self.render(),
                }
            )
            return

        if generation != self._generation or self.closed:
            return
        self.is_loading = False
        self.error = None
        self.data = data
        self._publish(
            {
                "type": "map_data",
                "data": data.model_dump(mode="json"),
                "bounds": viewport.bounds.as_dict(),
                "zoom": viewport.zoom,
                "render": self.render(),
                "stats": stats,
            }
        )

    def _on_bounds_changed(self, payload: Any) -> None:
        if isinstance(payload, MapViewport):
            self.on_viewport(payload)

    def _on_marker_click(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            return
        cluster_id = payload.get("clusterId")
        if cluster_id is not None:
            for c in self.data.clusters:
                if c.id == str(cluster_id):
                    self._publish(
                        {
                            "type": "fly_to",
                            "lat": c.lat,
                            "lng": c.lng,
                            "zoom": c.expansion_zoom,
                        }
                    )
                    return
            return
        property_id = payload.get("propertyId")
        if property_id is not None:
            self._publish({"type": "property_selected", "id": str(property_id)})

    def _on_property_hover(self, payload: Any) -> None:
        pid = payload.get("propertyId") if isinstance(payload, dict) else None
        self._publish({"type": "property_hover", "id": str(pid) if pid is not None else None})
