from __future__ import annotations

import logging
import math
import time
from typing import Any

from config.tuning import MapTuning, get_tuning
from geo.bounds import MapBounds, normalize_bounds
from mapdata.decode import decode_map_data
from mapdata.query_cache import QueryCache, QueryKey, QueryOptions
from mapdata.types import EMPTY_MAP_DATA, MapDataResponse, MapFilters
from rpc.client import RpcCaller

logger = logging.getLogger(__name__)

MAP_DATA_FN = "get_map_data"
MAP_DATA_KEY = "map-data"


def map_data_key(bounds: MapBounds, zoom: float, filters: MapFilters) -> QueryKey:
    return (MAP_DATA_KEY, normalize_bounds(bounds), int(math.floor(zoom)), filters.cache_key())


def map_data_params(bounds: MapBounds, zoom: float, filters: MapFilters) -> dict[str, Any]:
    """
    Full `get_map_data` parameter set. Absent filters are sent as null, never omitted,
    so the procedure always sees the same shape.
    """
    return {
        "p_north": bounds.north,
        "p_south": bounds.south,
        "p_east": bounds.east,
        "p_west": bounds.west,
        "p_zoom": int(math.floor(zoom)),
        **filters.rpc_params(),
    }


class MapDataFetcher:
    """
    Fetches viewport map data through the shared QueryCache.

    A request is suspended (no network, empty result) when there are no bounds yet,
    when the caller disables it, or when the zoom is below the configured minimum.
    """

    def __init__(
        self,
        rpc: RpcCaller,
        cache: QueryCache,
        *,
        tuning: MapTuning | None = None,
    ) -> None:
        self.rpc = rpc
        self.cache = cache
        self.tuning = tuning or get_tuning()
        self.options = QueryOptions.from_tuning(self.tuning.cache)

    def is_active(self, bounds: MapBounds | None, zoom: float, enabled: bool = True) -> bool:
        if not enabled or bounds is None:
            return False
        return float(zoom) >= self.tuning.query.min_zoom

    async def fetch(
        self,
        bounds: MapBounds | None,
        zoom: float,
        filters: MapFilters | None = None,
        enabled: bool = True,
    ) -> MapDataResponse:
        data, _stats = await self.fetch_with_stats(bounds, zoom, filters, enabled)
        return data

    async def fetch_with_stats(
        self,
        bounds: MapBounds | None,
        zoom: float,
        filters: MapFilters | None = None,
        enabled: bool = True,
    ) -> tuple[MapDataResponse, dict[str, Any]]:
        if bounds is None or not self.is_active(bounds, zoom, enabled):
            return EMPTY_MAP_DATA, {"suspended": True, "cacheHit": False}

        f = filters or MapFilters()
        key = map_data_key(bounds, zoom, f)
        params = map_data_params(bounds, zoom, f)
        q = self.tuning.query

        async def run() -> MapDataResponse:
            raw = await self.rpc.rpc(MAP_DATA_FN, params)
            return decode_map_data(
                raw,
                zoom=zoom,
                expansion_step=q.default_expansion_zoom_step,
                max_expansion_zoom=q.max_expansion_zoom,
            ).data

        t0 = time.perf_counter()
        result = await self.cache.fetch(key, run, self.options)
        stats = {
            "suspended": False,
            "cacheKey": key[1],
            "zoomBucket": key[2],
            "cacheHit": result.cache_hit,
            "shared": result.shared,
            "attempts": result.attempts,
            "durationMs": round((time.perf_counter() - t0) * 1000.0, 2),
        }
        return result.data, stats

    def cached(
        self,
        bounds: MapBounds | None,
        zoom: float,
        filters: MapFilters | None = None,
    ) -> MapDataResponse | None:
        if bounds is None:
            return None
        return self.cache.snapshot(map_data_key(bounds, zoom, filters or MapFilters()))

    async def prefetch(
        self,
        bounds: MapBounds | None,
        zoom: float,
        filters: MapFilters | None = None,
    ) -> bool:
        """
        Warm the cache for a viewport the user is likely to open next.

        Failures are logged and ignored: the real fetch will surface them.
        """
        try:
            await self.fetch(bounds, zoom, filters)
        except Exception as e:
            logger.debug("Map prefetch failed (ignored): %s", e)
            return False
        return True

    def invalidate(self) -> int:
        return self.cache.invalidate((MAP_DATA_KEY,))
