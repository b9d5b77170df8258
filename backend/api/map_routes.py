from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from api.deps import get_fetcher, get_query_cache, get_search
from api.schemas import MapDataRequest, SearchRequest
from mapdata.fetcher import MapDataFetcher
from mapdata.query_cache import QueryCache
from render.registry import get_surface
from rpc.errors import KentraError
from search.fts import PropertySearch
from telemetry.record import record_map_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["map"])


@router.post("/map-data")
async def map_data(body: MapDataRequest, fetcher: MapDataFetcher = Depends(get_fetcher)):
    bounds = body.bounds.to_bounds() if body.bounds is not None else None
    try:
        data, stats = await fetcher.fetch_with_stats(
            bounds, body.zoom, body.filters, body.enabled
        )
    except KentraError as e:
        record_map_event(
            "/map-data",
            stats={"cacheKey": bounds.key() if bounds else None},
            bounds=bounds,
            zoom=body.zoom,
            error=e.message,
        )
        raise
    record_map_event("/map-data", stats=stats, bounds=bounds, zoom=body.zoom, data=data)

    surface = get_surface(body.surface)
    return {
        "data": data.model_dump(mode="json"),
        "render": surface.render(
            data.properties, data.clusters, bounds=bounds, zoom=body.zoom
        ),
        "stats": stats,
    }


@router.post("/search")
async def search(body: SearchRequest, searcher: PropertySearch = Depends(get_search)):
    results = await searcher.search(
        body.query, body.filters, limit=body.limit, offset=body.offset
    )
    return {"results": results, "count": len(results)}


@router.post("/session/sign-out")
async def sign_out(cache: QueryCache = Depends(get_query_cache)):
    # Cached results may be RLS-filtered for the user who is leaving.
    n = len(cache)
    cache.clear()
    logger.info("Query cache cleared on sign-out (%d entries)", n)
    return {"success": True, "cleared": n}
