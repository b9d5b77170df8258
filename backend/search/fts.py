from __future__ import annotations

import json
import logging
from typing import Any

from config.tuning import MapTuning, get_tuning
from mapdata.query_cache import QueryCache, QueryOptions
from mapdata.types import MapFilters
from rpc.client import RpcCaller

logger = logging.getLogger(__name__)

SEARCH_FN = "search_properties_fts"
IMAGES_FN = "get_images_batch"
SEARCH_KEY = "properties-search"


def search_params(
    query: str, filters: MapFilters, *, limit: int, offset: int
) -> dict[str, Any]:
    return {
        "search_query": query,
        "p_state": filters.state,
        "p_municipality": filters.municipality,
        "p_type": filters.property_type,
        "p_listing_type": filters.listing_type,
        "p_price_min": filters.price_min,
        "p_price_max": filters.price_max,
        "p_limit": int(limit),
        "p_offset": int(offset),
    }


def _images_by_property(raw: Any) -> dict[str, list[Any]]:
    out: dict[str, list[Any]] = {}
    for item in raw or []:
        if not isinstance(item, dict) or item.get("property_id") is None:
            continue
        images = item.get("images") or []
        if isinstance(images, list):
            images = sorted(
                images,
                key=lambda im: (im.get("position") or 0) if isinstance(im, dict) else 0,
            )
        out[str(item["property_id"])] = images
    return out


class PropertySearch:
    """
    Full-text property search.

    Ranking happens in `search_properties_fts`; this only shapes the call, batches
    the image lookup, and caches pages like any other query.
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
        t = self.tuning
        self.options = QueryOptions(
            stale_time_s=t.search.stale_time_s,
            gc_time_s=t.cache.gc_time_s,
            retry=t.cache.retry,
            retry_delay_s=t.cache.retry_delay_s,
        )

    async def search(
        self,
        query: str,
        filters: MapFilters | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        q = (query or "").strip()
        if len(q) < self.tuning.search.min_query_length:
            return []
        f = filters or MapFilters()
        params = search_params(
            q,
            f,
            limit=limit or self.tuning.search.default_limit,
            offset=max(0, int(offset)),
        )
        key = (SEARCH_KEY, json.dumps(params, sort_keys=True))

        async def run() -> list[dict[str, Any]]:
            rows = await self.rpc.rpc(SEARCH_FN, params)
            rows = [r for r in (rows or []) if isinstance(r, dict) and r.get("id") is not None]
            if not rows:
                return []
            images = _images_by_property(
                await self.rpc.rpc(IMAGES_FN, {"property_ids": [r["id"] for r in rows]})
            )
            return [
                {**r, "images": images.get(str(r["id"]), []), "is_featured": False}
                for r in rows
            ]

        result = await self.cache.fetch(key, run, self.options)
        return result.data
