from __future__ import annotations

import logging
from typing import Any

from geo.bounds import MapBounds
from mapdata.types import MapDataResponse
from telemetry.singleton import get_store

logger = logging.getLogger(__name__)


def record_map_event(
    endpoint: str,
    *,
    stats: dict[str, Any],
    bounds: MapBounds | None,
    zoom: float | None,
    data: MapDataResponse | None = None,
    error: str | None = None,
) -> None:
    """
    Best-effort: telemetry must never fail a request.
    """
    if stats.get("suspended"):
        return
    try:
        store = get_store()
        if store is None:
            return
        store.record(
            endpoint=endpoint,
            stats=stats,
            zoom=zoom,
            bounds=bounds.as_dict() if bounds is not None else None,
            is_clustered=data.is_clustered if data is not None else None,
            total_count=data.total_count if data is not None else None,
            error=error,
        )
    except Exception as e:
        logger.debug("Telemetry record failed: %s", e)
