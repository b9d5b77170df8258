"""
Serverless endpoints.

Stateless HTTP handlers that forward to the hosted backend's procedures. Each
answers JSON with 200/400/401/500; CORS (any origin) is applied app-wide.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from api.deps import Backend, get_backend, get_service_backend
from config import settings
from functions.bump import bump_property
from rpc.errors import RemoteCallError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["functions"])

STATS_VIEWS = (
    ("municipality", "property_stats_by_municipality"),
    ("state", "property_stats_by_state"),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


@router.post("/bump-property")
async def bump_property_endpoint(
    request: Request,
    authorization: str | None = Header(default=None),
    backend: Backend = Depends(get_backend),
):
    if not authorization:
        return JSONResponse({"success": False, "error": "Unauthorized"}, status_code=401)

    body = await _json_body(request)
    property_id = body.get("propertyId")
    if not property_id:
        return JSONResponse(
            {"success": False, "error": "propertyId is required"}, status_code=400
        )

    logger.info("[bump-property] Bumping property: %s", property_id)
    # The caller's JWT is forwarded so row-level security sees the agent, not us.
    result = await bump_property(backend.with_authorization(authorization), str(property_id))
    logger.info("[bump-property] Result: %s", result.as_payload())

    if not result.success:
        return JSONResponse(result.as_payload(), status_code=400)
    return result.as_payload()


@router.post("/cleanup-tile-cache")
async def cleanup_tile_cache(backend: Backend = Depends(get_service_backend)):
    logger.info("[cleanup-tile-cache] Removing expired tiles")
    try:
        data = await backend.rpc("cleanup_expired_tiles")
    except RemoteCallError as e:
        logger.error("[cleanup-tile-cache] Error: %s", e.message)
        return JSONResponse(
            {"success": False, "error": e.message, "deletedCount": 0}, status_code=500
        )

    deleted = int(data or 0) if not isinstance(data, dict) else int(data.get("deleted") or 0)
    logger.info("[cleanup-tile-cache] Removed %d expired tiles", deleted)
    return {
        "success": True,
        "deletedCount": deleted,
        "message": f"Cleanup finished: {deleted} tiles removed",
    }


@router.post("/refresh-properties-monthly")
async def refresh_properties_monthly(backend: Backend = Depends(get_service_backend)):
    logger.info("[refresh-properties-monthly] Starting monthly refresh")
    data = await backend.rpc("refresh_all_active_properties")
    logger.info("[refresh-properties-monthly] Completed: %s", data)
    extra = data if isinstance(data, dict) else {}
    return {**extra, "success": True, "message": "Monthly refresh completed"}


async def _refresh_view(backend: Backend, view: str) -> None:
    try:
        await backend.rpc("exec_sql", {"sql": f"REFRESH MATERIALIZED VIEW CONCURRENTLY {view}"})
        return
    except RemoteCallError as e:
        # CONCURRENTLY needs a unique index and a populated view.
        logger.warning("[refresh-stats-views] Concurrent refresh of %s failed: %s", view, e.message)
    await backend.rpc("exec_sql", {"sql": f"REFRESH MATERIALIZED VIEW {view}"})


@router.post("/refresh-stats-views")
async def refresh_stats_views(backend: Backend = Depends(get_service_backend)):
    for label, view in STATS_VIEWS:
        try:
            await _refresh_view(backend, view)
        except RemoteCallError as e:
            logger.error("[refresh-stats-views] %s: %s", view, e.message)
            return JSONResponse(
                {
                    "success": False,
                    "error": f"Error refreshing {label} stats: {e.message}",
                    "timestamp": _now_iso(),
                },
                status_code=500,
            )
        logger.info("[refresh-stats-views] %s refreshed", view)

    return {
        "success": True,
        "message": "Materialized views refreshed successfully",
        "timestamp": _now_iso(),
    }


@router.get("/public-config")
async def public_config(
    authorization: str | None = Header(default=None),
    backend: Backend = Depends(get_backend),
):
    try:
        user = await backend.with_authorization(authorization).get_user() if authorization else None
    except RemoteCallError as e:
        logger.error("[public-config] %s", e.message)
        return JSONResponse({"error": "INTERNAL_ERROR"}, status_code=500)

    key = settings.google_maps_api_key()
    if not key:
        return JSONResponse({"error": "GOOGLE_MAPS_API_KEY_NOT_CONFIGURED"}, status_code=500)

    return {"googleMapsApiKey": key, "authenticated": user is not None}
