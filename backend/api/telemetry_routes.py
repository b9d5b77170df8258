from __future__ import annotations

from fastapi import APIRouter

from telemetry.singleton import get_store, reset_store

router = APIRouter(prefix="/telemetry", tags=["telemetry"])


@router.get("/summary")
def telemetry_summary(endpoint: str | None = None, since_ms: int | None = None):
    store = get_store()
    if store is None:
        return {"enabled": False, "rows": []}
    return {"enabled": True, "rows": store.summary(endpoint=endpoint, since_ms=since_ms)}


@router.get("/slowest")
def telemetry_slowest(endpoint: str | None = None, limit: int = 25):
    store = get_store()
    if store is None:
        return {"enabled": False, "rows": []}
    return {"enabled": True, "rows": store.slowest(endpoint=endpoint, limit=limit)}


@router.delete("")
def telemetry_reset():
    reset_store()
    return {"ok": True}
