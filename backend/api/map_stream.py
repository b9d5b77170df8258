from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from api.deps import get_fetcher
from api.schemas import StreamMessage
from debounce.scheduler import AsyncioScheduler
from geo.bounds import MapBounds
from mapdata.types import MapDataResponse
from render.registry import get_surface
from telemetry.record import record_map_event
from view.map_view import GateKind, MapView

logger = logging.getLogger(__name__)

router = APIRouter(tags=["map"])


def _normalize_gate(name: str | None) -> GateKind:
    n = (name or "adaptive").strip().lower()
    return "fixed" if n == "fixed" else "adaptive"


@router.websocket("/map-stream")
async def map_stream(websocket: WebSocket, surface: str | None = None, gate: str | None = None):
    """
    Live map session.

    The client streams camera moves and frame timings; the server debounces them,
    fetches through the shared cache and pushes `map_data` / `map_error` events.
    """
    await websocket.accept()
    outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
    view = MapView(
        get_fetcher(websocket),
        get_surface(surface),
        AsyncioScheduler(),
        sink=outbox.put_nowait,
        gate=_normalize_gate(gate),
    )

    async def pump() -> None:
        while True:
            event = await outbox.get()
            if event.get("type") in ("map_data", "map_error") and event.get("bounds"):
                # The view may have moved on since this event was queued.
                bounds = MapBounds(**event["bounds"])
                record_map_event(
                    "/map-stream",
                    stats=event.get("stats") or {"cacheKey": bounds.key()},
                    bounds=bounds,
                    zoom=event.get("zoom"),
                    data=(
                        MapDataResponse.model_validate(event["data"])
                        if event["type"] == "map_data"
                        else None
                    ),
                    error=event.get("error"),
                )
            await websocket.send_json(event)

    sender = asyncio.create_task(pump())
    try:
        await websocket.send_json(
            {"type": "ready", "gate": _normalize_gate(gate), "delayMs": view.delay_ms}
        )
        while True:
            text = await websocket.receive_text()
            try:
                msg = StreamMessage.model_validate_json(text)
            except PydanticValidationError as e:
                await outbox.put({"type": "invalid_message", "error": e.errors()[0].get("msg")})
                continue

            if msg.type == "viewport" and msg.viewport is not None:
                view.on_viewport(msg.viewport.to_viewport())
            elif msg.type == "frames":
                view.record_frames(msg.frames)
                await outbox.put({"type": "delay", "delayMs": view.delay_ms})
            elif msg.type == "filters" and msg.filters is not None:
                view.set_filters(msg.filters)
            elif msg.type == "marker_click":
                view.surface.emit(
                    "marker_click", {"clusterId": msg.clusterId, "propertyId": msg.propertyId}
                )
            elif msg.type == "property_hover":
                view.surface.emit("property_hover", {"propertyId": msg.propertyId})
    except WebSocketDisconnect:
        logger.debug("Map stream client disconnected")
    finally:
        view.close()
        sender.cancel()
        try:
            with contextlib.suppress(asyncio.CancelledError):
                await sender
        except Exception as e:
            logger.debug("Map stream sender stopped with error: %s", e)
