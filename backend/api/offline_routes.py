from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, Response

from offline.service_worker import OFFLINE_HTML, render_service_worker

router = APIRouter(tags=["offline"])


@router.get("/sw.js")
def service_worker():
    return Response(
        render_service_worker(),
        media_type="application/javascript",
        # The browser must always see the newest worker.
        headers={"Cache-Control": "no-cache", "Service-Worker-Allowed": "/"},
    )


@router.get("/offline.html", response_class=HTMLResponse)
def offline_page():
    return OFFLINE_HTML
