from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import map_routes, map_stream, offline_routes, telemetry_routes
from config.log import configure_logging
from functions.router import router as functions_router
from mapdata.query_cache import QueryCache
from rpc.errors import KentraError
from telemetry.singleton import close_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Process-wide query cache: built at startup, dropped at shutdown.
    if getattr(app.state, "query_cache", None) is None:
        app.state.query_cache = QueryCache()
    yield
    for name in ("backend", "service_backend"):
        client = getattr(app.state, name, None)
        aclose = getattr(client, "aclose", None)
        if aclose is not None:
            await aclose()
    app.state.query_cache.clear()
    close_store()


async def _kentra_error_handler(request: Request, exc: KentraError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        {"success": False, "error": exc.message}, status_code=exc.status_code
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed bounds and bodies are caller errors, same as ValidationError.
    errors = exc.errors()
    message = errors[0].get("msg") if errors else "Invalid request"
    return JSONResponse({"success": False, "error": message}, status_code=400)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Kentra map backend", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )
    app.add_exception_handler(KentraError, _kentra_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(map_routes.router)
    app.include_router(map_stream.router)
    app.include_router(functions_router)
    app.include_router(telemetry_routes.router)
    app.include_router(offline_routes.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
