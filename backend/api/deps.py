from __future__ import annotations

from typing import Any, Protocol

from starlette.requests import HTTPConnection

from mapdata.fetcher import MapDataFetcher
from mapdata.query_cache import QueryCache
from rpc.client import BackendClient
from search.fts import PropertySearch


class Backend(Protocol):
    async def rpc(self, fn: str, params: dict[str, Any] | None = None) -> Any: ...

    async def get_user(self) -> dict[str, Any] | None: ...

    def with_authorization(self, authorization: str) -> "Backend": ...


def _state_get(request: HTTPConnection, name: str, factory):
    # Built lazily: a missing backend URL should only fail the requests that need it.
    state = request.app.state
    value = getattr(state, name, None)
    if value is None:
        value = factory()
        setattr(state, name, value)
    return value


def get_backend(request: HTTPConnection) -> Backend:
    return _state_get(request, "backend", BackendClient.anon)


def get_service_backend(request: HTTPConnection) -> Backend:
    return _state_get(request, "service_backend", BackendClient.service_role)


def get_query_cache(request: HTTPConnection) -> QueryCache:
    return _state_get(request, "query_cache", QueryCache)


def get_fetcher(request: HTTPConnection) -> MapDataFetcher:
    return _state_get(
        request,
        "fetcher",
        lambda: MapDataFetcher(get_backend(request), get_query_cache(request)),
    )


def get_search(request: HTTPConnection) -> PropertySearch:
    return _state_get(
        request,
        "search",
        lambda: PropertySearch(get_backend(request), get_query_cache(request)),
    )
