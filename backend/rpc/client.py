"""
Hosted backend client.

Speaks the backend's REST surface directly over httpx:
- stored procedures: POST {url}/rest/v1/rpc/{fn}
- current user:      GET  {url}/auth/v1/user

Errors are translated into the service's taxonomy (see rpc/errors.py) so callers
never see raw httpx exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from config import settings
from rpc.errors import AuthorizationError, RemoteCallError

logger = logging.getLogger(__name__)


class RpcCaller(Protocol):
    async def rpc(self, fn: str, params: dict[str, Any] | None = None) -> Any: ...


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict):
        for k in ("message", "msg", "error_description", "error"):
            v = body.get(k)
            if isinstance(v, str) and v:
                return v
    return resp.text or resp.reason_phrase


class BackendClient:
    """
    Thin async client for the hosted backend.

    One instance owns one `httpx.AsyncClient` (connection pool). Use
    `with_authorization()` to derive a client that forwards a caller's JWT while
    sharing the pool.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        authorization: str | None = None,
        timeout_s: float | None = None,
        http: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise RemoteCallError("Backend URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.authorization = authorization or (f"Bearer {api_key}" if api_key else None)
        self._owns_http = http is None
        if http is None:
            timeout = httpx.Timeout(timeout_s) if timeout_s else httpx.Timeout(5.0)
            http = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._http = http

    @classmethod
    def anon(cls, **kwargs) -> "BackendClient":
        return cls(
            base_url=settings.supabase_url(),
            api_key=settings.supabase_anon_key(),
            timeout_s=settings.rpc_timeout_s(),
            **kwargs,
        )

    @classmethod
    def service_role(cls, **kwargs) -> "BackendClient":
        return cls(
            base_url=settings.supabase_url(),
            api_key=settings.supabase_service_role_key(),
            timeout_s=settings.rpc_timeout_s(),
            **kwargs,
        )

    def with_authorization(self, authorization: str) -> "BackendClient":
        return BackendClient(
            base_url=self.base_url,
            api_key=self.api_key,
            authorization=authorization,
            http=self._http,
        )

    def _headers(self) -> dict[str, str]:
        h = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            h["apikey"] = self.api_key
        if self.authorization:
            h["Authorization"] = self.authorization
        return h

    async def rpc(self, fn: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}/rest/v1/rpc/{fn}"
        logger.debug("rpc %s", fn)
        try:
            resp = await self._http.post(url, json=params or {}, headers=self._headers())
        except httpx.HTTPError as e:
            raise RemoteCallError(f"{fn}: transport error: {e}", function=fn) from e

        if resp.status_code in (401, 403):
            raise AuthorizationError(_error_message(resp), function=fn, status=resp.status_code)
        if resp.status_code >= 400:
            raise RemoteCallError(
                _error_message(resp), function=fn, status=resp.status_code
            )
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteCallError(f"{fn}: response is not JSON", function=fn) from e

    async def get_user(self) -> dict[str, Any] | None:
        """
        The signed-in user for the current Authorization header, or None.
        """
        if not self.authorization or self.authorization == f"Bearer {self.api_key}":
            return None
        try:
            resp = await self._http.get(
                f"{self.base_url}/auth/v1/user", headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise RemoteCallError(f"auth: transport error: {e}") from e
        if resp.status_code in (401, 403):
            return None
        if resp.status_code >= 400:
            raise RemoteCallError(_error_message(resp), status=resp.status_code)
        data = resp.json()
        return data if isinstance(data, dict) else None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()
