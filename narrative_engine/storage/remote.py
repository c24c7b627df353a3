"""Network key-value storage addressed by player/session id.

Speaks the small KV API served by `backend/` (or anything compatible):

    GET    /api/health
    GET    /api/kv?prefix=...&cursor=...&limit=...
           → {"keys": [...], "cursor": "..." | null, "list_complete": bool}
    GET    /api/kv/{key}   → {"key": ..., "value": "<text>"}   (404 if absent)
    PUT    /api/kv/{key}   ← {"value": "<text>"}
    DELETE /api/kv/{key}

Keys are `{prefix}:{session_id}:{kind}:{id}`, so every player/session gets
an isolated namespace on a shared service.

Args:
    base_url:   Service root, e.g. "http://localhost:13013".
    session_id: Player or session the saves belong to.
    prefix:     Application namespace. Defaults to "narrative".
    api_key:    Bearer token, or empty string if not required.
    timeout:    HTTP timeout in seconds. Defaults to 10.
    transport:  Optional httpx transport (tests pass an ASGITransport).
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from .base import DEFAULT_PREFIX, STORAGE_VERSION, KeyValueStorage, StorageError

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 100


class RemoteStorage(KeyValueStorage):
    def __init__(
        self,
        base_url: str,
        session_id: str,
        prefix: str = DEFAULT_PREFIX,
        api_key: str = "",
        timeout: float = 10.0,
        version: int = STORAGE_VERSION,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(prefix=prefix, version=version)
        self._base_url = base_url.rstrip("/")
        self._session_id = session_id
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _key(self, kind: str, item_id: str = "") -> str:
        return f"{self.prefix}:{self._session_id}:{kind}:{item_id}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        allow_404: bool = False,
    ) -> httpx.Response | None:
        url = f"{self._base_url}{path}"
        logger.debug("kv %s %s", method, url)
        try:
            async with self._client() as client:
                resp = await client.request(
                    method, url, params=params, json=json, headers=self._headers()
                )
                if allow_404 and resp.status_code == 404:
                    return None
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise StorageError(f"Cannot connect to storage service at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise StorageError(
                f"Storage service returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise StorageError(f"Storage service timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise StorageError(f"Storage service request failed: {e!r}") from e
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise StorageError("Storage service returned a non-JSON body") from e

    @staticmethod
    def _kv_path(key: str) -> str:
        return f"/api/kv/{quote(key, safe=':')}"

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def _read(self, kind: str, item_id: str) -> str | None:
        resp = await self._request("GET", self._kv_path(self._key(kind, item_id)), allow_404=True)
        if resp is None:
            return None
        data = self._json(resp)
        if not isinstance(data, dict) or not isinstance(data.get("value"), str):
            raise StorageError("Unexpected response format from storage service")
        return data["value"]

    async def _write(self, kind: str, item_id: str, text: str) -> None:
        await self._request("PUT", self._kv_path(self._key(kind, item_id)), json={"value": text})

    async def _remove(self, kind: str, item_id: str) -> None:
        await self._request("DELETE", self._kv_path(self._key(kind, item_id)), allow_404=True)

    async def _ids(self, kind: str) -> list[str]:
        prefix = self._key(kind)
        ids: list[str] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"prefix": prefix, "limit": LIST_PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor
            resp = await self._request("GET", "/api/kv", params=params)
            data = self._json(resp)
            keys = data.get("keys") if isinstance(data, dict) else None
            if not isinstance(keys, list):
                raise StorageError("Unexpected response format from storage service")
            ids.extend(k[len(prefix):] for k in keys if k.startswith(prefix))
            cursor = data.get("cursor")
            if data.get("list_complete", True) or not cursor:
                return ids

    async def is_available(self) -> bool:
        try:
            await self._request("GET", "/api/health")
        except StorageError as e:
            logger.warning("storage service unavailable: %s", e)
            return False
        return True
