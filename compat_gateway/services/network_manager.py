"""Shared HTTP client management for engine requests."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

import httpx

from ..helpers import info_log, error_log


_CONNECTION_POOL_CONFIG: Dict[str, object] = {
    "limits": httpx.Limits(
        max_keepalive_connections=20,
        max_connections=100,
        keepalive_expiry=30,
    ),
    "timeout": httpx.Timeout(
        connect=10.0,
        read=300.0,
        write=30.0,
        pool=10.0,
    ),
    "http2": True,
}


class NetworkManager:
    """Own one pooled ``httpx.AsyncClient``, created lazily on first use."""

    def __init__(self, proxy: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._proxy = proxy
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def get_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                options = dict(_CONNECTION_POOL_CONFIG)
                if self._proxy:
                    options["proxy"] = self._proxy
                if self._transport is not None:
                    options["transport"] = self._transport
                info_log("[CLIENT] creating engine client", proxy=self._proxy or "direct")
                self._client = httpx.AsyncClient(**options)
            return self._client

    async def cleanup_clients(self) -> None:
        async with self._client_lock:
            client = self._client
            self._client = None

        if client is None:
            return
        try:
            await client.aclose()
            info_log("[CLIENT] engine client closed")
        except httpx.HTTPError as exc:  # pragma: no cover - logged only
            error_log("[CLIENT] failed to close engine client", error=str(exc))
