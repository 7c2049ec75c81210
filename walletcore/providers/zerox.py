"""Async client for the 0x swap API."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..config import Settings, settings as default_settings


class ZeroExProvider:
    """Thin wrapper around the per-chain 0x ``/swap/v1`` endpoints.

    Responses are returned as-is; callers decide what a non-2xx status means.
    """

    name = "0x"
    price_path = "/swap/v1/price"
    quote_path = "/swap/v1/quote"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_s: float = 20,
    ) -> None:
        self.settings = settings or default_settings
        self.api_key = self.settings.zerox_api_key
        self.base_url_override = self.settings.zerox_base_url_override.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
        }
        if self.api_key:
            headers["0x-api-key"] = self.api_key
        return headers

    async def _get(self, base_url: str, path: str, params: Dict[str, Any]) -> httpx.Response:
        resolved = self.base_url_override or base_url.rstrip("/")
        async with httpx.AsyncClient(
            base_url=resolved,
            timeout=self.timeout_s,
            transport=self._transport,
        ) as client:
            return await client.get(path, params=params, headers=self._headers())

    async def price(self, base_url: str, params: Dict[str, Any]) -> httpx.Response:
        """Indicative price; no taker, no calldata."""
        return await self._get(base_url, self.price_path, params)

    async def quote(self, base_url: str, params: Dict[str, Any]) -> httpx.Response:
        """Firm quote with calldata for ``params["takerAddress"]``."""
        return await self._get(base_url, self.quote_path, params)
