import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import httpx

from ..cache import TTLCache, price_cache_key
from ..config import Settings, settings as default_settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPrice:
    usd: float
    usd_24h_change: Optional[float] = None


class CoingeckoProvider:
    """Coingecko API provider for token USD prices"""

    name = "coingecko"
    timeout_s = 15

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        cache: Optional[TTLCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or default_settings
        self.api_key = self.settings.coingecko_api_key
        self.base_url = "https://api.coingecko.com/api/v3"
        self.cache = cache or TTLCache(
            default_ttl=self.settings.price_cache_ttl_seconds,
            max_size=self.settings.max_cache_size,
        )
        self._transport = transport

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["X-CG-Demo-API-Key"] = self.api_key
        return headers

    async def _fetch(self, ids: Iterable[str]) -> Dict[str, TokenPrice]:
        params = {
            "ids": ",".join(ids),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.get(
                f"{self.base_url}/simple/price",
                headers=self._build_headers(),
                params=params,
            )
            response.raise_for_status()
            data = response.json()

        prices: Dict[str, TokenPrice] = {}
        for coin_id, price_data in data.items():
            if not isinstance(price_data, dict) or "usd" not in price_data:
                continue
            prices[coin_id] = TokenPrice(
                usd=float(price_data["usd"]),
                usd_24h_change=price_data.get("usd_24h_change"),
            )
        return prices

    async def get_token_price(self, coingecko_id: str) -> Optional[TokenPrice]:
        """USD price of one coin, cached; ``None`` when unavailable."""
        key = price_cache_key(coingecko_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        try:
            prices = await self._fetch([coingecko_id])
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Coingecko price lookup for %s failed: %s", coingecko_id, exc)
            return None

        price = prices.get(coingecko_id)
        if price is not None:
            await self.cache.set(key, price, ttl=self.settings.price_cache_ttl_seconds)
        return price

    async def get_token_prices(self, coingecko_ids: Iterable[str]) -> Dict[str, TokenPrice]:
        """USD prices for several coins in one request; missing ids are left out."""
        ids = [coin_id for coin_id in coingecko_ids if coin_id]
        if not ids:
            return {}

        try:
            prices = await self._fetch(ids)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Coingecko price lookup failed: %s", exc)
            return {}

        for coin_id, price in prices.items():
            await self.cache.set(price_cache_key(coin_id), price, ttl=self.settings.price_cache_ttl_seconds)
        return {coin_id: prices[coin_id] for coin_id in ids if coin_id in prices}
