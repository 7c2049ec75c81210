"""
Swap quoting on top of the 0x aggregator.

``SwapQuoteEngine`` owns the token catalog lookups, price and quote
requests, and the presentation helpers (amount formatting, price impact,
slippage suggestions). Quotes come back enriched with the minimum amount
received after slippage, the parsed route and a USD gas estimate.
"""

import logging
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ...config import Settings, settings as default_settings
from ...providers import CoingeckoProvider, ZeroExProvider
from ..errors import QuoteRejectedError, classify
from ..units import ETHER_DECIMALS, from_base_units, to_base_units, to_decimal
from .constants import (
    GAS_PRICE_COINGECKO_ID,
    NATIVE_TOKEN_ADDRESS,
    SWAP_TOKENS,
    WETH_ADDRESSES,
    ZEROX_API_URLS,
)
from .models import (
    PriceImpact,
    PriceImpactLevel,
    SwapParams,
    SwapPrice,
    SwapQuote,
    SwapRoute,
    SwapSource,
    SwapToken,
)


logger = logging.getLogger(__name__)

DEFAULT_QUOTE_ERROR = "Failed to get quote"

_TWO_PLACES = Decimal("0.01")
_FOUR_PLACES = Decimal("0.0001")

# Lower bounds (percent) for each price impact level, highest first
PRICE_IMPACT_THRESHOLDS = (
    (Decimal("10"), PriceImpactLevel.CRITICAL),
    (Decimal("5"), PriceImpactLevel.HIGH),
    (Decimal("1"), PriceImpactLevel.MEDIUM),
)

BASE_SLIPPAGE = 0.5
MAX_SLIPPAGE = 5.0


def parse_route(sources: List[SwapSource]) -> List[SwapRoute]:
    """Sources that carry part of the fill, largest share first."""
    route: List[SwapRoute] = []
    for source in sources:
        proportion = to_decimal(source.proportion)
        if proportion is None or proportion <= 0:
            continue
        route.append(SwapRoute(name=source.name, proportion=float(proportion * 100)))
    route.sort(key=lambda hop: hop.proportion, reverse=True)
    return route


def apply_slippage(raw_amount: int, slippage_percentage: float) -> int:
    """``raw - raw * floor(slippage * 100) / 10000`` in integer math."""
    basis_points = int((Decimal(str(slippage_percentage)) * 100).to_integral_value(rounding=ROUND_DOWN))
    return raw_amount - (raw_amount * basis_points) // 10000


class SwapQuoteEngine:
    """Prices and quotes swaps for the chains the aggregator serves."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        provider: Optional[ZeroExProvider] = None,
        price_provider: Optional[CoingeckoProvider] = None,
    ):
        self.settings = settings or default_settings
        self.provider = provider or ZeroExProvider(self.settings)
        self.price_provider = price_provider

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    @staticmethod
    def tokens_for_chain(chain_id: int) -> List[SwapToken]:
        return list(SWAP_TOKENS.get(chain_id, ()))

    @staticmethod
    def is_supported(chain_id: int) -> bool:
        return chain_id in ZEROX_API_URLS

    @staticmethod
    def is_native_token(address: str) -> bool:
        return address.lower() == NATIVE_TOKEN_ADDRESS.lower()

    def needs_approval(self, sell_token: SwapToken) -> bool:
        """ERC20 sells need an allowance; the native asset never does."""
        return not self.is_native_token(sell_token.address)

    def search_tokens(self, chain_id: int, query: str) -> List[SwapToken]:
        """Match by symbol or name substring, or by exact address (case-insensitive)."""
        needle = query.strip().lower()
        return [
            token
            for token in self.tokens_for_chain(chain_id)
            if needle in token.symbol.lower()
            or needle in token.name.lower()
            or token.address.lower() == needle
        ]

    def find_token(self, chain_id: int, address: str) -> Optional[SwapToken]:
        wanted = address.lower()
        for token in self.tokens_for_chain(chain_id):
            if token.address.lower() == wanted:
                return token
        return None

    @staticmethod
    def weth_address(chain_id: int) -> Optional[str]:
        return WETH_ADDRESSES.get(chain_id)

    # ------------------------------------------------------------------
    # Aggregator requests
    # ------------------------------------------------------------------

    @staticmethod
    def _base_query(params: SwapParams) -> Dict[str, Any]:
        return {
            "sellToken": params.sell_token.address,
            "buyToken": params.buy_token.address,
            "sellAmount": str(to_base_units(params.sell_amount, params.sell_token.decimals)),
        }

    def _slippage(self, params: SwapParams) -> float:
        return params.slippage_percentage or self.settings.default_slippage_percentage

    async def get_price(self, params: SwapParams, chain_id: int) -> Optional[SwapPrice]:
        """
        Indicative price for ``params``.

        Never raises: unsupported chains, rejected requests and transport
        failures all yield ``None``.
        """
        base_url = ZEROX_API_URLS.get(chain_id)
        if base_url is None:
            return None

        try:
            response = await self.provider.price(base_url, self._base_query(params))
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Price request on chain %s failed: %s", chain_id, exc)
            return None

        if not response.is_success:
            logger.debug("Price request on chain %s returned %s", chain_id, response.status_code)
            return None

        try:
            data = response.json()
            buy_amount = from_base_units(int(data["buyAmount"]), params.buy_token.decimals)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Malformed price response on chain %s: %s", chain_id, exc)
            return None

        return SwapPrice(price=str(data.get("price", "0")), buy_amount=buy_amount)

    async def get_quote(self, params: SwapParams, chain_id: int) -> Optional[SwapQuote]:
        """
        Executable quote for ``params``.

        Returns ``None`` only when the chain has no aggregator.

        Raises:
            QuoteRejectedError: the aggregator refused; carries its reason
            ChainError: the aggregator could not be reached
        """
        base_url = ZEROX_API_URLS.get(chain_id)
        if base_url is None:
            logger.warning("Swap not supported on chain %s", chain_id)
            return None

        query = self._base_query(params)
        query["takerAddress"] = params.taker_address
        query["slippagePercentage"] = str(self._slippage(params))
        if params.excluded_sources:
            query["excludedSources"] = ",".join(params.excluded_sources)
        if params.gas_price:
            query["gasPrice"] = params.gas_price
        if params.skip_validation:
            query["skipValidation"] = "true"

        try:
            response = await self.provider.quote(base_url, query)
        except httpx.HTTPError as exc:
            raise classify(exc) from exc

        if not response.is_success:
            payload = self._error_payload(response)
            reason = payload.get("reason") or DEFAULT_QUOTE_ERROR
            logger.warning("Quote rejected on chain %s (%s): %s", chain_id, response.status_code, reason)
            raise QuoteRejectedError(str(reason), status_code=response.status_code, payload=payload)

        try:
            quote = SwapQuote.model_validate(response.json())
        except (ValidationError, ValueError) as exc:
            raise QuoteRejectedError("Malformed quote response", status_code=response.status_code) from exc

        return await self._enrich(quote, params)

    @staticmethod
    def _error_payload(response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    async def _enrich(self, quote: SwapQuote, params: SwapParams) -> SwapQuote:
        minimum = apply_slippage(int(quote.buy_amount), self._slippage(params))
        return quote.model_copy(
            update={
                "minimum_received": from_base_units(minimum, params.buy_token.decimals),
                "route": parse_route(quote.sources),
                "estimated_gas_usd": await self._estimate_gas_usd(quote),
            }
        )

    async def _estimate_gas_usd(self, quote: SwapQuote) -> Optional[str]:
        if self.price_provider is None:
            return None

        price = await self.price_provider.get_token_price(GAS_PRICE_COINGECKO_ID)
        if price is None:
            return None

        try:
            fee_wei = int(quote.gas) * int(quote.gas_price)
            fee = Decimal(from_base_units(fee_wei, ETHER_DECIMALS))
            usd = fee * Decimal(str(price.usd))
        except (ValueError, InvalidOperation):
            return None
        return str(usd.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    @staticmethod
    def format_buy_amount(amount: str, token: Optional[SwapToken] = None) -> str:
        """Render a display amount: 4 decimals under 1, 2 above, grouped past 1000."""
        value = to_decimal(amount)
        if value is None or value == 0:
            return "0"
        if value < _FOUR_PLACES:
            return "< 0.0001"
        if value < 1:
            return str(value.quantize(_FOUR_PLACES, rounding=ROUND_HALF_UP))
        if value < 1000:
            return str(value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))
        return f"{value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP):,.2f}"

    @staticmethod
    def _impact_percent(quote: SwapQuote) -> Decimal:
        impact = to_decimal(quote.estimated_price_impact or "0")
        if impact is None:
            return Decimal("0")
        return impact * 100

    def price_impact(self, quote: SwapQuote) -> str:
        """Estimated price impact in percent with two decimals, e.g. ``"1.25"``."""
        return str(self._impact_percent(quote).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))

    def price_impact_level(self, quote: SwapQuote) -> PriceImpact:
        percent = self._impact_percent(quote)
        level = PriceImpactLevel.LOW
        for threshold, candidate in PRICE_IMPACT_THRESHOLDS:
            if percent >= threshold:
                level = candidate
                break
        return PriceImpact(percent=self.price_impact(quote), level=level)

    @staticmethod
    def auto_slippage(price_impact: float, volatility: Optional[float] = None) -> float:
        """
        Suggested slippage tolerance in percent.

        0.5 by default, 1.0 above 2% impact, 3.0 above 5%; half a point more
        when volatility exceeds 5; never above 5.
        """
        slippage = BASE_SLIPPAGE
        if price_impact > 5:
            slippage = 3.0
        elif price_impact > 2:
            slippage = 1.0

        if volatility is not None and volatility > 5:
            slippage += 0.5

        return min(slippage, MAX_SLIPPAGE)
