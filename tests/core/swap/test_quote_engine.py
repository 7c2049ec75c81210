"""
Tests for the SwapQuoteEngine

Catalog lookups, aggregator price/quote requests against a mock transport,
and the presentation helpers.
"""

from decimal import Decimal

import httpx
import pytest

from walletcore.config import Settings
from walletcore.core.errors import ChainError, ChainErrorCode, QuoteRejectedError
from walletcore.core.swap import (
    NATIVE_TOKEN_ADDRESS,
    PriceImpactLevel,
    SwapParams,
    SwapQuote,
    SwapQuoteEngine,
    SwapSource,
    apply_slippage,
    parse_route,
)
from walletcore.providers import CoingeckoProvider, ZeroExProvider


TAKER = "0x1111111111111111111111111111111111111111"
EXCHANGE_PROXY = "0xDef1C0ded9bec7F1a1670819833240f027b25EfF"


def quote_payload(**overrides):
    payload = {
        "sellToken": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "buyToken": NATIVE_TOKEN_ADDRESS,
        "sellAmount": "1000000000",
        "buyAmount": "500000000000000000",
        "price": "0.0005",
        "guaranteedPrice": "0.000495",
        "estimatedPriceImpact": "0.0123",
        "gas": "150000",
        "gasPrice": "20000000000",
        "sources": [
            {"name": "Curve", "proportion": "0.4"},
            {"name": "Balancer", "proportion": "0"},
            {"name": "Uniswap_V3", "proportion": "0.6"},
        ],
        "allowanceTarget": EXCHANGE_PROXY,
        "to": EXCHANGE_PROXY,
        "data": "0xd9627aa4",
        "value": "0",
    }
    payload.update(overrides)
    return payload


class Recorder:
    """MockTransport handler that remembers requests and replays one outcome."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def _engine(settings, recorder, price_provider=None) -> SwapQuoteEngine:
    return SwapQuoteEngine(
        settings,
        provider=ZeroExProvider(settings, transport=recorder.transport),
        price_provider=price_provider,
    )


@pytest.fixture
def usdc_to_eth() -> SwapParams:
    engine = SwapQuoteEngine(Settings(_env_file=None))
    usdc = engine.find_token(1, "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")
    eth = engine.tokens_for_chain(1)[0]
    return SwapParams(sell_token=usdc, buy_token=eth, sell_amount="1000", taker_address=TAKER)


# =============================================================================
# Catalog Tests
# =============================================================================

class TestCatalog:
    """Tests for token lookups."""

    @pytest.mark.parametrize("chain_id", [1, 137, 42161, 10, 8453])
    def test_native_token_comes_first(self, chain_id):
        tokens = SwapQuoteEngine.tokens_for_chain(chain_id)

        assert tokens[0].is_native
        assert tokens[0].address == NATIVE_TOKEN_ADDRESS
        assert all(not token.is_native for token in tokens[1:])

    def test_testnet_is_listed_but_not_supported(self):
        assert [t.symbol for t in SwapQuoteEngine.tokens_for_chain(11155111)] == ["ETH"]
        assert SwapQuoteEngine.is_supported(11155111) is False
        assert SwapQuoteEngine.is_supported(1) is True

    def test_unknown_chain_has_no_tokens(self):
        assert SwapQuoteEngine.tokens_for_chain(999) == []

    def test_needs_approval(self, settings):
        engine = SwapQuoteEngine(settings)
        eth, usdc = engine.tokens_for_chain(1)[:2]

        assert engine.needs_approval(eth) is False
        assert engine.needs_approval(usdc) is True
        assert engine.is_native_token(NATIVE_TOKEN_ADDRESS.lower())

    def test_search_by_symbol_name_and_address(self, settings):
        engine = SwapQuoteEngine(settings)

        assert [t.symbol for t in engine.search_tokens(1, "usd")] == ["USDC", "USDT"]
        assert {t.symbol for t in engine.search_tokens(1, "wrapped")} == {"WETH", "WBTC"}
        dai = engine.search_tokens(1, "0x6b175474e89094c44da98b954eedeac495271d0f")
        assert [t.symbol for t in dai] == ["DAI"]

    def test_find_token_is_case_insensitive(self, settings):
        engine = SwapQuoteEngine(settings)

        assert engine.find_token(137, "0x2791bca1f2de4661ed88a30c99a7a9449aa84174").symbol == "USDC"
        assert engine.find_token(137, "0x0000000000000000000000000000000000000000") is None

    def test_weth_address(self):
        assert SwapQuoteEngine.weth_address(10) == "0x4200000000000000000000000000000000000006"
        assert SwapQuoteEngine.weth_address(11155111) is None


# =============================================================================
# Price Tests
# =============================================================================

class TestGetPrice:
    """Tests for get_price()."""

    @pytest.mark.asyncio
    async def test_price(self, settings):
        eth_to_usdc_payload = {"price": "1850.5", "buyAmount": "1850500000"}
        recorder = Recorder(httpx.Response(200, json=eth_to_usdc_payload))
        engine = _engine(settings, recorder)
        eth, usdc = engine.tokens_for_chain(1)[:2]

        price = await engine.get_price(
            SwapParams(sell_token=eth, buy_token=usdc, sell_amount="1", taker_address=TAKER), 1
        )

        assert price.price == "1850.5"
        assert price.buy_amount == "1850.5"
        request = recorder.requests[0]
        assert request.url.path == "/swap/v1/price"
        assert request.url.host == "api.0x.org"
        assert request.url.params["sellAmount"] == str(10**18)
        assert "takerAddress" not in request.url.params

    @pytest.mark.asyncio
    @pytest.mark.parametrize("outcome", [
        httpx.Response(400, json={"reason": "Validation Failed"}),
        httpx.Response(200, json={"price": "1"}),
        httpx.ConnectError("Connection refused"),
    ])
    async def test_failures_yield_none(self, settings, usdc_to_eth, outcome):
        engine = _engine(settings, Recorder(outcome))

        assert await engine.get_price(usdc_to_eth, 1) is None

    @pytest.mark.asyncio
    async def test_unsupported_chain_makes_no_request(self, settings, usdc_to_eth):
        recorder = Recorder(httpx.Response(200, json={}))
        engine = _engine(settings, recorder)

        assert await engine.get_price(usdc_to_eth, 11155111) is None
        assert recorder.requests == []


# =============================================================================
# Quote Tests
# =============================================================================

class TestGetQuote:
    """Tests for get_quote()."""

    @pytest.mark.asyncio
    async def test_request_parameters(self, usdc_to_eth):
        settings = Settings(_env_file=None, zerox_api_key="test-key")
        recorder = Recorder(httpx.Response(200, json=quote_payload()))
        engine = _engine(settings, recorder)
        usdc_to_eth.slippage_percentage = 1.0
        usdc_to_eth.excluded_sources = ["Kyber", "Bancor"]

        await engine.get_quote(usdc_to_eth, 42161)

        request = recorder.requests[0]
        assert request.url.host == "arbitrum.api.0x.org"
        assert request.url.path == "/swap/v1/quote"
        assert request.headers["0x-api-key"] == "test-key"
        assert request.url.params["takerAddress"] == TAKER
        assert request.url.params["slippagePercentage"] == "1.0"
        assert request.url.params["excludedSources"] == "Kyber,Bancor"
        assert request.url.params["sellAmount"] == "1000000000"

    @pytest.mark.asyncio
    async def test_default_slippage_and_no_key_header(self, settings, usdc_to_eth):
        recorder = Recorder(httpx.Response(200, json=quote_payload()))

        await _engine(settings, recorder).get_quote(usdc_to_eth, 1)

        request = recorder.requests[0]
        assert request.url.params["slippagePercentage"] == "0.5"
        assert "0x-api-key" not in request.headers

    @pytest.mark.asyncio
    async def test_base_url_override(self, usdc_to_eth):
        settings = Settings(_env_file=None, zerox_base_url_override="http://localhost:9000/")
        recorder = Recorder(httpx.Response(200, json=quote_payload()))

        await _engine(settings, recorder).get_quote(usdc_to_eth, 8453)

        assert str(recorder.requests[0].url).startswith("http://localhost:9000/swap/v1/quote")

    @pytest.mark.asyncio
    async def test_enrichment(self, settings, usdc_to_eth):
        coingecko = Recorder(httpx.Response(200, json={"ethereum": {"usd": 2000, "usd_24h_change": 1.2}}))
        prices = CoingeckoProvider(settings, transport=coingecko.transport)
        engine = _engine(settings, Recorder(httpx.Response(200, json=quote_payload())), prices)
        usdc_to_eth.slippage_percentage = 1.0

        quote = await engine.get_quote(usdc_to_eth, 1)

        assert isinstance(quote, SwapQuote)
        assert quote.buy_amount == "500000000000000000"
        assert quote.minimum_received == "0.495"
        assert [(hop.name, hop.proportion) for hop in quote.route] == [
            ("Uniswap_V3", 60.0),
            ("Curve", 40.0),
        ]
        # 150000 gas at 20 gwei is 0.003 ETH
        assert quote.estimated_gas_usd == "6.00"
        assert coingecko.requests[0].url.params["ids"] == "ethereum"

    @pytest.mark.asyncio
    async def test_gas_usd_absent_when_price_unavailable(self, settings, usdc_to_eth):
        prices = CoingeckoProvider(settings, transport=Recorder(httpx.Response(500)).transport)
        engine = _engine(settings, Recorder(httpx.Response(200, json=quote_payload())), prices)

        quote = await engine.get_quote(usdc_to_eth, 1)

        assert quote.estimated_gas_usd is None
        assert quote.minimum_received is not None

    @pytest.mark.asyncio
    async def test_rejection_carries_the_reason(self, settings, usdc_to_eth):
        body = {"code": 100, "reason": "Validation Failed", "validationErrors": []}
        engine = _engine(settings, Recorder(httpx.Response(400, json=body)))

        with pytest.raises(QuoteRejectedError) as exc_info:
            await engine.get_quote(usdc_to_eth, 1)

        assert str(exc_info.value) == "Validation Failed"
        assert exc_info.value.status_code == 400
        assert exc_info.value.payload["code"] == 100

    @pytest.mark.asyncio
    async def test_rejection_without_reason(self, settings, usdc_to_eth):
        engine = _engine(settings, Recorder(httpx.Response(502, text="Bad Gateway")))

        with pytest.raises(QuoteRejectedError) as exc_info:
            await engine.get_quote(usdc_to_eth, 1)

        assert exc_info.value.reason == "Failed to get quote"

    @pytest.mark.asyncio
    async def test_malformed_body(self, settings, usdc_to_eth):
        engine = _engine(settings, Recorder(httpx.Response(200, json={"price": "1"})))

        with pytest.raises(QuoteRejectedError):
            await engine.get_quote(usdc_to_eth, 1)

    @pytest.mark.asyncio
    async def test_unreachable_aggregator_is_classified(self, settings, usdc_to_eth):
        engine = _engine(settings, Recorder(httpx.ConnectError("Connection refused")))

        with pytest.raises(ChainError) as exc_info:
            await engine.get_quote(usdc_to_eth, 1)

        assert exc_info.value.code == ChainErrorCode.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_unsupported_chain(self, settings, usdc_to_eth):
        recorder = Recorder(httpx.Response(200, json=quote_payload()))

        assert await _engine(settings, recorder).get_quote(usdc_to_eth, 11155111) is None
        assert recorder.requests == []


# =============================================================================
# Helper Tests
# =============================================================================

class TestRouteAndSlippage:
    """Tests for parse_route() and apply_slippage()."""

    def test_route_drops_unused_sources(self):
        route = parse_route([
            SwapSource(name="A", proportion="0.25"),
            SwapSource(name="B", proportion="0"),
            SwapSource(name="C", proportion="0.75"),
        ])

        assert [hop.name for hop in route] == ["C", "A"]
        assert route[0].proportion == 75.0

    def test_numeric_proportions_are_accepted(self):
        assert SwapSource(name="A", proportion=1).proportion == "1"

    @pytest.mark.parametrize("raw, slippage, expected", [
        (1000, 0.5, 995),
        (10000, 0.29, 9971),
        (10**18, 1.0, 99 * 10**16),
        (999, 0.5, 995),
    ])
    def test_apply_slippage(self, raw, slippage, expected):
        assert apply_slippage(raw, slippage) == expected


class TestFormatting:
    """Tests for format_buy_amount() and price impact."""

    @pytest.mark.parametrize("amount, expected", [
        ("0", "0"),
        ("abc", "0"),
        ("0.00001", "< 0.0001"),
        ("0.123456", "0.1235"),
        ("12.345", "12.35"),
        ("999.994", "999.99"),
        ("1234567.891", "1,234,567.89"),
    ])
    def test_format_buy_amount(self, amount, expected):
        assert SwapQuoteEngine.format_buy_amount(amount) == expected

    def test_price_impact(self, settings):
        engine = SwapQuoteEngine(settings)
        quote = SwapQuote.model_validate(quote_payload())

        assert engine.price_impact(quote) == "1.23"
        assert engine.price_impact_level(quote).level == PriceImpactLevel.MEDIUM

    def test_missing_impact_is_zero(self, settings):
        engine = SwapQuoteEngine(settings)
        quote = SwapQuote.model_validate(quote_payload(estimatedPriceImpact=None))

        assert engine.price_impact(quote) == "0.00"
        assert engine.price_impact_level(quote).level == PriceImpactLevel.LOW

    @pytest.mark.parametrize("impact, level", [
        ("0.0099", PriceImpactLevel.LOW),
        ("0.01", PriceImpactLevel.MEDIUM),
        ("0.05", PriceImpactLevel.HIGH),
        ("0.15", PriceImpactLevel.CRITICAL),
    ])
    def test_impact_levels(self, settings, impact, level):
        quote = SwapQuote.model_validate(quote_payload(estimatedPriceImpact=impact))

        assert SwapQuoteEngine(settings).price_impact_level(quote).level == level

    @pytest.mark.parametrize("impact, volatility, expected", [
        (0.5, None, 0.5),
        (3, None, 1.0),
        (6, None, 3.0),
        (6, 10, 3.5),
        (0, 6, 1.0),
        (0, 5, 0.5),
    ])
    def test_auto_slippage(self, impact, volatility, expected):
        assert SwapQuoteEngine.auto_slippage(impact, volatility) == expected
        assert SwapQuoteEngine.auto_slippage(impact, volatility) <= 5.0

    def test_quote_serializes_with_wire_names(self):
        data = SwapQuote.model_validate(quote_payload()).to_dict()

        assert data["buyAmount"] == "500000000000000000"
        assert data["allowanceTarget"] == EXCHANGE_PROXY
        assert Decimal(data["guaranteedPrice"]) == Decimal("0.000495")
