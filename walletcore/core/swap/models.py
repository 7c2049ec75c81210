"""Typed models used by the swap subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class SwapToken:
    """A token offered in the swap picker."""

    symbol: str
    name: str
    address: str
    decimals: int
    logo_url: Optional[str] = None
    is_native: bool = False
    coingecko_id: Optional[str] = None


@dataclass
class SwapParams:
    """What the user wants to trade."""

    sell_token: SwapToken
    buy_token: SwapToken
    sell_amount: str                            # Display units of sell_token
    taker_address: str
    slippage_percentage: Optional[float] = None
    excluded_sources: List[str] = field(default_factory=list)
    gas_price: Optional[str] = None             # Wei, forwarded to the aggregator
    skip_validation: bool = False


class SwapSource(BaseModel):
    """Share of the fill routed through one liquidity source."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str
    proportion: str = "0"


@dataclass
class SwapRoute:
    """A liquidity source used by a quote, proportion in percent."""

    name: str
    proportion: float
    from_token: str = ""
    to_token: str = ""
    hops: int = 1


class SwapQuote(BaseModel):
    """
    Executable quote from the aggregator.

    Amounts are raw integer strings. A quote is a snapshot: execute it
    promptly or fetch a new one.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    sell_token: str = Field(..., alias="sellToken")
    buy_token: str = Field(..., alias="buyToken")
    sell_amount: str = Field(..., alias="sellAmount")
    buy_amount: str = Field(..., alias="buyAmount")
    price: str = Field("0")
    guaranteed_price: str = Field("0", alias="guaranteedPrice")
    estimated_price_impact: Optional[str] = Field(None, alias="estimatedPriceImpact")
    gas: str = Field("0")
    gas_price: str = Field("0", alias="gasPrice")
    protocol_fee: str = Field("0", alias="protocolFee")
    minimum_protocol_fee: str = Field("0", alias="minimumProtocolFee")
    sources: List[SwapSource] = Field(default_factory=list)
    allowance_target: str = Field("", alias="allowanceTarget")
    to: str = Field("")
    data: str = Field("0x")
    value: str = Field("0")

    # Filled in locally after the quote arrives
    minimum_received: Optional[str] = Field(None, alias="minimumReceived")
    estimated_gas_usd: Optional[str] = Field(None, alias="estimatedGasUsd")
    route: List[SwapRoute] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class SwapPrice:
    """Indicative price; ``buy_amount`` is in display units of the buy token."""

    price: str
    buy_amount: str


class PriceImpactLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class PriceImpact:
    percent: str                                # e.g. "1.25"
    level: PriceImpactLevel
