"""
Swap Layer

- SwapQuoteEngine: token catalog, aggregator prices and quotes, presentation helpers
- SwapExecutor: approve-then-swap through the TransactionOrchestrator
"""

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
from .constants import NATIVE_TOKEN_ADDRESS, SWAP_TOKENS, WETH_ADDRESSES, ZEROX_API_URLS
from .engine import SwapQuoteEngine, apply_slippage, parse_route
from .executor import ApprovalConfirmation, SwapExecution, SwapExecutor

__all__ = [
    # Models
    "PriceImpact",
    "PriceImpactLevel",
    "SwapParams",
    "SwapPrice",
    "SwapQuote",
    "SwapRoute",
    "SwapSource",
    "SwapToken",
    # Catalog
    "NATIVE_TOKEN_ADDRESS",
    "SWAP_TOKENS",
    "WETH_ADDRESSES",
    "ZEROX_API_URLS",
    # Engine
    "SwapQuoteEngine",
    "apply_slippage",
    "parse_route",
    # Execution
    "ApprovalConfirmation",
    "SwapExecution",
    "SwapExecutor",
]
