"""
Error Module

Closed chain-error taxonomy plus classification and backoff helpers.
"""

from .errors import (
    ChainError,
    ChainErrorCode,
    EstimationError,
    InvalidTransitionError,
    QuoteRejectedError,
    RpcError,
    SwapExecutionError,
    UnsupportedChainError,
    WalletCoreError,
)
from .classifier import classify, is_retryable, retry_delay

__all__ = [
    # Errors
    "WalletCoreError",
    "ChainError",
    "ChainErrorCode",
    "UnsupportedChainError",
    "RpcError",
    "EstimationError",
    "QuoteRejectedError",
    "SwapExecutionError",
    "InvalidTransitionError",
    # Classification
    "classify",
    "is_retryable",
    "retry_delay",
]
