"""
Error Classification

Maps raw transport/contract failures onto ``ChainErrorCode`` and decides
retryability and backoff.
"""

import math
import random
import re
from typing import Optional

import httpx

from .errors import ChainError, ChainErrorCode

MAX_RETRY_DELAY_SECONDS = 30.0
BASE_RETRY_DELAY_SECONDS = 1.0
JITTER_FRACTION = 0.25
# Smallest exponent whose doubling reaches the cap
_MAX_EXPONENT = math.ceil(math.log2(MAX_RETRY_DELAY_SECONDS / BASE_RETRY_DELAY_SECONDS))

_TIMEOUT_PATTERNS = ("timeout", "timed out")
_RATE_LIMIT_PATTERNS = ("429", "rate limit", "too many requests")
_FUNDS_PATTERNS = ("insufficient funds",)
_NETWORK_PATTERNS = ("network", "econnrefused", "etimedout", "connection")

_SERVER_ERROR_RE = re.compile(r"\b5\d\d\b")


def _status_code_of(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def classify(error: BaseException) -> ChainError:
    """
    Classify an exception into a ``ChainError``.

    Matching is done on the lower-cased message and, where available, the
    HTTP status code. Already-classified errors pass through untouched.
    """
    if isinstance(error, ChainError):
        return error

    message = str(error) or error.__class__.__name__
    lowered = message.lower()
    status = _status_code_of(error)

    if isinstance(error, httpx.TimeoutException) or any(p in lowered for p in _TIMEOUT_PATTERNS):
        return ChainError(ChainErrorCode.RPC_TIMEOUT, "RPC request timed out", raw=error, status_code=status)

    if status == 429 or any(p in lowered for p in _RATE_LIMIT_PATTERNS):
        return ChainError(ChainErrorCode.RATE_LIMIT, "RPC rate limit exceeded", raw=error, status_code=status)

    if any(p in lowered for p in _FUNDS_PATTERNS):
        return ChainError(ChainErrorCode.INSUFFICIENT_FUNDS, "Insufficient funds", raw=error, status_code=status)

    if isinstance(error, httpx.TransportError) or any(p in lowered for p in _NETWORK_PATTERNS):
        return ChainError(ChainErrorCode.NETWORK_ERROR, "Network error", raw=error, status_code=status)

    return ChainError(ChainErrorCode.UNKNOWN, message, raw=error, status_code=status)


def is_retryable(error: ChainError) -> bool:
    """Whether repeating the same call could plausibly succeed."""
    if error.code in (
        ChainErrorCode.RPC_TIMEOUT,
        ChainErrorCode.RATE_LIMIT,
        ChainErrorCode.NETWORK_ERROR,
    ):
        return True

    if error.code == ChainErrorCode.UNKNOWN:
        if error.status_code is not None:
            return 500 <= error.status_code < 600
        return bool(_SERVER_ERROR_RE.search(error.message))

    # INSUFFICIENT_FUNDS: retrying cannot fund the account
    return False


def retry_delay(attempt: int, rng: Optional[random.Random] = None) -> float:
    """
    Exponential backoff for ``attempt`` (0-based), in seconds.

    ``min(30, 1 * 2**attempt)`` plus up to 25% jitter on top.
    """
    rng = rng or random
    base = min(MAX_RETRY_DELAY_SECONDS, BASE_RETRY_DELAY_SECONDS * (2 ** min(max(attempt, 0), _MAX_EXPONENT)))
    return base + rng.uniform(0, base * JITTER_FRACTION)
