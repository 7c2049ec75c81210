"""
Error Taxonomy

Every transport or contract failure is normalised into a ``ChainError`` with
one of a closed set of codes. Components above the connection layer only
ever reason over ``ChainErrorCode``.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ChainErrorCode(str, Enum):
    """Closed set of chain failure categories."""

    RPC_TIMEOUT = "RPC_TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN = "UNKNOWN"


# Messages safe to show a user; network-layer codes never expose transport text.
USER_MESSAGES: Dict[ChainErrorCode, str] = {
    ChainErrorCode.RPC_TIMEOUT: "The network node took too long to respond. Please try again.",
    ChainErrorCode.RATE_LIMIT: "Too many requests to the network node. Please wait a moment and retry.",
    ChainErrorCode.INSUFFICIENT_FUNDS: "Insufficient balance to cover the amount and network fee.",
    ChainErrorCode.NETWORK_ERROR: "Could not reach the network. Check your connection and retry.",
    ChainErrorCode.UNKNOWN: "Something went wrong while talking to the network. Please try again.",
}


class WalletCoreError(Exception):
    """Base class for every error raised by walletcore."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ChainError(WalletCoreError):
    """A classified chain/transport failure."""

    def __init__(
        self,
        code: ChainErrorCode,
        message: str,
        raw: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.raw = raw
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.code]

    def __repr__(self) -> str:
        return f"ChainError(code={self.code.value!r}, message={self.message!r}, status_code={self.status_code!r})"


class UnsupportedChainError(WalletCoreError):
    """Chain id is not in the static registry. Not recoverable."""

    def __init__(self, chain_id: int):
        super().__init__(f"Unsupported chain: {chain_id}")
        self.chain_id = chain_id


class RpcError(WalletCoreError):
    """JSON-RPC error object returned by a node."""

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data

    def __str__(self) -> str:
        return f"RPC error {self.code}: {self.message}" if self.code is not None else self.message


class EstimationError(WalletCoreError):
    """Gas could not be estimated and the caller has to act on it."""

    def __init__(self, message: str, cause: Optional[ChainError] = None):
        super().__init__(message)
        self.cause = cause


class QuoteRejectedError(WalletCoreError):
    """The swap aggregator refused to produce a quote."""

    def __init__(
        self,
        reason: str,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code
        self.payload = payload or {}


class SwapExecutionError(WalletCoreError):
    """The approve-then-swap sequence stopped before the swap was sent."""


class InvalidTransitionError(WalletCoreError):
    """Transaction status change not allowed by the lifecycle."""

    def __init__(self, from_status: Any, to_status: Any):
        super().__init__(f"Cannot transition from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status
