"""
Transaction builder: ERC-20 call data and transfer envelopes.
"""

import re
import secrets
import string
import threading
import time
from typing import Any, Dict

from ..units import to_base_units


# Common contract ABIs (minimal for encoding)
ERC20_TRANSFER_SELECTOR = "0xa9059cbb"  # transfer(address,uint256)
ERC20_APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)

# Maximum uint256 for unlimited approval
MAX_UINT256 = 2**256 - 1

TOKEN_TRANSFER_CALLDATA_LENGTH = 2 + 8 + 64 + 64

ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")

_BASE36 = string.digits + string.ascii_lowercase
_id_lock = threading.Lock()
_last_id_millis = 0


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"Value out of uint256 range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    if not ADDRESS_RE.fullmatch(address or ""):
        raise ValueError(f"Invalid address: {address!r}")
    return address[2:].lower().zfill(64)


def _next_millis() -> int:
    global _last_id_millis
    with _id_lock:
        now = int(time.time() * 1000)
        _last_id_millis = max(now, _last_id_millis + 1)
        return _last_id_millis


class TransactionBuilder:
    """
    Builds call data and call envelopes.

    Handles:
    - ERC20 transfers
    - ERC20 approvals and allowance reads
    - Local transaction ids
    """

    @staticmethod
    def generate_tx_id() -> str:
        """
        Generate a locally-unique transaction id.

        ``tx_<millis>_<9 base36 chars>``; the millisecond part never goes
        backwards within a process.
        """
        suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
        return f"tx_{_next_millis()}_{suffix}"

    @staticmethod
    def encode_token_transfer(to: str, raw_amount: int) -> str:
        """
        Encode ``transfer(address,uint256)`` call data.

        Always 138 characters: ``0x`` + 4-byte selector + two 32-byte words.
        """
        return (
            ERC20_TRANSFER_SELECTOR +
            _encode_address(to) +
            _encode_uint256(int(raw_amount))
        )

    @staticmethod
    def encode_approve(spender: str, raw_amount: int = MAX_UINT256) -> str:
        """Encode ``approve(address,uint256)``; unlimited by default."""
        return (
            ERC20_APPROVE_SELECTOR +
            _encode_address(spender) +
            _encode_uint256(int(raw_amount))
        )

    @staticmethod
    def encode_allowance(owner: str, spender: str) -> str:
        """Encode ``allowance(address,address)`` for an ``eth_call``."""
        return (
            ERC20_ALLOWANCE_SELECTOR +
            _encode_address(owner) +
            _encode_address(spender)
        )

    @staticmethod
    def build_token_transfer_request(
        from_address: str,
        to_address: str,
        token_address: str,
        amount: str,
        decimals: int,
    ) -> Dict[str, Any]:
        """
        Build the call envelope for an ERC20 transfer.

        Args:
            from_address: The sender (kept for symmetry with native transfers)
            to_address: The token recipient
            token_address: The ERC20 token contract
            amount: Human-readable token amount, e.g. "12.5"
            decimals: The token's decimal precision

        Returns:
            ``{"to": token, "data": calldata, "value": 0}``
        """
        raw_amount = to_base_units(amount, decimals)
        return {
            "to": token_address,
            "data": TransactionBuilder.encode_token_transfer(to_address, raw_amount),
            "value": 0,
        }


def is_valid_address(address: Any) -> bool:
    return isinstance(address, str) and bool(ADDRESS_RE.fullmatch(address))
