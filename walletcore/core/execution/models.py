"""
Transaction execution models and types.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class TransactionStatus(str, Enum):
    """Transaction lifecycle status."""
    CREATED = "CREATED"            # Submission intent recorded
    SIGNED = "SIGNED"              # Signed by the external signer
    BROADCASTED = "BROADCASTED"    # Sent to the node
    PENDING = "PENDING"            # Waiting for a receipt
    CONFIRMED = "CONFIRMED"        # Receipt with success status
    FAILED = "FAILED"              # Reverted, rejected or errored
    REPLACED = "REPLACED"          # Superseded by another tx with the same nonce

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    TransactionStatus.CONFIRMED,
    TransactionStatus.FAILED,
    TransactionStatus.REPLACED,
})


class TransferKind(str, Enum):
    NATIVE = "native"
    TOKEN = "token"


@dataclass
class TransactionRequest:
    """A transfer the user wants to make."""
    from_address: str
    to_address: str
    value: str                                  # Native units, e.g. "0.1"
    chain_id: int
    data: Optional[str] = None                  # Hex calldata
    rpc_url: Optional[str] = None


@dataclass
class TransactionEstimate:
    """Gas estimation for a transaction."""
    gas_limit: int                              # After buffer
    gas_price: int                              # Wei per gas
    estimated_fee: str                          # Native units, formatted
    estimated_fee_wei: int
    is_fallback: bool = False                   # Default gas limit was used

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gasLimit": str(self.gas_limit),
            "gasPrice": str(self.gas_price),
            "estimatedFee": self.estimated_fee,
            "estimatedFeeWei": str(self.estimated_fee_wei),
            "isFallback": self.is_fallback,
        }


@dataclass
class TransactionRecord:
    """One user-initiated transfer, tracked through its lifecycle."""
    id: str
    from_address: str
    to_address: str
    value: str
    chain_id: int
    status: TransactionStatus = TransactionStatus.CREATED
    hash: Optional[str] = None
    nonce: Optional[int] = None
    gas_limit: Optional[str] = None
    gas_price: Optional[str] = None
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    error: Optional[str] = None
    replaced_by: Optional[str] = None           # id of the superseding record

    @property
    def is_final(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hash": self.hash,
            "from": self.from_address,
            "to": self.to_address,
            "value": self.value,
            "chainId": self.chain_id,
            "status": self.status.value,
            "nonce": self.nonce,
            "gasLimit": self.gas_limit,
            "gasPrice": self.gas_price,
            "timestamp": self.timestamp,
            "error": self.error,
            "replacedBy": self.replaced_by,
        }


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


@dataclass
class MaxSendable:
    max_amount: str
    fee: str


@dataclass
class SendParams:
    """What gets handed to the external signer."""
    from_address: str
    to_address: str
    value: int = 0                              # Wei
    data: Optional[str] = None
    gas: Optional[int] = None
    gas_price: Optional[int] = None
    nonce: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        tx: Dict[str, Any] = {
            "from": self.from_address,
            "to": self.to_address,
            "value": hex(self.value),
        }
        if self.data:
            tx["data"] = self.data
        if self.gas is not None:
            tx["gas"] = hex(self.gas)
        if self.gas_price is not None:
            tx["gasPrice"] = hex(self.gas_price)
        if self.nonce is not None:
            tx["nonce"] = hex(self.nonce)
        return tx
