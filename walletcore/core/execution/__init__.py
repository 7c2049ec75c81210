"""
Transaction Execution Layer

Validates, estimates, submits and tracks transfers:
- TransactionOrchestrator: the entry point for native and ERC20 transfers
- TransactionBuilder: ERC20 call data and transaction ids
- TransactionStateMachine: lifecycle transitions of a TransactionRecord
- ReceiptPoller: bounded receipt polling

Usage:
    from walletcore.core.execution import TransactionOrchestrator, TransactionRequest

    orchestrator = TransactionOrchestrator(connections, settings=settings)

    request = TransactionRequest(
        from_address="0x...",
        to_address="0x...",
        value="0.1",
        chain_id=1,
    )
    estimate = await orchestrator.estimate_transaction(request)
    record = await orchestrator.submit(request, signer, estimate=estimate)
    await orchestrator.track(record)
"""

from .models import (
    TERMINAL_STATUSES,
    MaxSendable,
    SendParams,
    TransactionEstimate,
    TransactionRecord,
    TransactionRequest,
    TransactionStatus,
    TransferKind,
    ValidationResult,
)

from .tx_builder import (
    ERC20_ALLOWANCE_SELECTOR,
    ERC20_APPROVE_SELECTOR,
    ERC20_TRANSFER_SELECTOR,
    MAX_UINT256,
    TransactionBuilder,
    is_valid_address,
)

from .state_machine import StatusTransition, TransactionStateMachine
from .poller import ReceiptPoller, receipt_status
from .signer import TransactionSigner
from .orchestrator import TransactionOrchestrator, apply_gas_buffer

__all__ = [
    # Models
    "TERMINAL_STATUSES",
    "MaxSendable",
    "SendParams",
    "TransactionEstimate",
    "TransactionRecord",
    "TransactionRequest",
    "TransactionStatus",
    "TransferKind",
    "ValidationResult",
    # Builder
    "ERC20_ALLOWANCE_SELECTOR",
    "ERC20_APPROVE_SELECTOR",
    "ERC20_TRANSFER_SELECTOR",
    "MAX_UINT256",
    "TransactionBuilder",
    "is_valid_address",
    # Lifecycle
    "StatusTransition",
    "TransactionStateMachine",
    "ReceiptPoller",
    "receipt_status",
    "TransactionSigner",
    "TransactionOrchestrator",
    "apply_gas_buffer",
]
