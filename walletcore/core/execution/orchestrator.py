"""
Transaction orchestration.

Validates, estimates, submits and tracks native and ERC20 transfers on top
of ``ChainConnectionManager``. Signing happens outside walletcore through a
``TransactionSigner``; this module broadcasts the signed payload and
follows the transaction to a terminal status.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from structlog.contextvars import bound_contextvars

from ...config import Settings, settings as default_settings
from ..chains import Balance, ChainConnectionManager
from ..errors import (
    ChainError,
    ChainErrorCode,
    EstimationError,
    InvalidTransitionError,
    WalletCoreError,
    classify,
)
from ..units import format_ether, parse_ether, to_decimal
from .models import (
    MaxSendable,
    SendParams,
    TransactionEstimate,
    TransactionRecord,
    TransactionRequest,
    TransactionStatus,
    TransferKind,
    ValidationResult,
)
from .poller import ReceiptPoller, Sleep, StatusCallback
from .signer import TransactionSigner
from .state_machine import TransactionStateMachine
from .tx_builder import TransactionBuilder, is_valid_address


logger = logging.getLogger(__name__)

INVALID_RECIPIENT = "Invalid recipient address"
SELF_TRANSFER = "Cannot send to your own address"
INVALID_AMOUNT = "Invalid amount: enter a positive number"
INSUFFICIENT_BALANCE = "Insufficient balance for this transfer"
INSUFFICIENT_BALANCE_FOR_FEE = (
    "Insufficient balance to cover this transfer and its network fee"
)
ENTER_GAS_MANUALLY = "Unable to estimate the network fee. Enter a gas limit manually."

# Gas limit buffers in percent, applied with ceiling rounding
GAS_BUFFER_PERCENT = {
    TransferKind.NATIVE: 20,
    TransferKind.TOKEN: 30,
}

MAX_SENDABLE_PROBE_AMOUNT = "0.0001"

_NETWORK_CODES = {
    ChainErrorCode.RPC_TIMEOUT,
    ChainErrorCode.RATE_LIMIT,
    ChainErrorCode.NETWORK_ERROR,
}


def apply_gas_buffer(gas: int, percent: int) -> int:
    """``ceil(gas * (100 + percent) / 100)`` in integer math."""
    return -(-gas * (100 + percent) // 100)


class TransactionOrchestrator:
    """
    Drives transfers through validation, estimation and their lifecycle.

    Keeps an in-memory ledger of the records it created; persisting them
    is the caller's concern.
    """

    def __init__(
        self,
        connections: ChainConnectionManager,
        *,
        settings: Optional[Settings] = None,
        state_machine: Optional[TransactionStateMachine] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.connections = connections
        self.settings = settings or default_settings
        self.state_machine = state_machine or TransactionStateMachine()
        self._sleep = sleep or asyncio.sleep
        self._records: Dict[str, TransactionRecord] = {}

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_address(address: Any) -> bool:
        return is_valid_address(address)

    @staticmethod
    def validate_amount(amount: Any) -> bool:
        value = to_decimal(amount)
        return value is not None and value > 0

    def validate_transaction(
        self,
        request: TransactionRequest,
        current_balance: Union[int, Balance],
    ) -> ValidationResult:
        """
        Check a native transfer before estimating it.

        ``current_balance`` is the sender's balance in wei (or a ``Balance``).
        The first failing check wins.
        """
        if not self.validate_address(request.to_address):
            return ValidationResult(valid=False, error=INVALID_RECIPIENT)

        if request.from_address.lower() == request.to_address.lower():
            return ValidationResult(valid=False, error=SELF_TRANSFER)

        if not self.validate_amount(request.value):
            return ValidationResult(valid=False, error=INVALID_AMOUNT)

        balance = current_balance.raw if isinstance(current_balance, Balance) else int(current_balance)
        try:
            value = parse_ether(request.value)
        except ValueError:
            # amounts beyond uint256 exceed any balance
            return ValidationResult(valid=False, error=INSUFFICIENT_BALANCE)
        if value > balance:
            return ValidationResult(valid=False, error=INSUFFICIENT_BALANCE)

        return ValidationResult(valid=True)

    # ------------------------------------------------------------------
    # Estimation
    # ------------------------------------------------------------------

    def _make_estimate(self, gas_limit: int, gas_price: int, is_fallback: bool = False) -> TransactionEstimate:
        fee_wei = gas_limit * gas_price
        return TransactionEstimate(
            gas_limit=gas_limit,
            gas_price=gas_price,
            estimated_fee=format_ether(fee_wei),
            estimated_fee_wei=fee_wei,
            is_fallback=is_fallback,
        )

    async def _estimate(
        self,
        call: Dict[str, Any],
        chain_id: int,
        rpc_url: Optional[str],
        kind: TransferKind,
    ) -> TransactionEstimate:
        gas, gas_price = await asyncio.gather(
            self.connections.estimate_gas(call, chain_id, rpc_url),
            self.connections.get_gas_price(chain_id, rpc_url),
        )
        return self._make_estimate(apply_gas_buffer(gas, GAS_BUFFER_PERCENT[kind]), gas_price)

    async def estimate_transaction(self, request: TransactionRequest) -> TransactionEstimate:
        """
        Estimate a native transfer (or a call carrying ``request.data``).

        Raises:
            EstimationError: balance too low, or the node could not estimate
        """
        if not self.validate_amount(request.value):
            raise EstimationError(INVALID_AMOUNT)
        try:
            value = parse_ether(request.value)
        except ValueError as exc:
            raise EstimationError(INVALID_AMOUNT) from exc

        call: Dict[str, Any] = {
            "from": request.from_address,
            "to": request.to_address,
            "value": hex(value),
        }
        if request.data:
            call["data"] = request.data

        try:
            return await self._estimate(call, request.chain_id, request.rpc_url, TransferKind.NATIVE)
        except ChainError as exc:
            if exc.code == ChainErrorCode.INSUFFICIENT_FUNDS:
                raise EstimationError(INSUFFICIENT_BALANCE_FOR_FEE, cause=exc) from exc
            if exc.code in _NETWORK_CODES:
                raise EstimationError(exc.user_message, cause=exc) from exc
            raise EstimationError(ENTER_GAS_MANUALLY, cause=exc) from exc

    async def estimate_token_transfer(
        self,
        from_address: str,
        to_address: str,
        token_address: str,
        amount: str,
        decimals: int,
        chain_id: int,
        rpc_url: Optional[str] = None,
    ) -> TransactionEstimate:
        """
        Estimate an ERC20 transfer with a 30% buffer.

        When the node cannot estimate (other than for lack of funds) the
        configured default gas limit is used with a live gas price, so the
        user can still send with a manual limit.
        """
        if not self.validate_amount(amount):
            raise EstimationError(INVALID_AMOUNT)

        try:
            envelope = self.build_token_transfer_request(
                from_address, to_address, token_address, amount, decimals
            )
        except ValueError as exc:
            raise EstimationError(INVALID_AMOUNT) from exc
        call = {
            "from": from_address,
            "to": envelope["to"],
            "data": envelope["data"],
            "value": hex(envelope["value"]),
        }

        try:
            return await self._estimate(call, chain_id, rpc_url, TransferKind.TOKEN)
        except ChainError as exc:
            if exc.code == ChainErrorCode.INSUFFICIENT_FUNDS:
                raise EstimationError(INSUFFICIENT_BALANCE_FOR_FEE, cause=exc) from exc
            logger.warning(
                "Token gas estimation failed on chain %s (%s); using default gas limit %d",
                chain_id,
                exc.code.value,
                self.settings.default_token_gas_limit,
            )

        try:
            gas_price = await self.connections.get_gas_price(chain_id, rpc_url)
        except ChainError as exc:
            raise EstimationError(exc.user_message, cause=exc) from exc
        return self._make_estimate(self.settings.default_token_gas_limit, gas_price, is_fallback=True)

    async def calculate_max_sendable(
        self,
        from_address: str,
        to_address: str,
        chain_id: int,
        rpc_url: Optional[str] = None,
    ) -> MaxSendable:
        """Largest native amount sendable after fees; ``"0"`` when fees eat the balance."""
        balance = await self.connections.get_balance(from_address, chain_id, rpc_url, fresh=True)
        estimate = await self.estimate_transaction(
            TransactionRequest(
                from_address=from_address,
                to_address=to_address,
                value=MAX_SENDABLE_PROBE_AMOUNT,
                chain_id=chain_id,
                rpc_url=rpc_url,
            )
        )
        remaining = balance.raw - estimate.estimated_fee_wei
        if remaining <= 0:
            return MaxSendable(max_amount="0", fee=estimate.estimated_fee)
        return MaxSendable(max_amount=format_ether(remaining), fee=estimate.estimated_fee)

    async def get_nonce(self, address: str, chain_id: int, rpc_url: Optional[str] = None) -> int:
        return await self.connections.get_nonce(address, chain_id, rpc_url)

    # ------------------------------------------------------------------
    # Call data
    # ------------------------------------------------------------------

    @staticmethod
    def encode_token_transfer(to: str, raw_amount: int) -> str:
        return TransactionBuilder.encode_token_transfer(to, raw_amount)

    @staticmethod
    def build_token_transfer_request(
        from_address: str,
        to_address: str,
        token_address: str,
        amount: str,
        decimals: int,
    ) -> Dict[str, Any]:
        return TransactionBuilder.build_token_transfer_request(
            from_address, to_address, token_address, amount, decimals
        )

    @staticmethod
    def generate_transaction_id() -> str:
        return TransactionBuilder.generate_tx_id()

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    async def wait_for_transaction(
        self,
        tx_hash: str,
        chain_id: int,
        on_status: Optional[StatusCallback] = None,
        rpc_url: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransactionStatus:
        """
        Poll for the receipt of ``tx_hash``.

        Returns CONFIRMED or FAILED once mined, PENDING if the polling budget
        ran out. ``on_status`` sees PENDING first, then the terminal status.
        """
        poller = ReceiptPoller(
            lambda: self.connections.get_receipt(tx_hash, chain_id, rpc_url),
            interval_seconds=self.settings.tx_poll_interval_seconds,
            max_attempts=self.settings.tx_poll_max_attempts,
            sleep=self._sleep,
            cancel_event=cancel_event,
        )
        status = await poller.run(on_status)
        if status == TransactionStatus.PENDING:
            logger.info("No receipt for %s after %d polls", tx_hash, poller.attempts)
        else:
            logger.info("Transaction %s on chain %s %s", tx_hash, chain_id, status.value.lower())
        return status

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def records(self) -> List[TransactionRecord]:
        return list(self._records.values())

    def get_record(self, record_id: str) -> Optional[TransactionRecord]:
        return self._records.get(record_id)

    def create_record(self, request: TransactionRequest) -> TransactionRecord:
        record = TransactionRecord(
            id=self.generate_transaction_id(),
            from_address=request.from_address,
            to_address=request.to_address,
            value=request.value,
            chain_id=request.chain_id,
        )
        self._records[record.id] = record
        return record

    async def submit(
        self,
        request: TransactionRequest,
        signer: TransactionSigner,
        *,
        estimate: Optional[TransactionEstimate] = None,
        nonce: Optional[int] = None,
    ) -> TransactionRecord:
        """
        Sign and broadcast a transfer; the returned record is PENDING.

        Raises:
            ValueError: for a request that fails amount validation
            WalletCoreError: when signing or broadcasting failed (the record
                is kept as FAILED)
        """
        if not self.validate_amount(request.value):
            raise ValueError(INVALID_AMOUNT)

        params = SendParams(
            from_address=request.from_address,
            to_address=request.to_address,
            value=parse_ether(request.value),
            data=request.data,
            gas=estimate.gas_limit if estimate else None,
            gas_price=estimate.gas_price if estimate else None,
            nonce=nonce,
        )
        record = self.create_record(request)
        await self._sign_and_broadcast(record, params, request.chain_id, signer, request.rpc_url)
        return record

    async def submit_call(
        self,
        params: SendParams,
        chain_id: int,
        signer: TransactionSigner,
        rpc_url: Optional[str] = None,
    ) -> TransactionRecord:
        """Sign and broadcast a prepared call such as an approval or a swap."""
        record = self.create_record(
            TransactionRequest(
                from_address=params.from_address,
                to_address=params.to_address,
                value=format_ether(params.value),
                chain_id=chain_id,
                data=params.data,
                rpc_url=rpc_url,
            )
        )
        await self._sign_and_broadcast(record, params, chain_id, signer, rpc_url)
        return record

    async def _sign_and_broadcast(
        self,
        record: TransactionRecord,
        params: SendParams,
        chain_id: int,
        signer: TransactionSigner,
        rpc_url: Optional[str],
    ) -> None:
        record.nonce = params.nonce
        record.gas_limit = str(params.gas) if params.gas is not None else None
        record.gas_price = str(params.gas_price) if params.gas_price is not None else None

        with bound_contextvars(tx_id=record.id, chain_id=chain_id):
            try:
                raw_transaction = await signer.sign_transaction(params, chain_id)
            except WalletCoreError as exc:
                message = exc.user_message if isinstance(exc, ChainError) else exc.message
                self.state_machine.transition(record, TransactionStatus.FAILED, error=message)
                logger.warning("Signing failed for %s: %s", record.id, exc)
                raise
            except Exception as exc:
                error = classify(exc)
                self.state_machine.transition(record, TransactionStatus.FAILED, error=error.user_message)
                logger.warning("Signing failed for %s: %s", record.id, exc)
                raise error from exc
            self.state_machine.transition(record, TransactionStatus.SIGNED)

            try:
                tx_hash = await self.connections.send_raw_transaction(raw_transaction, chain_id, rpc_url)
            except ChainError as exc:
                self.state_machine.transition(record, TransactionStatus.FAILED, error=exc.user_message)
                raise
            record.hash = tx_hash
            self.state_machine.transition(record, TransactionStatus.BROADCASTED)
            self.state_machine.transition(record, TransactionStatus.PENDING)
            logger.info("Broadcast %s as %s", record.id, tx_hash)

    async def track(
        self,
        record: TransactionRecord,
        on_status: Optional[StatusCallback] = None,
        rpc_url: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransactionStatus:
        """
        Wait for ``record`` to be mined and apply the outcome to it.

        A record whose receipt never showed up stays PENDING.
        """
        if record.hash is None:
            raise WalletCoreError(f"Transaction {record.id} has not been broadcast")
        if record.is_final:
            return record.status

        def apply(status: TransactionStatus) -> None:
            if status.is_terminal and not record.is_final:
                error = "Transaction reverted" if status == TransactionStatus.FAILED else None
                self.state_machine.advance_to(record, status, error=error)
            if on_status is not None:
                on_status(status)

        await self.wait_for_transaction(
            record.hash,
            record.chain_id,
            on_status=apply,
            rpc_url=rpc_url,
            cancel_event=cancel_event,
        )
        return record.status

    def mark_replaced(self, record: TransactionRecord, replacement: TransactionRecord) -> None:
        """Mark ``record`` as superseded by ``replacement``; both stay in the ledger."""
        self.state_machine.transition(record, TransactionStatus.REPLACED)
        record.replaced_by = replacement.id

    async def replace(
        self,
        record: TransactionRecord,
        request: TransactionRequest,
        signer: TransactionSigner,
        *,
        estimate: Optional[TransactionEstimate] = None,
    ) -> TransactionRecord:
        """
        Re-submit with the nonce of ``record`` (speed-up or cancel) and
        mark ``record`` as replaced once the new transaction is broadcast.

        Raises:
            InvalidTransitionError: ``record`` can no longer be replaced
        """
        if not self.state_machine.can_transition(record.status, TransactionStatus.REPLACED):
            raise InvalidTransitionError(record.status.value, TransactionStatus.REPLACED.value)

        nonce = record.nonce
        if nonce is None:
            nonce = await self.get_nonce(record.from_address, record.chain_id, request.rpc_url)
            record.nonce = nonce

        replacement = await self.submit(request, signer, estimate=estimate, nonce=nonce)
        self.mark_replaced(record, replacement)
        return replacement
