"""
Swap execution: approve-then-swap through the transaction orchestrator.

Sequence for one swap:
1. Fetch a quote (unless the caller already holds a fresh one)
2. For ERC20 sells, read the allowance granted to the quote's allowance target
3. If it is short, approve and wait for it to confirm. The approval is
   unlimited only when the confirmation callback accepted it, otherwise it
   covers exactly the quoted sell amount
4. Send the quote's call
5. Drop cached balances of the taker

The allowance is read on every run, so re-running after an interruption
never sends a second approval once the first one is mined.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..chains import ChainConnectionManager
from ..errors import SwapExecutionError
from ..execution import (
    MAX_UINT256,
    SendParams,
    TransactionBuilder,
    TransactionOrchestrator,
    TransactionRecord,
    TransactionSigner,
    TransactionStatus,
    is_valid_address,
)
from ..units import parse_quantity
from .engine import SwapQuoteEngine
from .models import SwapParams, SwapQuote, SwapToken


logger = logging.getLogger(__name__)

ApprovalConfirmation = Callable[[SwapToken, SwapQuote], Awaitable[bool]]


@dataclass
class SwapExecution:
    """What a swap run sent on-chain."""

    quote: SwapQuote
    swap: TransactionRecord
    approval: Optional[TransactionRecord] = None


class SwapExecutor:
    """Runs swaps end to end for one signer."""

    def __init__(
        self,
        engine: SwapQuoteEngine,
        orchestrator: TransactionOrchestrator,
        connections: ChainConnectionManager,
        signer: TransactionSigner,
        confirm_approval: Optional[ApprovalConfirmation] = None,
    ):
        self.engine = engine
        self.orchestrator = orchestrator
        self.connections = connections
        self.signer = signer
        self.confirm_approval = confirm_approval

    async def read_allowance(
        self,
        token_address: str,
        owner: str,
        spender: str,
        chain_id: int,
        rpc_url: Optional[str] = None,
    ) -> int:
        """ERC20 ``allowance(owner, spender)`` via ``eth_call``."""
        result = await self.connections.call(
            {"to": token_address, "data": TransactionBuilder.encode_allowance(owner, spender)},
            chain_id,
            rpc_url,
        )
        return parse_quantity(result or "0x0")

    async def ensure_allowance(
        self,
        params: SwapParams,
        quote: SwapQuote,
        chain_id: int,
        rpc_url: Optional[str] = None,
    ) -> Optional[TransactionRecord]:
        """
        Approve the quote's allowance target when the current allowance is
        short. Returns the approval record, or ``None`` when none was needed.

        Raises:
            SwapExecutionError: approval declined, or it did not confirm
        """
        if not self.engine.needs_approval(params.sell_token):
            return None

        spender = quote.allowance_target
        if not is_valid_address(spender):
            raise SwapExecutionError("Quote did not include an allowance target")

        token = params.sell_token
        required = int(quote.sell_amount)
        allowance = await self.read_allowance(
            token.address, params.taker_address, spender, chain_id, rpc_url
        )
        if allowance >= required:
            return None

        amount = required
        if self.confirm_approval is not None:
            if not await self.confirm_approval(token, quote):
                raise SwapExecutionError(f"Approval of {token.symbol} was declined")
            amount = MAX_UINT256

        logger.info(
            "Approving %s for %s on chain %s (%s)",
            token.symbol,
            spender,
            chain_id,
            "unlimited" if amount == MAX_UINT256 else amount,
        )
        approval = await self.orchestrator.submit_call(
            SendParams(
                from_address=params.taker_address,
                to_address=token.address,
                data=TransactionBuilder.encode_approve(spender, amount),
            ),
            chain_id,
            self.signer,
            rpc_url,
        )
        status = await self.orchestrator.track(approval, rpc_url=rpc_url)
        if status != TransactionStatus.CONFIRMED:
            raise SwapExecutionError(
                f"Approval of {token.symbol} did not confirm ({status.value.lower()})"
            )
        return approval

    async def execute(
        self,
        params: SwapParams,
        chain_id: int,
        *,
        quote: Optional[SwapQuote] = None,
        rpc_url: Optional[str] = None,
        wait_for_receipt: bool = False,
    ) -> SwapExecution:
        """
        Approve if needed, then send the swap.

        With ``wait_for_receipt`` the swap record is tracked to a terminal
        status (or left PENDING when polling runs out) before returning.
        """
        if quote is None:
            quote = await self.engine.get_quote(params, chain_id)
        if quote is None:
            raise SwapExecutionError(f"Swap not supported on chain {chain_id}")

        approval = await self.ensure_allowance(params, quote, chain_id, rpc_url)

        swap = await self.orchestrator.submit_call(
            SendParams(
                from_address=params.taker_address,
                to_address=quote.to,
                value=int(quote.value or "0"),
                data=quote.data,
                gas=int(quote.gas) or None,
                gas_price=int(quote.gas_price) or None,
            ),
            chain_id,
            self.signer,
            rpc_url,
        )
        logger.info(
            "Swap %s -> %s sent on chain %s as %s",
            params.sell_token.symbol,
            params.buy_token.symbol,
            chain_id,
            swap.hash,
        )

        if wait_for_receipt:
            await self.orchestrator.track(swap, rpc_url=rpc_url)

        await self.connections.invalidate_balances(params.taker_address)
        return SwapExecution(quote=quote, swap=swap, approval=approval)
