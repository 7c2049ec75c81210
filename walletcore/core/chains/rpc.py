"""
JSON-RPC client for a single chain endpoint.

One ``RpcClient`` owns one ``httpx.AsyncClient`` configured with the
transport retry policy. It raises raw errors (``httpx`` exceptions or
``RpcError``); classification happens in ``ChainConnectionManager``.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..errors import RpcError, classify, is_retryable
from ..units import parse_quantity
from .registry import ChainDescriptor

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Transport retry settings applied to every RPC call."""

    retry_count: int = 3
    retry_delay_seconds: float = 1.0
    timeout_seconds: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry ``attempt`` (0-based): base * 2**attempt."""
        return self.retry_delay_seconds * (2 ** attempt)


class RpcClient:
    """Connection handle for one ``(chain_id, rpc_url)`` pair."""

    def __init__(
        self,
        chain: ChainDescriptor,
        rpc_url: str,
        *,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.chain = chain
        self.rpc_url = rpc_url
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._ids = itertools.count(1)
        self._logger = logger or logging.getLogger(__name__)
        self._client = httpx.AsyncClient(
            timeout=self.policy.timeout_seconds,
            transport=transport,
            headers={"content-type": "application/json"},
        )

    @property
    def chain_id(self) -> int:
        return self.chain.chain_id

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def request(self, method: str, params: List[Any]) -> Any:
        """Make an RPC call, retrying transient failures per the policy."""
        attempt = 0
        while True:
            try:
                return await self._send(method, params)
            except (httpx.HTTPError, RpcError) as exc:
                classified = classify(exc)
                if attempt >= self.policy.retry_count or not is_retryable(classified):
                    raise
                delay = self.policy.delay_for(attempt)
                self._logger.debug(
                    "RPC %s on chain %s failed (%s), retry %d/%d in %.1fs",
                    method,
                    self.chain_id,
                    classified.code.value,
                    attempt + 1,
                    self.policy.retry_count,
                    delay,
                )
                attempt += 1
                await self._sleep(delay)

    async def _send(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        response = await self._client.post(self.rpc_url, json=payload)
        response.raise_for_status()
        result = response.json()

        if result.get("error"):
            error = result["error"]
            if isinstance(error, dict):
                raise RpcError(error.get("code"), str(error.get("message", "")), error.get("data"))
            raise RpcError(None, str(error))

        return result.get("result")

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return parse_quantity(await self.request("eth_getBalance", [address, block]))

    async def get_gas_price(self) -> int:
        return parse_quantity(await self.request("eth_gasPrice", []))

    async def estimate_gas(self, call: Dict[str, Any]) -> int:
        return parse_quantity(await self.request("eth_estimateGas", [call]))

    async def get_transaction_count(self, address: str, block: str = "latest") -> int:
        return parse_quantity(await self.request("eth_getTransactionCount", [address, block]))

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Receipt for ``tx_hash``; ``None`` while the transaction is unmined."""
        return await self.request("eth_getTransactionReceipt", [tx_hash])

    async def get_block_number(self) -> int:
        return parse_quantity(await self.request("eth_blockNumber", []))

    async def call(self, call: Dict[str, Any], block: str = "latest") -> str:
        return await self.request("eth_call", [call, block])

    async def send_raw_transaction(self, raw_transaction: str) -> str:
        """Broadcast a signed transaction; returns its hash."""
        return await self.request("eth_sendRawTransaction", [raw_transaction])

    async def aclose(self) -> None:
        await self._client.aclose()

    def __repr__(self) -> str:
        return f"RpcClient(chain_id={self.chain_id}, rpc_url={self.rpc_url!r})"
