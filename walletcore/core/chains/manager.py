"""
Chain connection management.

Owns one ``RpcClient`` per ``(chain_id, rpc_url)`` and exposes the
balance/gas/nonce/receipt primitives the rest of walletcore uses. Every
failure leaving this module is a classified ``ChainError``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, TypeVar

import httpx

from ...cache import TTLCache, balance_cache_key, balance_cache_prefix
from ...config import Settings, settings as default_settings
from ..errors import ChainErrorCode, UnsupportedChainError, classify
from ..units import format_ether
from .registry import CHAIN_REGISTRY, get_chain
from .rpc import RetryPolicy, RpcClient, Sleep

T = TypeVar("T")

ConnectionKey = Tuple[int, Optional[str]]

# Codes that send a default-endpoint call on to the chain's fallback endpoints
_FAILOVER_CODES = {
    ChainErrorCode.RPC_TIMEOUT,
    ChainErrorCode.RATE_LIMIT,
    ChainErrorCode.NETWORK_ERROR,
}


@dataclass(frozen=True)
class Balance:
    """Native balance in wei plus its ether-formatted rendering."""

    raw: int
    formatted: str


@dataclass(frozen=True)
class ConnectionStatus:
    """Outcome of a liveness probe."""

    connected: bool
    block_number: Optional[int] = None
    latency_ms: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "blockNumber": self.block_number,
            "latencyMs": self.latency_ms,
            "error": self.error,
        }


class ChainConnectionManager:
    """
    Registry of RPC connections, one per chain and endpoint.

    Constructed once by the application's composition root and passed to
    every component that needs chain access.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Sleep] = None,
        balance_cache: Optional[TTLCache] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or default_settings
        self.policy = RetryPolicy(
            retry_count=self.settings.rpc_retry_count,
            retry_delay_seconds=self.settings.rpc_retry_delay_seconds,
            timeout_seconds=self.settings.rpc_timeout_seconds,
        )
        self.balance_cache = balance_cache
        self._transport = transport
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)

        self._connections: Dict[ConnectionKey, RpcClient] = {}
        self._retired: List[RpcClient] = []
        self._closing: Set[asyncio.Task] = set()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Connection registry
    # ------------------------------------------------------------------

    def get_connection(self, chain_id: int, rpc_url: Optional[str] = None) -> RpcClient:
        """
        Return the cached handle for ``(chain_id, rpc_url)``, building it on
        first use.

        A custom ``rpc_url`` gets its own cache entry and is never shared
        with the default-endpoint handle. Raises ``UnsupportedChainError``.
        """
        chain = get_chain(chain_id)
        if chain is None:
            raise UnsupportedChainError(chain_id)

        override = rpc_url or self.settings.rpc_url_for(chain_id)
        key: ConnectionKey = (chain_id, override)

        with self._lock:
            client = self._connections.get(key)
            if client is None:
                client = self._build_client(chain_id, override or chain.default_rpc_url)
                self._connections[key] = client
                self._logger.debug("Created RPC connection for chain %s at %s", chain_id, client.rpc_url)
            return client

    def _build_client(self, chain_id: int, url: str) -> RpcClient:
        kwargs: Dict[str, Any] = {
            "policy": self.policy,
            "transport": self._transport,
        }
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return RpcClient(CHAIN_REGISTRY[chain_id], url, **kwargs)

    def clear_cache(self) -> None:
        """
        Discard every cached handle; later lookups build fresh ones.

        Dropped handles are closed in the background when an event loop is
        running, otherwise on the next ``aclose()``.
        """
        with self._lock:
            dropped = list(self._connections.values())
            self._connections.clear()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            with self._lock:
                self._retired.extend(dropped)
        else:
            for client in dropped:
                task = loop.create_task(client.aclose())
                self._closing.add(task)
                task.add_done_callback(self._closing.discard)
        self._logger.info("Cleared %d cached RPC connection(s)", len(dropped))

    def cached_keys(self) -> Set[ConnectionKey]:
        with self._lock:
            return set(self._connections.keys())

    async def aclose(self) -> None:
        """Close every live and retired handle."""
        with self._lock:
            clients = list(self._connections.values()) + self._retired
            self._connections.clear()
            self._retired = []
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        for client in clients:
            if not client.is_closed:
                await client.aclose()

    # ------------------------------------------------------------------
    # Chain primitives
    # ------------------------------------------------------------------

    def _endpoints(self, chain_id: int, rpc_url: Optional[str]) -> List[Optional[str]]:
        """
        Endpoints to try in order. Only calls on the chain's default endpoint
        fail over; caller and configured URLs are used alone.
        """
        chain = get_chain(chain_id)
        if (
            chain is None
            or rpc_url
            or self.settings.rpc_url_for(chain_id)
            or not self.settings.rpc_failover
        ):
            return [rpc_url]
        return [None, *chain.fallback_rpc_urls]

    async def _run(
        self,
        operation: str,
        chain_id: int,
        rpc_url: Optional[str],
        call: Callable[[RpcClient], Awaitable[T]],
    ) -> T:
        endpoints = self._endpoints(chain_id, rpc_url)
        for index, endpoint in enumerate(endpoints):
            client = self.get_connection(chain_id, endpoint)
            try:
                return await call(client)
            except Exception as exc:
                error = classify(exc)
                if error.code in _FAILOVER_CODES and index + 1 < len(endpoints):
                    self._logger.warning(
                        "%s failed on chain %s at %s (%s); trying %s",
                        operation,
                        chain_id,
                        client.rpc_url,
                        error.code.value,
                        endpoints[index + 1],
                    )
                    continue
                self._logger.warning(
                    "%s failed on chain %s: %s (%s)",
                    operation,
                    chain_id,
                    error.code.value,
                    exc,
                )
                raise error from exc
        raise RuntimeError(f"No RPC endpoint was attempted for chain {chain_id}")

    async def get_balance(
        self,
        address: str,
        chain_id: int,
        rpc_url: Optional[str] = None,
        *,
        fresh: bool = False,
    ) -> Balance:
        cache_key = balance_cache_key(chain_id, address, rpc_url)
        if self.balance_cache is not None and not fresh:
            cached = await self.balance_cache.get(cache_key)
            if cached is not None:
                return cached

        raw = await self._run(
            "get_balance", chain_id, rpc_url, lambda client: client.get_balance(address)
        )
        balance = Balance(raw=raw, formatted=format_ether(raw))

        if self.balance_cache is not None:
            await self.balance_cache.set(cache_key, balance, ttl=self.settings.balance_cache_ttl_seconds)
        return balance

    async def invalidate_balances(self, address: str) -> int:
        """Forget cached balances of ``address`` on every chain."""
        if self.balance_cache is None:
            return 0
        return await self.balance_cache.delete_prefix(balance_cache_prefix(address))

    async def get_gas_price(self, chain_id: int, rpc_url: Optional[str] = None) -> int:
        return await self._run(
            "get_gas_price", chain_id, rpc_url, lambda client: client.get_gas_price()
        )

    async def estimate_gas(
        self,
        call: Dict[str, Any],
        chain_id: int,
        rpc_url: Optional[str] = None,
    ) -> int:
        return await self._run(
            "estimate_gas", chain_id, rpc_url, lambda client: client.estimate_gas(call)
        )

    async def get_nonce(
        self,
        address: str,
        chain_id: int,
        rpc_url: Optional[str] = None,
        block: str = "latest",
    ) -> int:
        return await self._run(
            "get_nonce", chain_id, rpc_url, lambda client: client.get_transaction_count(address, block)
        )

    async def send_raw_transaction(
        self,
        raw_transaction: str,
        chain_id: int,
        rpc_url: Optional[str] = None,
    ) -> str:
        return await self._run(
            "send_raw_transaction",
            chain_id,
            rpc_url,
            lambda client: client.send_raw_transaction(raw_transaction),
        )

    async def get_receipt(
        self,
        tx_hash: str,
        chain_id: int,
        rpc_url: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        return await self._run(
            "get_receipt", chain_id, rpc_url, lambda client: client.get_transaction_receipt(tx_hash)
        )

    async def call(
        self,
        call: Dict[str, Any],
        chain_id: int,
        rpc_url: Optional[str] = None,
    ) -> str:
        return await self._run("eth_call", chain_id, rpc_url, lambda client: client.call(call))

    async def test_connection(self, chain_id: int) -> ConnectionStatus:
        """Probe the chain by fetching the latest block number. Never raises."""
        started = time.perf_counter()
        try:
            client = self.get_connection(chain_id)
            block_number = await client.get_block_number()
        except Exception as exc:  # noqa: BLE001 - reported in the status
            return ConnectionStatus(connected=False, error=str(exc) or exc.__class__.__name__)

        latency_ms = int((time.perf_counter() - started) * 1000)
        return ConnectionStatus(connected=True, block_number=block_number, latency_ms=latency_ms)

    # ------------------------------------------------------------------
    # Registry lookups
    # ------------------------------------------------------------------

    @staticmethod
    def supported_chain_ids() -> Set[int]:
        return set(CHAIN_REGISTRY.keys())

    @staticmethod
    def chain_info(chain_id: int) -> Optional[Dict[str, Any]]:
        chain = get_chain(chain_id)
        if chain is None:
            return None
        return {"name": chain.name, "is_testnet": chain.is_testnet}
