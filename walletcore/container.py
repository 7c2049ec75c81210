"""
Composition root.

Builds the shared services once from a ``Settings`` instance:

    core = WalletCore(Settings())
    balance = await core.connections.get_balance(address, 1)
    executor = core.swap_executor(signer)
    ...
    await core.aclose()
"""

from typing import Optional

import httpx

from .cache import TTLCache
from .config import Settings, settings as default_settings
from .core.chains import ChainConnectionManager
from .core.execution import TransactionOrchestrator, TransactionSigner
from .core.execution.poller import Sleep
from .core.swap import ApprovalConfirmation, SwapExecutor, SwapQuoteEngine
from .providers import CoingeckoProvider, ZeroExProvider


class WalletCore:
    """Owns one connection manager, orchestrator and quote engine."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.settings = settings or default_settings

        self.balance_cache = TTLCache(
            default_ttl=self.settings.balance_cache_ttl_seconds,
            max_size=self.settings.max_cache_size,
        )
        self.price_cache = TTLCache(
            default_ttl=self.settings.price_cache_ttl_seconds,
            max_size=self.settings.max_cache_size,
        )

        self.connections = ChainConnectionManager(
            self.settings,
            transport=transport,
            sleep=sleep,
            balance_cache=self.balance_cache,
        )
        self.orchestrator = TransactionOrchestrator(
            self.connections,
            settings=self.settings,
            sleep=sleep,
        )
        self.prices = CoingeckoProvider(self.settings, cache=self.price_cache, transport=transport)
        self.swaps = SwapQuoteEngine(
            self.settings,
            provider=ZeroExProvider(self.settings, transport=transport),
            price_provider=self.prices,
        )

    def swap_executor(
        self,
        signer: TransactionSigner,
        confirm_approval: Optional[ApprovalConfirmation] = None,
    ) -> SwapExecutor:
        return SwapExecutor(
            self.swaps,
            self.orchestrator,
            self.connections,
            signer,
            confirm_approval=confirm_approval,
        )

    async def aclose(self) -> None:
        await self.connections.aclose()
        await self.balance_cache.clear()
        await self.price_cache.clear()

    async def __aenter__(self) -> "WalletCore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
