"""Static registry of supported EVM chains."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple


@dataclass(frozen=True)
class ChainDescriptor:
    """Immutable description of a supported chain."""

    chain_id: int
    name: str
    native_symbol: str
    is_testnet: bool
    rpc_urls: Tuple[str, ...]
    native_decimals: int = 18

    @property
    def default_rpc_url(self) -> str:
        return self.rpc_urls[0]

    @property
    def fallback_rpc_urls(self) -> Tuple[str, ...]:
        return self.rpc_urls[1:]


# First URL is the default public endpoint; the rest are fallbacks.
CHAIN_REGISTRY: Dict[int, ChainDescriptor] = {
    1: ChainDescriptor(
        chain_id=1,
        name='Ethereum',
        native_symbol='ETH',
        is_testnet=False,
        rpc_urls=(
            'https://eth.llamarpc.com',
            'https://ethereum-rpc.publicnode.com',
            'https://rpc.ankr.com/eth',
            'https://cloudflare-eth.com',
        ),
    ),
    137: ChainDescriptor(
        chain_id=137,
        name='Polygon',
        native_symbol='MATIC',
        is_testnet=False,
        rpc_urls=(
            'https://polygon-bor-rpc.publicnode.com',
            'https://polygon-rpc.com',
            'https://rpc.ankr.com/polygon',
        ),
    ),
    42161: ChainDescriptor(
        chain_id=42161,
        name='Arbitrum One',
        native_symbol='ETH',
        is_testnet=False,
        rpc_urls=(
            'https://arbitrum-one-rpc.publicnode.com',
            'https://arb1.arbitrum.io/rpc',
            'https://rpc.ankr.com/arbitrum',
        ),
    ),
    10: ChainDescriptor(
        chain_id=10,
        name='OP Mainnet',
        native_symbol='ETH',
        is_testnet=False,
        rpc_urls=(
            'https://optimism-rpc.publicnode.com',
            'https://mainnet.optimism.io',
            'https://rpc.ankr.com/optimism',
        ),
    ),
    8453: ChainDescriptor(
        chain_id=8453,
        name='Base',
        native_symbol='ETH',
        is_testnet=False,
        rpc_urls=(
            'https://base-rpc.publicnode.com',
            'https://mainnet.base.org',
            'https://base.meowrpc.com',
        ),
    ),
    11155111: ChainDescriptor(
        chain_id=11155111,
        name='Sepolia',
        native_symbol='ETH',
        is_testnet=True,
        rpc_urls=(
            'https://ethereum-sepolia-rpc.publicnode.com',
            'https://rpc.sepolia.org',
            'https://rpc2.sepolia.org',
        ),
    ),
}


def get_chain(chain_id: int) -> Optional[ChainDescriptor]:
    """Return the descriptor for ``chain_id`` or ``None`` when unsupported."""

    return CHAIN_REGISTRY.get(chain_id)


def supported_chain_ids() -> Set[int]:
    return set(CHAIN_REGISTRY.keys())


__all__ = [
    'ChainDescriptor',
    'CHAIN_REGISTRY',
    'get_chain',
    'supported_chain_ids',
]
