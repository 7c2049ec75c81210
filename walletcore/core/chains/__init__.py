"""
Chain Connection Layer

- ChainDescriptor / CHAIN_REGISTRY: static chain metadata and default endpoints
- RpcClient: JSON-RPC handle for one chain endpoint
- ChainConnectionManager: cached handles plus classified chain primitives
"""

from .registry import (
    CHAIN_REGISTRY,
    ChainDescriptor,
    get_chain,
    supported_chain_ids,
)
from .rpc import RetryPolicy, RpcClient
from .manager import Balance, ChainConnectionManager, ConnectionStatus

__all__ = [
    # Registry
    "CHAIN_REGISTRY",
    "ChainDescriptor",
    "get_chain",
    "supported_chain_ids",
    # Transport
    "RetryPolicy",
    "RpcClient",
    # Manager
    "Balance",
    "ChainConnectionManager",
    "ConnectionStatus",
]
