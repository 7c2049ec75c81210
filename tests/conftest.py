"""
Shared fixtures: an in-process JSON-RPC node, a recording sleep and a
signer stub.
"""

import json
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Tuple

import httpx
import pytest

from walletcore.cache import TTLCache
from walletcore.config import Settings
from walletcore.core.chains import ChainConnectionManager
from walletcore.core.execution import SendParams, TransactionOrchestrator, TransactionSigner


@dataclass
class NodeCall:
    url: str
    method: str
    params: List[Any]


@dataclass
class _RpcFailure:
    message: str
    code: int = -32000


@dataclass
class FakeNode:
    """
    JSON-RPC endpoint served through ``httpx.MockTransport``.

    Queued outcomes are consumed first, then the per-method default. An
    outcome may be a result value, an ``httpx.Response``, an exception to
    raise from the transport, or a zero-argument factory for any of these.
    """

    calls: List[NodeCall] = field(default_factory=list)
    _queued: Dict[str, Deque[Any]] = field(default_factory=lambda: defaultdict(deque))
    _defaults: Dict[str, Any] = field(default_factory=dict)

    def set(self, method: str, result: Any) -> None:
        self._defaults[method] = result

    def queue(self, method: str, *outcomes: Any) -> None:
        self._queued[method].extend(outcomes)

    def queue_error(self, method: str, message: str, code: int = -32000) -> None:
        self._queued[method].append(_RpcFailure(message, code))

    def methods(self) -> List[str]:
        return [call.method for call in self.calls]

    def count(self, method: str) -> int:
        return self.methods().count(method)

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        method = payload["method"]
        self.calls.append(NodeCall(url=str(request.url), method=method, params=payload["params"]))

        if self._queued[method]:
            outcome = self._queued[method].popleft()
        elif method in self._defaults:
            outcome = self._defaults[method]
        else:
            outcome = _RpcFailure(f"the method {method} does not exist", -32601)

        if callable(outcome):
            outcome = outcome()

        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, httpx.Response):
            return outcome
        if isinstance(outcome, _RpcFailure):
            error = {"code": outcome.code, "message": outcome.message}
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "error": error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": outcome})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingSleep:
    """Stands in for ``asyncio.sleep``; remembers every requested delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class StubSigner(TransactionSigner):
    """Signs by echoing a counter; can be told to refuse."""

    def __init__(self):
        self.signed: List[Tuple[SendParams, int]] = []
        self.error: Exception | None = None

    async def sign_transaction(self, params: SendParams, chain_id: int) -> str:
        if self.error is not None:
            raise self.error
        self.signed.append((params, chain_id))
        return f"0xf86c{len(self.signed):04x}"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        zerox_api_key="",
        rpc_retry_delay_seconds=1.0,
        tx_poll_interval_seconds=3.0,
        tx_poll_max_attempts=5,
    )


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def balance_cache() -> TTLCache:
    return TTLCache(default_ttl=30)


@pytest.fixture
def manager(settings, node, sleep, balance_cache) -> ChainConnectionManager:
    return ChainConnectionManager(
        settings,
        transport=node.transport,
        sleep=sleep,
        balance_cache=balance_cache,
    )


@pytest.fixture
def orchestrator(manager, settings, sleep) -> TransactionOrchestrator:
    return TransactionOrchestrator(manager, settings=settings, sleep=sleep)


@pytest.fixture
def signer() -> StubSigner:
    return StubSigner()
