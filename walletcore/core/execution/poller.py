"""
Receipt polling.

``ReceiptPoller`` is a small resumable state machine: each ``step()`` makes
one receipt fetch and reports whether the transaction reached a terminal
status. ``run()`` drives steps with an injectable sleep so tests can skip
real delays; callers cancel by cancelling the awaiting task or by setting
the optional cancel event.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .models import TransactionStatus

ReceiptFetcher = Callable[[], Awaitable[Optional[Dict[str, Any]]]]
StatusCallback = Callable[[TransactionStatus], None]
Sleep = Callable[[float], Awaitable[None]]

_SUCCESS_VALUES = {"0x1", "1", "success"}


def receipt_status(receipt: Dict[str, Any]) -> TransactionStatus:
    """CONFIRMED for a successful receipt, FAILED otherwise."""
    status = receipt.get("status")
    if status is True or status == 1:
        return TransactionStatus.CONFIRMED
    if isinstance(status, str) and status.strip().lower() in _SUCCESS_VALUES:
        return TransactionStatus.CONFIRMED
    return TransactionStatus.FAILED


class ReceiptPoller:
    """Polls for a receipt at a fixed interval within an attempt budget."""

    def __init__(
        self,
        fetch_receipt: ReceiptFetcher,
        *,
        interval_seconds: float = 3.0,
        max_attempts: int = 60,
        sleep: Sleep = asyncio.sleep,
        cancel_event: Optional[asyncio.Event] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._fetch_receipt = fetch_receipt
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._cancel_event = cancel_event
        self._logger = logger or logging.getLogger(__name__)

        self.attempts = 0
        self.status: Optional[TransactionStatus] = None
        self.receipt: Optional[Dict[str, Any]] = None
        self._on_status: Optional[StatusCallback] = None

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    @property
    def done(self) -> bool:
        return (self.status is not None and self.status.is_terminal) or self.exhausted

    def _emit(self, status: TransactionStatus) -> None:
        if status == self.status:
            return
        self.status = status
        if self._on_status is not None:
            self._on_status(status)

    async def step(self) -> Optional[TransactionStatus]:
        """
        One poll. Returns the terminal status when a receipt arrived,
        otherwise ``None``. Fetch errors count as "not yet".
        """
        if self.status is None:
            self._emit(TransactionStatus.PENDING)

        self.attempts += 1
        try:
            receipt = await self._fetch_receipt()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._logger.debug("Receipt poll %d failed: %s", self.attempts, exc)
            return None

        if receipt is None:
            return None

        self.receipt = receipt
        terminal = receipt_status(receipt)
        self._emit(terminal)
        return terminal

    def _check_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise asyncio.CancelledError("receipt polling cancelled")

    async def run(self, on_status: Optional[StatusCallback] = None) -> TransactionStatus:
        """
        Poll until a receipt arrives or the budget runs out.

        Returns CONFIRMED or FAILED from the receipt, or PENDING when no
        receipt showed up within ``max_attempts`` polls.
        """
        self._on_status = on_status
        while not self.exhausted:
            self._check_cancelled()
            terminal = await self.step()
            if terminal is not None:
                return terminal
            if not self.exhausted:
                await self._sleep(self.interval_seconds)

        return TransactionStatus.PENDING
