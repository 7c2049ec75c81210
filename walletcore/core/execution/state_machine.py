"""
Transaction State Machine

Validates status transitions of a ``TransactionRecord`` and notifies
listeners after each change.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional, Set

from ..errors import InvalidTransitionError
from .models import TransactionRecord, TransactionStatus


@dataclass
class StatusTransition:
    """A recorded status change."""

    record_id: str
    from_status: TransactionStatus
    to_status: TransactionStatus
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None


TransitionListener = Callable[[StatusTransition, TransactionRecord], None]

# Most recent transitions kept in ``history``
HISTORY_LIMIT = 1000


class TransactionStateMachine:
    """
    Lifecycle: CREATED -> SIGNED -> BROADCASTED -> PENDING ->
    {CONFIRMED | FAILED | REPLACED}.

    CREATED is the only initial state; CONFIRMED, FAILED and REPLACED are
    terminal.
    """

    TRANSITIONS: Dict[TransactionStatus, Set[TransactionStatus]] = {
        TransactionStatus.CREATED: {
            TransactionStatus.SIGNED,
            TransactionStatus.FAILED,  # Signer rejected
        },
        TransactionStatus.SIGNED: {
            TransactionStatus.BROADCASTED,
            TransactionStatus.FAILED,  # Broadcast rejected
        },
        TransactionStatus.BROADCASTED: {
            TransactionStatus.PENDING,
            TransactionStatus.FAILED,
            TransactionStatus.REPLACED,
        },
        TransactionStatus.PENDING: {
            TransactionStatus.CONFIRMED,
            TransactionStatus.FAILED,
            TransactionStatus.REPLACED,
        },
        TransactionStatus.CONFIRMED: set(),
        TransactionStatus.FAILED: set(),
        TransactionStatus.REPLACED: set(),
    }

    def __init__(self, logger: Optional[logging.Logger] = None, history_limit: int = HISTORY_LIMIT):
        self.logger = logger or logging.getLogger(__name__)
        self._listeners: List[TransitionListener] = []
        self.history: Deque[StatusTransition] = deque(maxlen=history_limit)

    def can_transition(self, from_status: TransactionStatus, to_status: TransactionStatus) -> bool:
        return to_status in self.TRANSITIONS.get(from_status, set())

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def transition(
        self,
        record: TransactionRecord,
        to_status: TransactionStatus,
        error: Optional[str] = None,
    ) -> StatusTransition:
        """
        Move ``record`` to ``to_status``.

        Raises:
            InvalidTransitionError: if the lifecycle does not allow the move
        """
        from_status = record.status
        if not self.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status.value, to_status.value)

        record.status = to_status
        if error is not None:
            record.error = error

        transition = StatusTransition(
            record_id=record.id,
            from_status=from_status,
            to_status=to_status,
            error=error,
        )
        self.history.append(transition)
        self.logger.debug("Transaction %s: %s -> %s", record.id, from_status.value, to_status.value)

        for listener in self._listeners:
            listener(transition, record)
        return transition

    def advance_to(
        self,
        record: TransactionRecord,
        to_status: TransactionStatus,
        error: Optional[str] = None,
    ) -> List[StatusTransition]:
        """
        Walk ``record`` forward along the main path until it reaches
        ``to_status``, e.g. CREATED -> PENDING via SIGNED and BROADCASTED.
        """
        path = [
            TransactionStatus.CREATED,
            TransactionStatus.SIGNED,
            TransactionStatus.BROADCASTED,
            TransactionStatus.PENDING,
        ]
        transitions: List[StatusTransition] = []
        if record.status == to_status:
            return transitions
        if record.status in path and to_status in path:
            start = path.index(record.status)
            end = path.index(to_status)
            if end < start:
                raise InvalidTransitionError(record.status.value, to_status.value)
            for status in path[start + 1:end + 1]:
                transitions.append(self.transition(record, status))
            return transitions
        transitions.append(self.transition(record, to_status, error=error))
        return transitions
