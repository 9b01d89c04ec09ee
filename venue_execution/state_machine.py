"""
Venue Execution - Order Lifecycle State Machine.

============================================================
PURPOSE
============================================================
Tracks each order from submission to its terminal state.

STATE MACHINE:

        SUBMITTED
            │
            ├──► REJECTED
            ├──► TIMED_OUT
            ├──► FILLED ───────────┐
            └──► PARTIALLY_FILLED ─┤
                                   ▼
                                 OPEN
                                   │
                                   ▼
                            CLOSE_REQUESTED
                                   │
                                   ▼
                                CLOSED

INVARIANTS:
- REJECTED, TIMED_OUT and CLOSED are terminal
- No cancellation once latency simulation has begun
- Every transition is recorded

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Set

from .types import VenueExecutionError, utcnow


logger = logging.getLogger(__name__)


class OrderState(Enum):
    """Order lifecycle state."""

    SUBMITTED = "SUBMITTED"
    REJECTED = "REJECTED"
    TIMED_OUT = "TIMED_OUT"
    FILLED = "FILLED"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    OPEN = "OPEN"
    CLOSE_REQUESTED = "CLOSE_REQUESTED"
    CLOSED = "CLOSED"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in {OrderState.REJECTED, OrderState.TIMED_OUT, OrderState.CLOSED}


VALID_TRANSITIONS: Dict[OrderState, Set[OrderState]] = {
    OrderState.SUBMITTED: {
        OrderState.REJECTED,
        OrderState.TIMED_OUT,
        OrderState.FILLED,
        OrderState.PARTIALLY_FILLED,
    },
    OrderState.FILLED: {OrderState.OPEN},
    OrderState.PARTIALLY_FILLED: {OrderState.OPEN},
    OrderState.OPEN: {OrderState.CLOSE_REQUESTED},
    OrderState.CLOSE_REQUESTED: {OrderState.CLOSED},
    # Terminal states - no transitions out
    OrderState.REJECTED: set(),
    OrderState.TIMED_OUT: set(),
    OrderState.CLOSED: set(),
}


class InvalidTransitionError(VenueExecutionError):
    """Transition not allowed by the lifecycle."""
    pass


@dataclass
class StateTransitionEvent:
    """Event representing a state transition."""

    order_id: str
    from_state: OrderState
    to_state: OrderState
    timestamp: datetime = field(default_factory=utcnow)
    reason: str = ""


class OrderLifecycle:
    """
    Lifecycle of a single order.
    """

    def __init__(self, order_id: str, state: OrderState = OrderState.SUBMITTED):
        self._order_id = order_id
        self._state = state
        self._history: List[StateTransitionEvent] = []

    @classmethod
    def for_open_position(cls, position_id: str) -> "OrderLifecycle":
        """Lifecycle of a filled order whose position is still open."""
        return cls(position_id, OrderState.OPEN)

    @property
    def order_id(self) -> str:
        return self._order_id

    @property
    def state(self) -> OrderState:
        return self._state

    @property
    def history(self) -> List[StateTransitionEvent]:
        return list(self._history)

    def can_transition(self, to_state: OrderState) -> bool:
        return to_state in VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: OrderState, reason: str = "") -> StateTransitionEvent:
        """
        Move to a new state.

        Raises:
            InvalidTransitionError: Transition not allowed
        """
        if not self.can_transition(to_state):
            if self._state.is_terminal():
                raise InvalidTransitionError(
                    f"Order {self._order_id} is terminal ({self._state.value})"
                )
            raise InvalidTransitionError(
                f"Invalid transition for {self._order_id}: "
                f"{self._state.value} -> {to_state.value}"
            )

        event = StateTransitionEvent(
            order_id=self._order_id,
            from_state=self._state,
            to_state=to_state,
            reason=reason,
        )
        self._state = to_state
        self._history.append(event)

        logger.debug(
            "Order %s: %s -> %s %s",
            self._order_id, event.from_state.value, to_state.value, reason,
        )
        return event
