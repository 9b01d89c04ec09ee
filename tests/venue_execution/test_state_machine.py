"""
Order Lifecycle Tests.

============================================================
PURPOSE
============================================================
Tests for the order state machine.

TEST CATEGORIES:
- Valid transitions
- Terminal states
- Transition history

============================================================
"""

import pytest

from venue_execution.state_machine import (
    InvalidTransitionError,
    OrderLifecycle,
    OrderState,
)


class TestOrderLifecycle:
    """Tests for OrderLifecycle."""

    def test_fill_then_close_path(self):
        lifecycle = OrderLifecycle("GMX-1")

        lifecycle.transition(OrderState.FILLED)
        lifecycle.transition(OrderState.OPEN)
        lifecycle.transition(OrderState.CLOSE_REQUESTED)
        lifecycle.transition(OrderState.CLOSED, "manual")

        assert lifecycle.state == OrderState.CLOSED
        assert [e.to_state for e in lifecycle.history] == [
            OrderState.FILLED,
            OrderState.OPEN,
            OrderState.CLOSE_REQUESTED,
            OrderState.CLOSED,
        ]
        assert lifecycle.history[-1].reason == "manual"

    def test_partial_fill_opens(self):
        lifecycle = OrderLifecycle("GMX-2")

        lifecycle.transition(OrderState.PARTIALLY_FILLED)
        event = lifecycle.transition(OrderState.OPEN)

        assert event.from_state == OrderState.PARTIALLY_FILLED
        assert lifecycle.state == OrderState.OPEN

    @pytest.mark.parametrize("terminal", [OrderState.REJECTED, OrderState.TIMED_OUT])
    def test_market_outcomes_are_terminal(self, terminal):
        """Nothing follows a reject or timeout."""
        lifecycle = OrderLifecycle("GMX-3")
        lifecycle.transition(terminal)

        assert lifecycle.state.is_terminal()
        with pytest.raises(InvalidTransitionError, match="terminal"):
            lifecycle.transition(OrderState.FILLED)

    def test_cannot_skip_fill(self):
        lifecycle = OrderLifecycle("GMX-4")

        assert not lifecycle.can_transition(OrderState.OPEN)
        with pytest.raises(InvalidTransitionError, match="SUBMITTED -> OPEN"):
            lifecycle.transition(OrderState.OPEN)
        assert lifecycle.history == []

    def test_history_is_a_copy(self):
        lifecycle = OrderLifecycle("GMX-5")
        lifecycle.transition(OrderState.REJECTED)

        lifecycle.history.clear()

        assert len(lifecycle.history) == 1

    def test_resume_open_position(self):
        """A close rebuilds the lifecycle from the open position."""
        lifecycle = OrderLifecycle.for_open_position("GMX-6")

        assert lifecycle.state == OrderState.OPEN
        assert not lifecycle.can_transition(OrderState.CLOSED)

        lifecycle.transition(OrderState.CLOSE_REQUESTED, "take-profit")
        lifecycle.transition(OrderState.CLOSED)

        assert lifecycle.state.is_terminal()
        assert [e.from_state for e in lifecycle.history] == [OrderState.OPEN, OrderState.CLOSE_REQUESTED]
