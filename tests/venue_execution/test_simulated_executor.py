"""
Simulated Venue Executor Tests.

============================================================
PURPOSE
============================================================
Tests for the probabilistic fill model.

TEST CATEGORIES:
- End-to-end place/close arithmetic
- Reject, timeout and partial-fill branches
- Lookup failures leave the ledger untouched
- Status reads are idempotent
- Ledger restore from the store

============================================================
"""

import logging
import random
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from venue_execution.adapters import SimulatedVenueExecutor
from venue_execution.state_machine import OrderState
from venue_execution.types import (
    Direction,
    FailureReason,
    Order,
    OrderType,
    OrderValidationError,
    VenueId,
)


def make_executor(venue, store, rng=None, sleep=None, balance="100"):
    return SimulatedVenueExecutor(
        venue=venue,
        initial_balance=Decimal(balance),
        store=store,
        record_key=f"venue:{venue.id.value}",
        rng=rng or random.Random(7),
        sleep=sleep or AsyncMock(),
    )


def btc_long(size="100", price="50000", **kwargs):
    return Order(coin="BTC", direction=Direction.LONG, size=size, price=price, **kwargs)


# ============================================================
# END-TO-END
# ============================================================

class TestEndToEnd:
    """Place then close with a flat profile."""

    @pytest.mark.asyncio
    async def test_long_round_trip(self, venue_factory, store):
        """Entry 50000, exit 51000, size 100, taker 0.0005."""
        executor = make_executor(venue_factory(taker="0.0005"), store)

        result = await executor.place_order(btc_long())

        assert result.success
        assert result.state == OrderState.OPEN.value
        assert result.position.entry_price == Decimal("50000")
        assert result.fee == Decimal("0.05")
        assert result.fill_fraction == Decimal("1")
        assert executor.balance == Decimal("100")

        close = await executor.close_position(result.position.id, Decimal("51000"))

        assert close.success
        assert close.trade.gross_pnl == Decimal("2")
        assert close.net_pnl == Decimal("1.95")
        assert close.new_balance == Decimal("101.95")
        assert close.net_pnl == close.trade.gross_pnl - close.trade.exit_fee - close.trade.exit_slippage_cost
        assert close.trade.pnl_percent == Decimal("1.95")
        assert close.state == OrderState.CLOSED.value
        assert close.to_dict()["state"] == "CLOSED"
        assert executor.open_positions == []

    @pytest.mark.asyncio
    async def test_close_logs_pnl_percent(self, venue_factory, store, caplog):
        executor = make_executor(venue_factory(taker="0.0005"), store)
        result = await executor.place_order(btc_long())

        with caplog.at_level(logging.INFO, logger="venue_execution"):
            await executor.close_position(result.position.id, "51000")

        assert "(+1.95%)" in caplog.text

    @pytest.mark.asyncio
    async def test_volatility_scales_exit_slippage(self, venue_factory, store):
        """Exit slippage is multiplied by the close-time volatility factor."""
        venue = venue_factory(taker="0", slippage_min="0.1", slippage_max="0.1")
        executor = make_executor(venue, store)
        result = await executor.place_order(btc_long(price="10000"))

        close = await executor.close_position(result.position.id, "10000", volatility="2")

        assert close.trade.exit_slippage_percent == Decimal("0.2")
        assert close.trade.exit_price == Decimal("10000") * Decimal("0.998")

    @pytest.mark.asyncio
    async def test_non_positive_volatility_raises(self, venue_factory, store):
        executor = make_executor(venue_factory(), store)
        result = await executor.place_order(btc_long())

        with pytest.raises(OrderValidationError):
            await executor.close_position(result.position.id, "50000", volatility="0")

        assert len(executor.open_positions) == 1

    @pytest.mark.asyncio
    async def test_short_profits_when_price_falls(self, venue_factory, store):
        """Short PnL is directional."""
        executor = make_executor(venue_factory(taker="0"), store)

        result = await executor.place_order(
            Order(coin="ETH", direction=Direction.SHORT, size="200", price="2000", leverage="3")
        )
        close = await executor.close_position(result.position.id, "1900")

        # 200 x 3 x 5% = 30
        assert close.net_pnl == Decimal("30")
        assert close.new_balance == Decimal("130")

    @pytest.mark.asyncio
    async def test_limit_order_pays_maker_rate(self, venue_factory, store):
        """Limit orders use the maker fee at entry."""
        executor = make_executor(venue_factory(maker="0.0001", taker="0.0005"), store)

        result = await executor.place_order(btc_long(size="1000", leverage="2", order_type=OrderType.LIMIT))

        assert result.fee == Decimal("0.2")

    @pytest.mark.asyncio
    async def test_slippage_applied_against_the_trader(self, venue_factory, store):
        """Long pays above ask, short receives below bid."""
        venue = venue_factory(slippage_min="0.1", slippage_max="0.1", spread_min="0.2", spread_max="0.2")
        executor = make_executor(venue, store)

        long_result = await executor.place_order(btc_long(price="10000"))
        short_result = await executor.place_order(
            Order(coin="BTC", direction=Direction.SHORT, size="100", price="10000")
        )

        # half spread = 10000 x 0.2 / 200 = 10
        assert long_result.execution_price == Decimal("10010") * Decimal("1.001")
        assert short_result.execution_price == Decimal("9990") * Decimal("0.999")
        assert long_result.slippage_percent == Decimal("0.1")

    @pytest.mark.asyncio
    async def test_size_impact_is_capped(self, venue_factory, store):
        """Size impact never exceeds its ceiling."""
        venue = venue_factory(size_impact_factor="0.01", size_impact_cap="0.5")
        executor = make_executor(venue, store)

        result = await executor.place_order(btc_long(size="100000"))

        assert result.slippage_percent == Decimal("0.5")


# ============================================================
# MARKET OUTCOMES
# ============================================================

class TestMarketOutcomes:
    """Reject, timeout and partial-fill branches."""

    @pytest.mark.asyncio
    async def test_reject_counts_and_does_not_fill(self, venue_factory, store):
        """Rejected orders only bump the reject counter."""
        executor = make_executor(venue_factory(reject_probability="1"), store)

        result = await executor.place_order(btc_long())

        assert not result.success
        assert result.reason == FailureReason.REJECTED
        assert result.state == OrderState.REJECTED.value
        assert executor.ledger.stats.rejects == 1
        assert executor.open_positions == []
        assert executor.balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_timeout_waits_then_fails(self, venue_factory, store):
        """Timeout suspends for the latency window and leaves the ledger alone."""
        sleep = AsyncMock()
        venue = venue_factory(timeout_probability="1", latency_min_ms="200", latency_max_ms="200")
        executor = make_executor(venue, store, sleep=sleep)
        before = executor.ledger.to_dict()

        result = await executor.place_order(btc_long())

        assert result.reason == FailureReason.TIMEOUT
        assert result.state == OrderState.TIMED_OUT.value
        sleep.assert_awaited_once_with(0.2)
        assert executor.ledger.to_dict() == before

    @pytest.mark.asyncio
    async def test_partial_fill_fraction_range(self, venue_factory, store):
        """Partial fills stay within [0.3, 0.9]."""
        executor = make_executor(
            venue_factory(partial_fill_probability="1"), store, rng=random.Random(1234)
        )

        for _ in range(50):
            result = await executor.place_order(btc_long())
            assert result.success
            assert result.is_partial
            assert result.state == OrderState.OPEN.value
            assert Decimal("0.3") <= result.fill_fraction <= Decimal("0.9")
            assert result.position.size == Decimal("100") * result.fill_fraction

        assert executor.ledger.stats.partial_fills == 50

    @pytest.mark.asyncio
    async def test_full_fill_fraction_is_one(self, venue_factory, store):
        """Without the partial branch the fraction is exactly 1."""
        executor = make_executor(venue_factory(), store)

        result = await executor.place_order(btc_long())

        assert result.fill_fraction == Decimal("1")
        assert not result.is_partial

    @pytest.mark.asyncio
    async def test_outcome_is_exactly_one_variant(self, store):
        """Default profiles always resolve to reject, timeout or fill."""
        from venue_execution.catalog import VenueCatalog

        venue = VenueCatalog()[VenueId.MUX]
        executor = make_executor(venue, store, rng=random.Random(99))

        for _ in range(200):
            result = await executor.place_order(btc_long(size="10"))
            if result.success:
                assert result.position is not None
                assert result.reason is None
            else:
                assert result.position is None
                assert result.reason in (FailureReason.REJECTED, FailureReason.TIMEOUT)


# ============================================================
# LOOKUP / STATUS
# ============================================================

class TestLookupAndStatus:
    """Unknown ids and read-only status."""

    @pytest.mark.asyncio
    async def test_unknown_position_changes_nothing(self, venue_factory, store):
        """Closing an unknown id is a typed failure with no side effects."""
        executor = make_executor(venue_factory(), store)
        await executor.place_order(btc_long())
        before = executor.ledger.to_dict()
        saved_before = store.snapshot()

        result = await executor.close_position("GMX-0-missing", Decimal("50000"))

        assert not result.success
        assert result.reason == FailureReason.POSITION_NOT_FOUND
        assert executor.ledger.to_dict() == before
        assert store.snapshot() == saved_before

    @pytest.mark.asyncio
    async def test_invalid_exit_price_raises(self, venue_factory, store):
        """Exit price is validated before the lookup."""
        executor = make_executor(venue_factory(), store)

        with pytest.raises(OrderValidationError):
            await executor.close_position("anything", "-1")

    @pytest.mark.asyncio
    async def test_status_is_idempotent(self, venue_factory, store):
        """Two status reads with no mutation in between are equal."""
        executor = make_executor(venue_factory(), store)
        result = await executor.place_order(btc_long())
        await executor.close_position(result.position.id, "50500")
        await executor.place_order(btc_long())

        assert executor.get_status() == executor.get_status()

    @pytest.mark.asyncio
    async def test_display_status_reports_balance(self, venue_factory, store):
        """Text report includes balance and open count."""
        executor = make_executor(venue_factory(), store)
        await executor.place_order(btc_long())

        report = executor.display_status()

        assert "$100.00" in report
        assert "Open:         1" in report


# ============================================================
# PERSISTENCE
# ============================================================

class TestPersistence:
    """Ledger persistence through the store."""

    @pytest.mark.asyncio
    async def test_every_mutation_is_saved(self, venue_factory, store):
        """Fills and closes write the venue record."""
        executor = make_executor(venue_factory(), store)

        result = await executor.place_order(btc_long())
        assert len(store.snapshot()["venue:gmx"]["positions"]) == 1

        await executor.close_position(result.position.id, "51000")
        saved = store.snapshot()["venue:gmx"]
        assert saved["positions"] == []
        assert Decimal(saved["balance"]) == Decimal("101.95")

    @pytest.mark.asyncio
    async def test_restore_from_store(self, venue_factory, store):
        """A new executor picks up the saved ledger."""
        venue = venue_factory()
        first = make_executor(venue, store)
        result = await first.place_order(btc_long())
        await first.close_position(result.position.id, "51000")
        await first.place_order(btc_long(size="50"))

        second = make_executor(venue, store)
        await second.initialize()

        assert second.balance == Decimal("101.95")
        assert len(second.open_positions) == 1
        assert second.ledger.stats.total_trades == 1

    @pytest.mark.asyncio
    async def test_save_failure_is_logged_not_raised(self, venue_factory, caplog):
        """A failing store never breaks the order flow."""
        from venue_execution.repository import LedgerStore
        from venue_execution.types import PersistenceError

        failing = AsyncMock(spec=LedgerStore)
        failing.save.side_effect = PersistenceError("disk full")
        executor = make_executor(venue_factory(), failing)

        result = await executor.place_order(btc_long())

        assert result.success
        assert len(executor.open_positions) == 1
        assert "Failed to persist gmx ledger" in caplog.text

    @pytest.mark.asyncio
    async def test_reset_restores_starting_balance(self, venue_factory, store):
        """Reset clears positions, trades and statistics."""
        executor = make_executor(venue_factory(), store)
        result = await executor.place_order(btc_long())
        await executor.close_position(result.position.id, "51000")
        await executor.place_order(btc_long())

        await executor.reset()

        assert executor.balance == Decimal("100")
        assert executor.open_positions == []
        assert executor.ledger.trades == []
        assert executor.ledger.stats.total_trades == 0
