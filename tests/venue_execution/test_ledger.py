"""
Ledger Tests.

============================================================
PURPOSE
============================================================
Tests for venue ledgers and the aggregator's global state.

TEST CATEGORIES:
- Booking rule (balance moves only on close)
- Bounded trade history
- Drawdown tracking
- Serialization with default merging
- Global conservation rule

============================================================
"""

from decimal import Decimal

import pytest

from venue_execution.ledger import DrawdownTracker, GlobalState, Ledger
from venue_execution.router import RoutingDecision, RoutingLog
from venue_execution.types import Direction, PersistenceError, Position, Trade, VenueId


def make_position(position_id, venue=VenueId.GMX, fees="0.05", slippage="0.01"):
    return Position(
        id=position_id,
        venue=venue,
        coin="BTC",
        direction=Direction.LONG,
        entry_price=Decimal("50000"),
        size=Decimal("100"),
        leverage=Decimal("1"),
        fees=Decimal(fees),
        slippage_cost=Decimal(slippage),
    )


def make_trade(position, net="1.95", exit_fee="0.05"):
    net = Decimal(net)
    return Trade(
        position=position,
        exit_price=Decimal("51000"),
        exit_slippage_percent=Decimal("0"),
        exit_fee=Decimal(exit_fee),
        exit_slippage_cost=Decimal("0"),
        gross_pnl=net + Decimal(exit_fee),
        net_pnl=net,
    )


# ============================================================
# VENUE LEDGER
# ============================================================

class TestLedger:
    """Tests for Ledger."""

    def test_open_does_not_move_balance(self):
        """Opening accumulates fees only."""
        ledger = Ledger.fresh(VenueId.GMX, Decimal("100"))

        ledger.open_position(make_position("P-1"))

        assert ledger.balance == Decimal("100")
        assert ledger.stats.total_fees == Decimal("0.05")
        assert ledger.stats.total_slippage == Decimal("0.01")

    def test_duplicate_position_rejected(self):
        """Position ids are unique within a ledger."""
        ledger = Ledger.fresh(VenueId.GMX, Decimal("100"))
        ledger.open_position(make_position("P-1"))

        with pytest.raises(ValueError):
            ledger.open_position(make_position("P-1"))

    def test_close_books_net_pnl(self):
        """Close credits net PnL and records the trade."""
        ledger = Ledger.fresh(VenueId.GMX, Decimal("100"))
        position = make_position("P-1")
        ledger.open_position(position)

        ledger.close_position(make_trade(position))

        assert ledger.balance == Decimal("101.95")
        assert ledger.positions == []
        assert ledger.stats.total_trades == 1
        assert ledger.stats.wins == 1
        assert ledger.roi_percent == Decimal("1.95")
        assert ledger.win_rate == Decimal("100")
        assert ledger.avg_pnl == Decimal("1.95")

    def test_close_unknown_raises_key_error(self):
        """Trades must reference an open position."""
        ledger = Ledger.fresh(VenueId.GMX, Decimal("100"))

        with pytest.raises(KeyError):
            ledger.close_position(make_trade(make_position("P-404")))

    def test_trade_history_is_bounded(self):
        """1000+ closes never exceed the cap; oldest evicted first."""
        ledger = Ledger.fresh(VenueId.GMX, Decimal("100"), trade_history_limit=100)

        for i in range(1050):
            position = make_position(f"P-{i}")
            ledger.open_position(position)
            ledger.close_position(make_trade(position, net="0.01"))
            assert len(ledger.trades) <= 100

        assert len(ledger.trades) == 100
        assert ledger.trades[0].id == "P-950"
        assert ledger.trades[-1].id == "P-1049"
        assert ledger.stats.total_trades == 1050

    def test_losses_update_drawdown(self):
        """Losing closes move drawdown off the peak."""
        ledger = Ledger.fresh(VenueId.GMX, Decimal("100"))

        for i, net in enumerate(["10", "-22", "2"]):
            position = make_position(f"P-{i}")
            ledger.open_position(position)
            ledger.close_position(make_trade(position, net=net))

        assert ledger.drawdown.peak_balance == Decimal("110")
        assert ledger.drawdown.max_drawdown == Decimal("20")
        assert ledger.stats.losses == 1

    def test_reset(self):
        """Reset returns to the starting state."""
        ledger = Ledger.fresh(VenueId.GMX, Decimal("100"))
        position = make_position("P-1")
        ledger.open_position(position)
        ledger.close_position(make_trade(position))
        ledger.record_reject()

        ledger.reset()

        assert ledger.balance == Decimal("100")
        assert ledger.trades == []
        assert ledger.stats.rejects == 0

    def test_from_dict_merges_defaults(self):
        """Missing keys fall back to defaults."""
        ledger = Ledger.from_dict({"balance": "105"}, VenueId.DYDX, Decimal("100"))

        assert ledger.balance == Decimal("105")
        assert ledger.starting_balance == Decimal("100")
        assert ledger.positions == []
        assert ledger.stats.total_trades == 0
        assert ledger.drawdown.peak_balance == Decimal("105")

    @pytest.mark.parametrize("data", [
        {"balance": "100", "positions": [{"id": "X", "venue": "gmx"}]},
        {"balance": "lots"},
        {"trades": [{"id": "T", "venue": "gmx", "coin": "BTC"}]},
        {"positions": "not-a-list"},
    ])
    def test_malformed_record_raises_persistence_error(self, data):
        """Well-formed JSON with the wrong contents is a store failure."""
        with pytest.raises(PersistenceError, match="gmx"):
            Ledger.from_dict(data, VenueId.GMX, Decimal("100"))

    def test_serialization_round_trip_keeps_history(self):
        """Saved ledgers restore positions and trades."""
        ledger = Ledger.fresh(VenueId.GMX, Decimal("100"))
        closed = make_position("P-1")
        ledger.open_position(closed)
        ledger.close_position(make_trade(closed))
        ledger.open_position(make_position("P-2"))

        restored = Ledger.from_dict(ledger.to_dict(), VenueId.GMX, Decimal("100"))

        assert restored.to_dict() == ledger.to_dict()


class TestDrawdownTracker:
    """Tests for DrawdownTracker."""

    def test_recovery_keeps_max(self):
        tracker = DrawdownTracker(peak_balance=Decimal("100"))

        tracker.update(Decimal("80"))
        tracker.update(Decimal("120"))

        assert tracker.current_drawdown == Decimal("0")
        assert tracker.max_drawdown == Decimal("20")
        assert tracker.peak_balance == Decimal("120")


# ============================================================
# GLOBAL STATE
# ============================================================

class TestGlobalState:
    """Tests for GlobalState."""

    def test_fresh_has_row_per_venue(self):
        state = GlobalState.fresh(Decimal("100"), [VenueId.GMX, VenueId.DYDX])

        assert set(state.venue_stats) == {VenueId.GMX, VenueId.DYDX}
        assert state.balance == Decimal("100")

    def test_apply_close_updates_counters(self):
        """Closes update totals and the venue row."""
        state = GlobalState.fresh(Decimal("100"), [VenueId.GMX])
        position = make_position("P-1")
        state.add_position(position)

        state.apply_close(make_trade(position))

        assert state.positions == []
        assert state.total_trades == 1
        assert state.wins == 1
        assert state.venue_stats[VenueId.GMX].trades == 1
        assert state.venue_stats[VenueId.GMX].pnl == Decimal("1.95")
        assert state.venue_stats[VenueId.GMX].fees == Decimal("0.10")

    def test_recompute_balance_is_conservation_rule(self):
        """Global balance is start plus the sum of venue deltas."""
        state = GlobalState.fresh(Decimal("100"))

        balance = state.recompute_balance([Decimal("1.95"), Decimal("-0.5"), Decimal("0")])

        assert balance == Decimal("101.45")
        assert state.balance == Decimal("101.45")

    def test_reset_clears_shared_routing_log_in_place(self):
        """The router keeps appending to the same log object after reset."""
        log = RoutingLog(limit=5)
        state = GlobalState.fresh(Decimal("100"), [VenueId.GMX], routing_log=log)
        log.append(RoutingDecision(
            venue_id=VenueId.GMX, coin="BTC", size=Decimal("1"),
            leverage=Decimal("1"), is_maker=False,
        ))

        state.reset([VenueId.GMX])

        assert state.routing_log is log
        assert len(log) == 0

    def test_load_dict_malformed_record(self):
        state = GlobalState.fresh(Decimal("100"), [VenueId.GMX])

        with pytest.raises(PersistenceError, match="global"):
            state.load_dict({"stats": {"by_venue": {"gmx": {"pnl": "oops"}}}}, [VenueId.GMX])

    def test_load_dict_drops_unknown_venues(self):
        """Rows for venues outside the catalog are discarded; new venues get defaults."""
        state = GlobalState.fresh(Decimal("100"), [VenueId.GMX, VenueId.MUX])
        data = {
            "balance": "103",
            "starting_balance": "100",
            "stats": {
                "total_trades": 2,
                "by_venue": {
                    "gmx": {"trades": 2, "pnl": "3", "fees": "0.2"},
                    "retired-venue": {"trades": 9, "pnl": "9", "fees": "9"},
                },
            },
        }

        state.load_dict(data, [VenueId.GMX, VenueId.MUX])

        assert state.balance == Decimal("103")
        assert state.total_trades == 2
        assert state.venue_stats[VenueId.GMX].trades == 2
        assert state.venue_stats[VenueId.MUX].trades == 0
        assert len(state.venue_stats) == 2
