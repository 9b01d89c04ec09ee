"""
Venue Execution - Ledgers.

============================================================
PURPOSE
============================================================
In-memory books of the engine.

- Ledger: one per venue. Balance, open positions, bounded
  trade history, aggregate statistics.
- GlobalState: aggregator view. Venue-tagged positions and
  trades, per-venue statistics, routing log.

BOOKING RULE:
    Balance changes only on close (realized net PnL).
    Opening a position never touches the balance.

The in-memory objects are authoritative; persistence is a
best-effort snapshot via to_dict()/from_dict().

============================================================
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .router import RoutingDecision, RoutingLog
from .types import PersistenceError, Position, Trade, VenueId, VenueNotFoundError, to_decimal


_ZERO = Decimal("0")

# Raised by from_dict helpers on well-formed JSON with the wrong contents
DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError, ArithmeticError)
_HUNDRED = Decimal("100")


# ============================================================
# DRAWDOWN
# ============================================================

@dataclass
class DrawdownTracker:
    """Peak balance and drawdown (percent of peak)."""

    peak_balance: Decimal = _ZERO
    current_drawdown: Decimal = _ZERO
    max_drawdown: Decimal = _ZERO

    def update(self, balance: Decimal) -> None:
        if balance > self.peak_balance:
            self.peak_balance = balance
        if self.peak_balance > 0:
            self.current_drawdown = (self.peak_balance - balance) / self.peak_balance * _HUNDRED
        else:
            self.current_drawdown = _ZERO
        if self.current_drawdown > self.max_drawdown:
            self.max_drawdown = self.current_drawdown

    def to_dict(self) -> Dict[str, str]:
        return {
            "peak_balance": str(self.peak_balance),
            "current_drawdown": str(self.current_drawdown),
            "max_drawdown": str(self.max_drawdown),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_peak: Decimal) -> "DrawdownTracker":
        return cls(
            peak_balance=to_decimal(data.get("peak_balance", default_peak)),
            current_drawdown=to_decimal(data.get("current_drawdown", "0")),
            max_drawdown=to_decimal(data.get("max_drawdown", "0")),
        )


# ============================================================
# LEDGER STATISTICS
# ============================================================

@dataclass
class LedgerStats:
    """Aggregate counters of one venue ledger."""

    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    total_pnl: Decimal = _ZERO
    total_fees: Decimal = _ZERO
    total_slippage: Decimal = _ZERO
    rejects: int = 0
    partial_fills: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_trades": self.total_trades,
            "wins": self.wins,
            "losses": self.losses,
            "total_pnl": str(self.total_pnl),
            "total_fees": str(self.total_fees),
            "total_slippage": str(self.total_slippage),
            "rejects": self.rejects,
            "partial_fills": self.partial_fills,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerStats":
        return cls(
            total_trades=int(data.get("total_trades", 0)),
            wins=int(data.get("wins", 0)),
            losses=int(data.get("losses", 0)),
            total_pnl=to_decimal(data.get("total_pnl", "0")),
            total_fees=to_decimal(data.get("total_fees", "0")),
            total_slippage=to_decimal(data.get("total_slippage", "0")),
            rejects=int(data.get("rejects", 0)),
            partial_fills=int(data.get("partial_fills", 0)),
        )


def _append_bounded(trades: List[Trade], trade: Trade, limit: int) -> None:
    trades.append(trade)
    overflow = len(trades) - limit
    if overflow > 0:
        del trades[:overflow]


def _roi(balance: Decimal, starting_balance: Decimal) -> Decimal:
    if starting_balance == 0:
        return _ZERO
    return (balance - starting_balance) / starting_balance * _HUNDRED


def _ratio(part: int, whole: int) -> Decimal:
    if whole == 0:
        return _ZERO
    return Decimal(part) / Decimal(whole) * _HUNDRED


# ============================================================
# VENUE LEDGER
# ============================================================

@dataclass
class Ledger:
    """Durable record of one venue's account."""

    venue_id: VenueId
    starting_balance: Decimal
    balance: Decimal
    trade_history_limit: int = 100
    positions: List[Position] = field(default_factory=list)
    trades: List[Trade] = field(default_factory=list)
    stats: LedgerStats = field(default_factory=LedgerStats)
    drawdown: DrawdownTracker = field(default_factory=DrawdownTracker)

    @classmethod
    def fresh(cls, venue_id: VenueId, starting_balance: Decimal, trade_history_limit: int = 100) -> "Ledger":
        """New ledger with no history."""
        ledger = cls(
            venue_id=venue_id,
            starting_balance=starting_balance,
            balance=starting_balance,
            trade_history_limit=trade_history_limit,
        )
        ledger.drawdown.peak_balance = starting_balance
        return ledger

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    def find_position(self, position_id: str) -> Optional[Position]:
        for position in self.positions:
            if position.id == position_id:
                return position
        return None

    @property
    def roi_percent(self) -> Decimal:
        return _roi(self.balance, self.starting_balance)

    @property
    def win_rate(self) -> Decimal:
        return _ratio(self.stats.wins, self.stats.total_trades)

    @property
    def avg_pnl(self) -> Decimal:
        if self.stats.total_trades == 0:
            return _ZERO
        return self.stats.total_pnl / self.stats.total_trades

    # --------------------------------------------------------
    # MUTATIONS
    # --------------------------------------------------------

    def record_reject(self) -> None:
        self.stats.rejects += 1

    def record_partial_fill(self) -> None:
        self.stats.partial_fills += 1

    def open_position(self, position: Position) -> None:
        """Add a filled position. Balance is unchanged."""
        if self.find_position(position.id) is not None:
            raise ValueError(f"Position already open: {position.id}")
        self.positions.append(position)
        self.stats.total_fees += position.fees
        self.stats.total_slippage += position.slippage_cost

    def close_position(self, trade: Trade) -> None:
        """
        Book a close.

        Removes the position, credits net PnL, appends the trade.

        Raises:
            KeyError: Position not open on this ledger
        """
        position = self.find_position(trade.id)
        if position is None:
            raise KeyError(f"Position not open: {trade.id}")

        self.positions.remove(position)
        self.balance += trade.net_pnl

        self.stats.total_trades += 1
        self.stats.total_pnl += trade.net_pnl
        self.stats.total_fees += trade.exit_fee
        self.stats.total_slippage += trade.exit_slippage_cost
        if trade.is_win:
            self.stats.wins += 1
        else:
            self.stats.losses += 1

        self.drawdown.update(self.balance)
        _append_bounded(self.trades, trade, self.trade_history_limit)

    def reset(self) -> None:
        """Reinitialize balance, positions, trades and statistics."""
        self.balance = self.starting_balance
        self.positions = []
        self.trades = []
        self.stats = LedgerStats()
        self.drawdown = DrawdownTracker(peak_balance=self.starting_balance)

    # --------------------------------------------------------
    # SERIALIZATION
    # --------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "venue": self.venue_id.value,
            "balance": str(self.balance),
            "starting_balance": str(self.starting_balance),
            "positions": [p.to_dict() for p in self.positions],
            "trades": [t.to_dict() for t in self.trades],
            "stats": self.stats.to_dict(),
            "drawdown": self.drawdown.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        venue_id: VenueId,
        starting_balance: Decimal,
        trade_history_limit: int = 100,
    ) -> "Ledger":
        """
        Restore a ledger, filling missing keys with defaults.

        Args:
            data: Persisted record
            venue_id: Owning venue
            starting_balance: Default starting balance
            trade_history_limit: History cap applied on load

        Raises:
            PersistenceError: Record does not decode into a ledger
        """
        try:
            start = to_decimal(data.get("starting_balance", starting_balance))
            balance = to_decimal(data.get("balance", start))
            trades = [Trade.from_dict(t) for t in data.get("trades", [])]

            return cls(
                venue_id=venue_id,
                starting_balance=start,
                balance=balance,
                trade_history_limit=trade_history_limit,
                positions=[Position.from_dict(p) for p in data.get("positions", [])],
                trades=trades[-trade_history_limit:],
                stats=LedgerStats.from_dict(data.get("stats", {})),
                drawdown=DrawdownTracker.from_dict(data.get("drawdown", {}), default_peak=max(start, balance)),
            )
        except DECODE_ERRORS as e:
            raise PersistenceError(f"Malformed {venue_id.value} ledger record: {e!r}") from e


# ============================================================
# GLOBAL STATE
# ============================================================

@dataclass
class VenueStats:
    """Per-venue row of the aggregator statistics table."""

    trades: int = 0
    pnl: Decimal = _ZERO
    fees: Decimal = _ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {"trades": self.trades, "pnl": str(self.pnl), "fees": str(self.fees)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VenueStats":
        return cls(
            trades=int(data.get("trades", 0)),
            pnl=to_decimal(data.get("pnl", "0")),
            fees=to_decimal(data.get("fees", "0")),
        )


@dataclass
class GlobalState:
    """
    Aggregator-level account view.

    References positions owned by venue ledgers; never owns them.
    """

    starting_balance: Decimal
    balance: Decimal
    trade_history_limit: int = 100
    positions: List[Position] = field(default_factory=list)
    trades: List[Trade] = field(default_factory=list)
    venue_stats: Dict[VenueId, VenueStats] = field(default_factory=dict)
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    total_pnl: Decimal = _ZERO
    total_fees: Decimal = _ZERO
    total_slippage: Decimal = _ZERO
    drawdown: DrawdownTracker = field(default_factory=DrawdownTracker)
    routing_log: RoutingLog = field(default_factory=RoutingLog)

    @classmethod
    def fresh(
        cls,
        starting_balance: Decimal,
        venue_ids: Iterable[VenueId] = (),
        trade_history_limit: int = 100,
        routing_log: Optional[RoutingLog] = None,
    ) -> "GlobalState":
        state = cls(
            starting_balance=starting_balance,
            balance=starting_balance,
            trade_history_limit=trade_history_limit,
            routing_log=routing_log if routing_log is not None else RoutingLog(),
        )
        state.drawdown.peak_balance = starting_balance
        state.ensure_venues(venue_ids)
        return state

    def ensure_venues(self, venue_ids: Iterable[VenueId]) -> None:
        """Add default statistics rows for venues not yet tracked."""
        for venue_id in venue_ids:
            self.venue_stats.setdefault(venue_id, VenueStats())

    def find_position(self, position_id: str) -> Optional[Position]:
        for position in self.positions:
            if position.id == position_id:
                return position
        return None

    @property
    def roi_percent(self) -> Decimal:
        return _roi(self.balance, self.starting_balance)

    @property
    def win_rate(self) -> Decimal:
        return _ratio(self.wins, self.total_trades)

    # --------------------------------------------------------
    # MUTATIONS
    # --------------------------------------------------------

    def add_position(self, position: Position) -> None:
        """Track a filled position under its venue tag."""
        self.positions.append(position)
        self.ensure_venues([position.venue])
        self.venue_stats[position.venue].fees += position.fees
        self.total_fees += position.fees
        self.total_slippage += position.slippage_cost

    def apply_close(self, trade: Trade) -> None:
        """Book a venue-confirmed close into the global counters."""
        venue_id = trade.venue
        self.ensure_venues([venue_id])

        self.total_trades += 1
        self.total_pnl += trade.net_pnl
        self.total_fees += trade.exit_fee
        self.total_slippage += trade.exit_slippage_cost
        if trade.is_win:
            self.wins += 1
        else:
            self.losses += 1

        row = self.venue_stats[venue_id]
        row.trades += 1
        row.pnl += trade.net_pnl
        row.fees += trade.exit_fee

        position = self.find_position(trade.id)
        if position is not None:
            self.positions.remove(position)
        _append_bounded(self.trades, trade, self.trade_history_limit)

    def recompute_balance(self, venue_deltas: Iterable[Decimal]) -> Decimal:
        """
        Apply the conservation rule.

        balance = starting_balance + sum(venue.balance - venue.starting_balance)
        """
        self.balance = self.starting_balance + sum(venue_deltas, _ZERO)
        self.drawdown.update(self.balance)
        return self.balance

    def reset(self, venue_ids: Iterable[VenueId] = ()) -> None:
        """Reinitialize everything; the routing log is cleared in place."""
        self.balance = self.starting_balance
        self.positions = []
        self.trades = []
        self.venue_stats = {}
        self.total_trades = 0
        self.wins = 0
        self.losses = 0
        self.total_pnl = _ZERO
        self.total_fees = _ZERO
        self.total_slippage = _ZERO
        self.drawdown = DrawdownTracker(peak_balance=self.starting_balance)
        self.routing_log.clear()
        self.ensure_venues(venue_ids)

    # --------------------------------------------------------
    # SERIALIZATION
    # --------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "balance": str(self.balance),
            "starting_balance": str(self.starting_balance),
            "positions": [p.to_dict() for p in self.positions],
            "trades": [t.to_dict() for t in self.trades],
            "stats": {
                "total_trades": self.total_trades,
                "wins": self.wins,
                "losses": self.losses,
                "total_pnl": str(self.total_pnl),
                "total_fees": str(self.total_fees),
                "total_slippage": str(self.total_slippage),
                "by_venue": {v.value: s.to_dict() for v, s in self.venue_stats.items()},
            },
            "drawdown": self.drawdown.to_dict(),
            "routing_log": self.routing_log.to_list(),
        }

    def load_dict(self, data: Dict[str, Any], venue_ids: Iterable[VenueId] = ()) -> None:
        """
        Restore persisted values in place, merging defaults.

        Venues unknown to the current catalog are dropped from the
        statistics table; new catalog venues get default rows.

        Raises:
            PersistenceError: Record does not decode; state may be
                partially loaded and should be reset by the caller
        """
        known = set(venue_ids)
        try:
            self._load(data, known)
        except DECODE_ERRORS as e:
            raise PersistenceError(f"Malformed global record: {e!r}") from e

    def _load(self, data: Dict[str, Any], known: set) -> None:
        stats = data.get("stats", {})

        self.starting_balance = to_decimal(data.get("starting_balance", self.starting_balance))
        self.balance = to_decimal(data.get("balance", self.starting_balance))
        self.positions = [Position.from_dict(p) for p in data.get("positions", [])]
        self.trades = [Trade.from_dict(t) for t in data.get("trades", [])][-self.trade_history_limit:]
        self.total_trades = int(stats.get("total_trades", 0))
        self.wins = int(stats.get("wins", 0))
        self.losses = int(stats.get("losses", 0))
        self.total_pnl = to_decimal(stats.get("total_pnl", "0"))
        self.total_fees = to_decimal(stats.get("total_fees", "0"))
        self.total_slippage = to_decimal(stats.get("total_slippage", "0"))

        self.venue_stats = {}
        for raw_id, row in stats.get("by_venue", {}).items():
            try:
                venue_id = VenueId.parse(raw_id)
            except VenueNotFoundError:
                continue
            if known and venue_id not in known:
                continue
            self.venue_stats[venue_id] = VenueStats.from_dict(row)
        self.ensure_venues(known)

        self.drawdown = DrawdownTracker.from_dict(
            data.get("drawdown", {}),
            default_peak=max(self.starting_balance, self.balance),
        )
        self.routing_log.replace(
            RoutingDecision.from_dict(d) for d in data.get("routing_log", [])
        )
