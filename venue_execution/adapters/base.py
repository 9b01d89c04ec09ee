"""
Venue Execution - Executor Base.

============================================================
PURPOSE
============================================================
Abstract interface for venue executors.

DESIGN PRINCIPLES:
- The aggregator depends only on VenueExecutor
- Simulated and live executors are interchangeable
- Each executor owns exactly one venue ledger

CONCURRENCY:
- One asyncio.Lock per executor serializes place/close
  (ledger mutation + persistence write)
- Different venues never share a lock

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..catalog import Venue
from ..config import LedgerConfig
from ..ledger import Ledger
from ..repository import LedgerStore
from ..types import (
    CloseResult,
    Order,
    OrderResult,
    PersistenceError,
    Position,
    VenueId,
)


logger = logging.getLogger(__name__)


# ============================================================
# EXECUTOR INTERFACE
# ============================================================

class VenueExecutor(ABC):
    """
    Abstract interface for venue executors.

    Implementations:
    - SimulatedVenueExecutor: Probabilistic fill model
    - LiveVenueExecutor: Delegates to an injected live connector
    """

    @property
    @abstractmethod
    def venue_id(self) -> VenueId:
        """Get venue identifier."""
        pass

    @property
    @abstractmethod
    def is_live(self) -> bool:
        """Check if orders reach a real venue."""
        pass

    @property
    @abstractmethod
    def balance(self) -> Decimal:
        """Current ledger balance."""
        pass

    @property
    @abstractmethod
    def starting_balance(self) -> Decimal:
        """Ledger starting balance."""
        pass

    @property
    @abstractmethod
    def open_positions(self) -> List[Position]:
        """Open positions owned by this venue's ledger."""
        pass

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    @abstractmethod
    async def initialize(self) -> None:
        """Restore the ledger from durable storage."""
        pass

    @abstractmethod
    async def reset(self) -> None:
        """Reinitialize balance, positions, trades and statistics."""
        pass

    # --------------------------------------------------------
    # ORDER OPERATIONS
    # --------------------------------------------------------

    @abstractmethod
    async def place_order(self, order: Order) -> OrderResult:
        """
        Execute an order.

        Args:
            order: Validated order

        Returns:
            OrderResult (filled, or a failure tag)
        """
        pass

    @abstractmethod
    async def close_position(
        self,
        position_id: str,
        exit_price: Decimal,
        reason: str = "manual",
        volatility: Decimal = Decimal("1"),
    ) -> CloseResult:
        """
        Close an open position.

        Args:
            position_id: Position identifier
            exit_price: Exit reference price
            reason: Close reason tag
            volatility: Volatility factor scaling exit slippage

        Returns:
            CloseResult (POSITION_NOT_FOUND if unknown)
        """
        pass

    # --------------------------------------------------------
    # STATUS
    # --------------------------------------------------------

    @abstractmethod
    def get_status(self) -> Dict[str, Any]:
        """Read-only status snapshot."""
        pass

    def display_status(self) -> str:
        """Human-readable status report (also logged)."""
        status = self.get_status()
        stats = status["stats"]
        lines = [
            "=" * 60,
            f"{status['name']} ({status['venue']}) {'LIVE' if status['is_live'] else 'DRY RUN'}",
            "=" * 60,
            f"  Balance:      ${status['balance']:.2f} (start ${status['starting_balance']:.2f})",
            f"  ROI:          {status['roi_percent']:+.2f}%",
            f"  Trades:       {stats['total_trades']} (W {stats['wins']} / L {stats['losses']})",
            f"  Win rate:     {status['win_rate']:.1f}%",
            f"  Avg PnL:      ${status['avg_pnl']:.4f}",
            f"  Fees:         ${stats['total_fees']:.4f}",
            f"  Slippage:     ${stats['total_slippage']:.4f}",
            f"  Rejects:      {stats['rejects']}  Partial fills: {stats['partial_fills']}",
            f"  Max drawdown: {status['drawdown']['max_drawdown']:.2f}%",
            f"  Open:         {len(status['positions'])}",
        ]
        for position in status["positions"]:
            lines.append(
                f"    {position['id']} {position['coin']} {position['direction']} "
                f"${position['size']} x{position['leverage']} @ {position['entry_price']}"
            )
        lines.append("=" * 60)

        report = "\n".join(lines)
        logger.info("\n%s", report)
        return report


# ============================================================
# LEDGER-BACKED EXECUTOR
# ============================================================

class LedgerBackedExecutor(VenueExecutor):
    """
    Shared ledger, lock and persistence handling.

    Subclasses implement place_order / close_position and call
    _persist() after every ledger mutation.
    """

    def __init__(
        self,
        venue: Venue,
        initial_balance: Decimal,
        store: LedgerStore,
        record_key: str,
        ledger_config: Optional[LedgerConfig] = None,
    ):
        """
        Initialize executor.

        Args:
            venue: Catalog entry
            initial_balance: Starting balance of a fresh ledger
            store: Ledger store
            record_key: Store key of this venue's ledger
            ledger_config: Ledger configuration
        """
        self._venue = venue
        self._store = store
        self._record_key = record_key
        self._ledger_config = ledger_config or LedgerConfig()
        self._ledger = Ledger.fresh(
            venue.id, initial_balance, self._ledger_config.trade_history_limit
        )
        self._lock = asyncio.Lock()

    @property
    def venue(self) -> Venue:
        return self._venue

    @property
    def venue_id(self) -> VenueId:
        return self._venue.id

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def balance(self) -> Decimal:
        return self._ledger.balance

    @property
    def starting_balance(self) -> Decimal:
        return self._ledger.starting_balance

    @property
    def open_positions(self) -> List[Position]:
        return list(self._ledger.positions)

    # --------------------------------------------------------
    # PERSISTENCE
    # --------------------------------------------------------

    async def initialize(self) -> None:
        try:
            data = await self._store.load(self._record_key)
        except PersistenceError:
            logger.error(
                "Cannot restore ledger for %s, starting fresh",
                self.venue_id.value,
                exc_info=True,
            )
            return

        if data is None:
            logger.debug("No saved ledger for %s", self.venue_id.value)
            return

        try:
            self._ledger = Ledger.from_dict(
                data,
                venue_id=self.venue_id,
                starting_balance=self._ledger.starting_balance,
                trade_history_limit=self._ledger_config.trade_history_limit,
            )
        except PersistenceError:
            logger.error(
                "Cannot restore ledger for %s, starting fresh",
                self.venue_id.value,
                exc_info=True,
            )
            return

        logger.info(
            "Restored %s ledger: balance=%s, %d open, %d trades",
            self.venue_id.value,
            self._ledger.balance,
            len(self._ledger.positions),
            len(self._ledger.trades),
        )

    async def _persist(self) -> None:
        """Save the ledger; failures are logged, never raised."""
        try:
            await self._store.save(self._record_key, self._ledger.to_dict())
        except PersistenceError:
            logger.error(
                "Failed to persist %s ledger",
                self.venue_id.value,
                exc_info=True,
            )

    async def reset(self) -> None:
        async with self._lock:
            self._ledger.reset()
            await self._persist()
        logger.info("Reset %s ledger to %s", self.venue_id.value, self._ledger.balance)

    # --------------------------------------------------------
    # STATUS
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        ledger = self._ledger
        stats = ledger.stats
        return {
            "venue": self.venue_id.value,
            "name": self._venue.name,
            "network": self._venue.network,
            "is_live": self.is_live,
            "balance": ledger.balance,
            "starting_balance": ledger.starting_balance,
            "roi_percent": ledger.roi_percent,
            "win_rate": ledger.win_rate,
            "avg_pnl": ledger.avg_pnl,
            "positions": [p.to_dict() for p in ledger.positions],
            "stats": {
                "total_trades": stats.total_trades,
                "wins": stats.wins,
                "losses": stats.losses,
                "total_pnl": stats.total_pnl,
                "total_fees": stats.total_fees,
                "total_slippage": stats.total_slippage,
                "rejects": stats.rejects,
                "partial_fills": stats.partial_fills,
            },
            "drawdown": {
                "peak_balance": ledger.drawdown.peak_balance,
                "current_drawdown": ledger.drawdown.current_drawdown,
                "max_drawdown": ledger.drawdown.max_drawdown,
            },
        }
