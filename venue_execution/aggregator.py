"""
Venue Execution - Multi-Venue Aggregator.

============================================================
PURPOSE
============================================================
Single place/close/status surface over every venue.

This is the primary entry point of the package. It owns one
executor per venue, routes orders, and merges the venue
ledgers into one GlobalState.

============================================================
VENUE RESOLUTION
============================================================
1. Explicit order.venue (must admit coin and leverage)
2. Preferred venue when auto-routing is off
3. Router (cheapest expected fee, then priority)

============================================================
INVARIANTS
============================================================
- A filled position exists in its venue ledger and in the
  global view, tagged with the same venue id
- GlobalState.balance == starting_balance
      + sum(venue.balance - venue.starting_balance)
  at every quiescent point
- Persistence failures are logged, never raised

============================================================
"""

import asyncio
import logging
import random
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from .adapters import (
    ExecutorFactory,
    ExecutorRegistry,
    LiveVenueConnector,
)
from .catalog import VenueCatalog
from .config import AggregatorConfig
from .errors import categorize, is_resubmittable
from .ledger import GlobalState
from .repository import LedgerStore, create_store
from .router import RoutingDecision, RoutingLog, VenueRouter
from .types import (
    CloseResult,
    FailureReason,
    Order,
    OrderResult,
    PersistenceError,
    VenueId,
    VenueNotFoundError,
    parse_price,
)


logger = logging.getLogger(__name__)


ROUTING_TAIL = 10


class VenueAggregator:
    """
    Multi-venue execution aggregator.
    """

    def __init__(
        self,
        config: Optional[AggregatorConfig] = None,
        catalog: Optional[VenueCatalog] = None,
        store: Optional[LedgerStore] = None,
        live_connectors: Optional[Mapping[VenueId, LiveVenueConnector]] = None,
        rng: Optional[random.Random] = None,
        registry: Optional[ExecutorRegistry] = None,
    ):
        """
        Initialize aggregator.

        Args:
            config: Aggregator configuration
            catalog: Venue catalog (built-in table if omitted)
            store: Ledger store (built from config.database_url if omitted)
            live_connectors: Injected live connectors by venue
            rng: Random source for simulated executors
            registry: Prebuilt executor registry (skips the factory)
        """
        self._config = config or AggregatorConfig()
        self._catalog = catalog or VenueCatalog()
        self._store = store if store is not None else create_store(self._config.database_url)

        self._routing_log = RoutingLog(limit=self._config.routing_log_limit)
        self._router = VenueRouter(
            self._catalog,
            fallback_venue=self._config.fallback_venue,
            log=self._routing_log,
        )

        if registry is None:
            registry = ExecutorFactory(
                self._catalog,
                self._config,
                self._store,
                live_connectors=live_connectors,
                rng=rng,
            ).create_registry()
        self._registry = registry

        self._state = GlobalState.fresh(
            self._config.initial_balance,
            venue_ids=self._registry.venue_ids,
            trade_history_limit=self._config.ledger.trade_history_limit,
            routing_log=self._routing_log,
        )

        self._lock = asyncio.Lock()
        self._running = False

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def config(self) -> AggregatorConfig:
        return self._config

    @property
    def catalog(self) -> VenueCatalog:
        return self._catalog

    @property
    def router(self) -> VenueRouter:
        return self._router

    @property
    def registry(self) -> ExecutorRegistry:
        return self._registry

    @property
    def state(self) -> GlobalState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self) -> None:
        """Initialize the store and restore all ledgers."""
        if self._running:
            return

        logger.info(
            "Starting venue aggregator (%s, %d venues)...",
            self._config.mode.value, len(self._registry),
        )

        try:
            await self._store.initialize()
        except PersistenceError:
            logger.error("Ledger store unavailable, running in memory only", exc_info=True)

        for executor in self._registry:
            await executor.initialize()

        await self._restore_global()

        self._running = True
        logger.info(
            "Venue aggregator started: balance=%s, %d open positions",
            self._state.balance, len(self._state.positions),
        )

    async def stop(self) -> None:
        """Release the store."""
        if not self._running:
            return

        logger.info("Stopping venue aggregator...")
        self._running = False
        await self._store.close()
        logger.info("Venue aggregator stopped")

    async def __aenter__(self) -> "VenueAggregator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _restore_global(self) -> None:
        key = self._config.global_record_key
        try:
            data = await self._store.load(key)
        except PersistenceError:
            logger.error("Cannot restore global state, starting fresh", exc_info=True)
            data = None

        async with self._lock:
            if data is not None:
                try:
                    self._state.load_dict(data, self._registry.venue_ids)
                except PersistenceError:
                    logger.error("Cannot restore global state, starting fresh", exc_info=True)
                    self._state.starting_balance = self._config.initial_balance
                    self._state.reset(self._registry.venue_ids)

            # Venue ledgers own positions; the global view references them
            self._state.positions = [
                position
                for executor in self._registry
                for position in executor.open_positions
            ]
            self._recompute_balance()

    # --------------------------------------------------------
    # VENUE RESOLUTION
    # --------------------------------------------------------

    def _resolve_venue(self, order: Order) -> Tuple[Optional[VenueId], Optional[OrderResult]]:
        """
        Pick the executing venue.

        Returns:
            (venue_id, None) or (None, failure result)
        """
        if order.venue is not None:
            venue = self._catalog.get(order.venue)
            if venue is None or order.venue not in self._registry:
                return None, OrderResult.failure(
                    FailureReason.VENUE_NOT_FOUND,
                    f"Unknown venue: {order.venue.value}",
                    venue=order.venue,
                )
            if not venue.supports_asset(order.coin):
                return None, OrderResult.failure(
                    FailureReason.UNSUPPORTED_ASSET,
                    f"{venue.name} does not list {order.coin}",
                    venue=order.venue,
                )
            if not venue.supports_leverage(order.leverage):
                return None, OrderResult.failure(
                    FailureReason.LEVERAGE_EXCEEDED,
                    f"{venue.name} max leverage is {venue.max_leverage}, requested {order.leverage}",
                    venue=order.venue,
                )
            return order.venue, None

        if not self._config.auto_route:
            return self._config.preferred_venue, None

        decision = self._router.route(order)
        return decision.venue_id, None

    # --------------------------------------------------------
    # ORDER OPERATIONS
    # --------------------------------------------------------

    async def place_order(self, order: Order) -> OrderResult:
        """
        Route and execute an order.

        Args:
            order: Validated order

        Returns:
            OrderResult from the executing venue, or a failure
            tag when no venue could take the order
        """
        venue_id, failure = self._resolve_venue(order)
        if failure is not None:
            logger.warning("Order not placed: %s %s", failure.reason.value, failure.message)
            return failure

        try:
            executor = self._registry.get(venue_id)
        except VenueNotFoundError as e:
            logger.warning("Order not placed: %s", e)
            return OrderResult.failure(FailureReason.VENUE_NOT_FOUND, str(e), venue=venue_id)

        result = await executor.place_order(order)

        if not result.success:
            category = categorize(result.reason)
            logger.info(
                "Order %s on %s ended %s (%s, resubmittable=%s)",
                result.order_id, venue_id.value,
                result.reason.value if result.reason else "unknown",
                category.value if category else "unknown",
                is_resubmittable(result.reason),
            )
            return result

        async with self._lock:
            self._state.add_position(result.position)
            await self._persist_global()

        return result

    async def close_position(
        self,
        position_id: str,
        exit_price: Decimal,
        reason: str = "manual",
        volatility: Decimal = Decimal("1"),
    ) -> CloseResult:
        """
        Close a position on whichever venue owns it.

        Args:
            position_id: Position identifier
            exit_price: Exit reference price
            reason: Close reason tag
            volatility: Volatility factor scaling simulated exit slippage

        Returns:
            CloseResult (POSITION_NOT_FOUND if no venue owns it)

        Raises:
            OrderValidationError: Exit price or volatility is not a positive number
        """
        exit_price = parse_price(exit_price, "exit_price")
        volatility = parse_price(volatility, "volatility")

        position = self._state.find_position(position_id)
        if position is None:
            logger.warning("Position not found: %s", position_id)
            return CloseResult.failure(
                FailureReason.POSITION_NOT_FOUND,
                f"Position not found: {position_id}",
            )

        try:
            executor = self._registry.get(position.venue)
        except VenueNotFoundError as e:
            logger.error("Position %s belongs to an unregistered venue: %s", position_id, e)
            return CloseResult.failure(FailureReason.VENUE_NOT_FOUND, str(e))

        result = await executor.close_position(position_id, exit_price, reason, volatility)

        if not result.success:
            if result.reason == FailureReason.POSITION_NOT_FOUND:
                logger.warning(
                    "Global view lists %s on %s but the venue ledger does not",
                    position_id, position.venue.value,
                )
            return result

        async with self._lock:
            self._state.apply_close(result.trade)
            self._recompute_balance()
            await self._persist_global()

        logger.info(
            "Closed %s on %s: net $%.4f, venue balance $%.2f, global balance $%.2f",
            position_id, position.venue.value, result.net_pnl,
            result.new_balance, self._state.balance,
        )
        return result

    async def reset(self) -> None:
        """Reset every venue and the global state (sandbox use)."""
        for executor in self._registry:
            await executor.reset()

        async with self._lock:
            self._state.reset(self._registry.venue_ids)
            self._state.positions = [
                position
                for executor in self._registry
                for position in executor.open_positions
            ]
            self._recompute_balance()
            await self._persist_global()

        logger.warning("Aggregator reset: balance=%s", self._state.balance)

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    def _recompute_balance(self) -> Decimal:
        return self._state.recompute_balance(
            executor.balance - executor.starting_balance
            for executor in self._registry
        )

    async def _persist_global(self) -> None:
        try:
            await self._store.save(self._config.global_record_key, self._state.to_dict())
        except PersistenceError:
            logger.error("Failed to persist global state", exc_info=True)

    # --------------------------------------------------------
    # STATUS
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Read-only global status with per-venue breakdown."""
        state = self._state

        venues = {}
        for executor in self._registry:
            venue_status = executor.get_status()
            row = state.venue_stats.get(executor.venue_id)
            if row is not None:
                venue_status["global"] = {"trades": row.trades, "pnl": row.pnl, "fees": row.fees}
            venues[executor.venue_id.value] = venue_status

        return {
            "mode": self._config.mode.value,
            "balance": state.balance,
            "starting_balance": state.starting_balance,
            "roi_percent": state.roi_percent,
            "win_rate": state.win_rate,
            "positions": [p.to_dict() for p in state.positions],
            "stats": {
                "total_trades": state.total_trades,
                "wins": state.wins,
                "losses": state.losses,
                "total_pnl": state.total_pnl,
                "total_fees": state.total_fees,
                "total_slippage": state.total_slippage,
            },
            "drawdown": {
                "peak_balance": state.drawdown.peak_balance,
                "current_drawdown": state.drawdown.current_drawdown,
                "max_drawdown": state.drawdown.max_drawdown,
            },
            "venues": venues,
            "routing": [d.to_dict() for d in self._routing_log.tail(ROUTING_TAIL)],
        }

    def display_status(self) -> str:
        """Human-readable global report (also logged)."""
        status = self.get_status()
        stats = status["stats"]
        lines = [
            "=" * 72,
            f"VENUE AGGREGATOR ({status['mode']})",
            "=" * 72,
            f"  Balance:  ${status['balance']:.2f} (start ${status['starting_balance']:.2f}, "
            f"ROI {status['roi_percent']:+.2f}%)",
            f"  Trades:   {stats['total_trades']} (W {stats['wins']} / L {stats['losses']}, "
            f"win rate {status['win_rate']:.1f}%)",
            f"  PnL:      ${stats['total_pnl']:.4f}  Fees: ${stats['total_fees']:.4f}  "
            f"Slippage: ${stats['total_slippage']:.4f}",
            f"  Open:     {len(status['positions'])}",
            "-" * 72,
            f"  {'VENUE':<12}{'BALANCE':>12}{'ROI%':>9}{'TRADES':>8}{'PNL':>12}{'FEES':>10}{'OPEN':>6}",
        ]
        for venue_id, venue_status in status["venues"].items():
            row = venue_status.get("global", {"trades": 0, "pnl": Decimal("0"), "fees": Decimal("0")})
            lines.append(
                f"  {venue_id:<12}{venue_status['balance']:>12.2f}{venue_status['roi_percent']:>9.2f}"
                f"{row['trades']:>8}{row['pnl']:>12.4f}{row['fees']:>10.4f}"
                f"{len(venue_status['positions']):>6}"
            )

        if status["routing"]:
            lines.append("-" * 72)
            lines.append("  Recent routing:")
            for entry in status["routing"]:
                target = entry["venue"] + (" (fallback)" if entry["fallback"] else "")
                lines.append(f"    {entry['coin']:<6} ${entry['size']} x{entry['leverage']} -> {target}")
        lines.append("=" * 72)

        report = "\n".join(lines)
        logger.info("\n%s", report)
        return report

    def last_routing_decision(self) -> Optional[RoutingDecision]:
        tail = self._routing_log.tail(1)
        return tail[0] if tail else None
