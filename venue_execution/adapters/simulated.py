"""
Venue Execution - Simulated Venue Executor.

============================================================
PURPOSE
============================================================
Probabilistic fill model for one venue (dry run).

PLACE ORDER:
1. Reject draw          -> REJECTED (reject counter +1)
2. Timeout draw         -> sleep latency, TIMEOUT
3. Latency              -> sleep uniform [min, max] ms
4. Spread               -> bid/ask around reference price
5. Slippage             -> base + size impact (capped),
                           long pays above ask, short
                           receives below bid
6. Partial fill draw    -> fraction in [0.3, 0.9]
7. Entry fee            -> filled x leverage x rate
8. Open position, persist

CLOSE POSITION:
    Exit slippage against the position, directional PnL,
    net = gross - exit fee - exit slippage cost,
    balance += net, persist.

UNITS:
    Spread and slippage are percent values (0.05 = 0.05%).

============================================================
"""

import asyncio
import logging
import random
import uuid
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from ..catalog import Venue
from ..config import LedgerConfig
from ..repository import LedgerStore
from ..state_machine import OrderLifecycle, OrderState
from ..types import (
    CloseResult,
    Direction,
    FailureReason,
    Order,
    OrderResult,
    Position,
    Trade,
    parse_price,
    to_decimal,
    utcnow,
)
from .base import LedgerBackedExecutor


logger = logging.getLogger(__name__)


_ZERO = Decimal("0")
_ONE = Decimal("1")
_HUNDRED = Decimal("100")

PARTIAL_FILL_MIN = Decimal("0.3")
PARTIAL_FILL_RANGE = Decimal("0.6")


class SimulatedVenueExecutor(LedgerBackedExecutor):
    """
    Dry-run executor for one venue.

    Every random draw goes through the injected random.Random,
    so a seeded generator gives reproducible fills.
    """

    def __init__(
        self,
        venue: Venue,
        initial_balance: Decimal,
        store: LedgerStore,
        record_key: str,
        ledger_config: Optional[LedgerConfig] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize simulated executor.

        Args:
            venue: Catalog entry (fees and simulation profile)
            initial_balance: Starting balance of a fresh ledger
            store: Ledger store
            record_key: Store key of this venue's ledger
            ledger_config: Ledger configuration
            rng: Random source (module-level generator if omitted)
            sleep: Suspension used for simulated latency
        """
        super().__init__(venue, initial_balance, store, record_key, ledger_config)
        self._rng = rng or random.Random()
        self._sleep = sleep

    @property
    def is_live(self) -> bool:
        return False

    # --------------------------------------------------------
    # RANDOM MODEL
    # --------------------------------------------------------

    def _draw(self) -> Decimal:
        return to_decimal(self._rng.random())

    def _uniform(self, low: Decimal, high: Decimal) -> Decimal:
        if low == high:
            return low
        return low + self._draw() * (high - low)

    async def _simulate_latency(self) -> Decimal:
        """Suspend for a sampled latency; returns milliseconds."""
        profile = self._venue.profile
        latency_ms = self._uniform(profile.latency_min_ms, profile.latency_max_ms)
        await self._sleep(float(latency_ms) / 1000)
        return latency_ms

    def _spread(self, price: Decimal, volatility: Decimal):
        """Synthetic bid/ask around the reference price."""
        profile = self._venue.profile
        spread_pct = self._uniform(profile.spread_min, profile.spread_max) * volatility
        half = price * spread_pct / Decimal("200")
        return price - half, price + half, spread_pct

    def _slippage(self, size: Decimal, volatility: Decimal) -> Decimal:
        """Slippage percent: sampled base plus capped size impact."""
        profile = self._venue.profile
        base = self._uniform(profile.slippage_min, profile.slippage_max)
        impact = min(size * profile.size_impact_factor, profile.size_impact_cap)
        return (base + impact) * volatility

    def _new_order_id(self) -> str:
        millis = int(utcnow().timestamp() * 1000)
        return f"{self.venue_id.value.upper()}-{millis}-{uuid.uuid4().hex[:8]}"

    # --------------------------------------------------------
    # PLACE ORDER
    # --------------------------------------------------------

    async def place_order(self, order: Order) -> OrderResult:
        profile = self._venue.profile
        order_id = self._new_order_id()
        lifecycle = OrderLifecycle(order_id)

        logger.info(
            "[%s] New order %s: %s %s $%s x%s",
            self.venue_id.value, order_id, order.coin,
            order.direction.value, order.size, order.leverage,
        )

        async with self._lock:
            # 1. Reject
            if self._draw() < profile.reject_probability:
                self._ledger.record_reject()
                lifecycle.transition(OrderState.REJECTED, "simulated reject")
                logger.warning("[%s] Order %s rejected", self.venue_id.value, order_id)
                await self._persist()
                return OrderResult.failure(
                    FailureReason.REJECTED,
                    "Venue rejected the order",
                    order_id=order_id,
                    venue=self.venue_id,
                    state=lifecycle.state.value,
                )

            # 2. Timeout
            if self._draw() < profile.timeout_probability:
                latency_ms = await self._simulate_latency()
                lifecycle.transition(OrderState.TIMED_OUT, f"{latency_ms:.0f}ms")
                logger.warning(
                    "[%s] Order %s timed out after %.0fms",
                    self.venue_id.value, order_id, latency_ms,
                )
                return OrderResult.failure(
                    FailureReason.TIMEOUT,
                    "Order timed out before execution",
                    order_id=order_id,
                    venue=self.venue_id,
                    state=lifecycle.state.value,
                )

            # 3. Latency
            latency_ms = await self._simulate_latency()

            # 4. Spread
            bid, ask, spread_pct = self._spread(order.price, order.volatility)

            # 5. Slippage
            slippage = self._slippage(order.size, order.volatility)
            if order.direction == Direction.LONG:
                execution_price = ask * (_ONE + slippage / _HUNDRED)
            else:
                execution_price = bid * (_ONE - slippage / _HUNDRED)

            # 6. Partial fill
            fill_fraction = _ONE
            if self._draw() < profile.partial_fill_probability:
                fill_fraction = PARTIAL_FILL_MIN + self._draw() * PARTIAL_FILL_RANGE
                self._ledger.record_partial_fill()
                lifecycle.transition(OrderState.PARTIALLY_FILLED, f"{fill_fraction:.2%}")
            else:
                lifecycle.transition(OrderState.FILLED)
            filled_size = order.size * fill_fraction

            # 7. Entry fee
            fee_rate = self._venue.fees.rate_for(order.order_type.is_maker)
            fee = filled_size * order.leverage * fee_rate
            slippage_cost = slippage * filled_size * order.leverage / _HUNDRED

            # 8. Open position
            position = Position(
                id=order_id,
                venue=self.venue_id,
                coin=order.coin,
                direction=order.direction,
                entry_price=execution_price,
                size=filled_size,
                leverage=order.leverage,
                strategy=order.strategy,
                fees=fee,
                slippage_cost=slippage_cost,
                latency_ms=latency_ms,
            )
            self._ledger.open_position(position)
            lifecycle.transition(OrderState.OPEN)
            await self._persist()

        logger.info(
            "[%s] Filled %s: %s @ %s (spread %.3f%%, slippage %.3f%%, fee $%.4f, %.0fms, fill %.0f%%)",
            self.venue_id.value, order_id, order.coin, execution_price,
            spread_pct, slippage, fee, latency_ms, fill_fraction * _HUNDRED,
        )

        return OrderResult(
            success=True,
            order_id=order_id,
            venue=self.venue_id,
            position=position,
            execution_price=execution_price,
            fee=fee,
            slippage_percent=slippage,
            latency_ms=latency_ms,
            fill_fraction=fill_fraction,
            state=lifecycle.state.value,
        )

    # --------------------------------------------------------
    # CLOSE POSITION
    # --------------------------------------------------------

    async def close_position(
        self,
        position_id: str,
        exit_price: Decimal,
        reason: str = "manual",
        volatility: Decimal = _ONE,
    ) -> CloseResult:
        exit_price = parse_price(exit_price, "exit_price")
        volatility = parse_price(volatility, "volatility")

        async with self._lock:
            position = self._ledger.find_position(position_id)
            if position is None:
                logger.warning("[%s] Position not found: %s", self.venue_id.value, position_id)
                return CloseResult.failure(
                    FailureReason.POSITION_NOT_FOUND,
                    f"Position not found: {position_id}",
                )

            lifecycle = OrderLifecycle.for_open_position(position_id)
            lifecycle.transition(OrderState.CLOSE_REQUESTED, reason)

            notional = position.size * position.leverage
            slippage = self._slippage(position.size, volatility)
            if position.direction == Direction.LONG:
                actual_exit = exit_price * (_ONE - slippage / _HUNDRED)
            else:
                actual_exit = exit_price * (_ONE + slippage / _HUNDRED)

            change = (actual_exit - position.entry_price) / position.entry_price * _HUNDRED
            pnl_percent = change * position.direction.sign
            gross_pnl = notional * pnl_percent / _HUNDRED

            exit_fee = notional * self._venue.fees.taker
            exit_slippage_cost = slippage * notional / _HUNDRED
            net_pnl = gross_pnl - exit_fee - exit_slippage_cost

            trade = Trade(
                position=position,
                exit_price=actual_exit,
                exit_slippage_percent=slippage,
                exit_fee=exit_fee,
                exit_slippage_cost=exit_slippage_cost,
                gross_pnl=gross_pnl,
                net_pnl=net_pnl,
                reason=reason,
            )
            self._ledger.close_position(trade)
            lifecycle.transition(OrderState.CLOSED)
            await self._persist()

        logger.info(
            "[%s] Closed %s %s %s (%s): entry %s exit %s, net $%.4f (%+.2f%%), balance $%.2f",
            self.venue_id.value, position_id, position.coin,
            position.direction.value, reason, position.entry_price,
            actual_exit, net_pnl, trade.pnl_percent, self._ledger.balance,
        )

        return CloseResult(
            success=True,
            trade=trade,
            net_pnl=net_pnl,
            new_balance=self._ledger.balance,
            state=lifecycle.state.value,
        )
