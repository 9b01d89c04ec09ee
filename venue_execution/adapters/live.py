"""
Venue Execution - Live Venue Executor.

============================================================
PURPOSE
============================================================
Adapter between the aggregator and an external live
connector.

The connector (signing, transport, custody) is supplied by
configuration and never implemented here. This adapter:
- Delegates place/close to the connector
- Converts connector exceptions into CONNECTOR_ERROR results
- Mirrors confirmed fills and closes into its own ledger so
  the global conservation rule holds

============================================================
"""

import dataclasses
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from ..catalog import Venue
from ..config import LedgerConfig
from ..repository import LedgerStore
from ..state_machine import OrderLifecycle, OrderState
from ..types import (
    CloseResult,
    FailureReason,
    Order,
    OrderResult,
    Position,
    parse_price,
)
from .base import LedgerBackedExecutor


logger = logging.getLogger(__name__)


# ============================================================
# CONNECTOR INTERFACE
# ============================================================

class LiveVenueConnector(ABC):
    """
    External collaborator that talks to a real venue.

    Must return the same result shapes as the simulator.
    """

    @abstractmethod
    async def place_order(self, order: Order) -> OrderResult:
        """Submit an order to the venue."""
        pass

    @abstractmethod
    async def close_position(
        self,
        position: Position,
        exit_price: Decimal,
        reason: str,
    ) -> CloseResult:
        """
        Close a position on the venue.

        The returned CloseResult must carry the Trade on success.
        """
        pass


# ============================================================
# LIVE EXECUTOR
# ============================================================

class LiveVenueExecutor(LedgerBackedExecutor):
    """
    Venue executor backed by a live connector.
    """

    def __init__(
        self,
        venue: Venue,
        connector: LiveVenueConnector,
        initial_balance: Decimal,
        store: LedgerStore,
        record_key: str,
        ledger_config: Optional[LedgerConfig] = None,
    ):
        super().__init__(venue, initial_balance, store, record_key, ledger_config)
        self._connector = connector

    @property
    def is_live(self) -> bool:
        return True

    @property
    def connector(self) -> LiveVenueConnector:
        return self._connector

    async def place_order(self, order: Order) -> OrderResult:
        async with self._lock:
            try:
                result = await self._connector.place_order(order)
            except Exception as e:
                logger.error(
                    "[%s] Live connector failed on place_order: %s",
                    self.venue_id.value, e,
                    exc_info=True,
                )
                return OrderResult.failure(
                    FailureReason.CONNECTOR_ERROR,
                    f"Connector error: {e}",
                    venue=self.venue_id,
                )

            if not result.success:
                if result.reason == FailureReason.REJECTED:
                    self._ledger.record_reject()
                    await self._persist()
                logger.warning(
                    "[%s] Live order failed: %s %s",
                    self.venue_id.value,
                    result.reason.value if result.reason else "unknown",
                    result.message or "",
                )
                return dataclasses.replace(result, venue=self.venue_id)

            if result.position is None:
                logger.error("[%s] Live connector reported a fill without a position", self.venue_id.value)
                return OrderResult.failure(
                    FailureReason.CONNECTOR_ERROR,
                    "Fill reported without a position",
                    order_id=result.order_id,
                    venue=self.venue_id,
                )

            position = result.position
            if position.venue != self.venue_id:
                position = dataclasses.replace(position, venue=self.venue_id)

            self._ledger.open_position(position)
            if result.is_partial:
                self._ledger.record_partial_fill()
            await self._persist()

        logger.info(
            "[%s] Live fill %s: %s @ %s",
            self.venue_id.value, position.id, position.coin, position.entry_price,
        )
        return dataclasses.replace(result, venue=self.venue_id, position=position)

    async def close_position(
        self,
        position_id: str,
        exit_price: Decimal,
        reason: str = "manual",
        volatility: Decimal = Decimal("1"),
    ) -> CloseResult:
        # Live venues price their own exit; volatility only feeds the simulator
        exit_price = parse_price(exit_price, "exit_price")

        async with self._lock:
            position = self._ledger.find_position(position_id)
            if position is None:
                return CloseResult.failure(
                    FailureReason.POSITION_NOT_FOUND,
                    f"Position not found: {position_id}",
                )

            lifecycle = OrderLifecycle.for_open_position(position_id)
            lifecycle.transition(OrderState.CLOSE_REQUESTED, reason)

            try:
                result = await self._connector.close_position(
                    position, exit_price, reason
                )
            except Exception as e:
                logger.error(
                    "[%s] Live connector failed on close_position: %s",
                    self.venue_id.value, e,
                    exc_info=True,
                )
                return CloseResult.failure(FailureReason.CONNECTOR_ERROR, f"Connector error: {e}")

            if not result.success:
                return result

            if result.trade is None or result.trade.id != position_id:
                logger.error("[%s] Live close returned no matching trade", self.venue_id.value)
                return CloseResult.failure(
                    FailureReason.CONNECTOR_ERROR,
                    "Close reported without a matching trade",
                )

            trade = result.trade
            if trade.position.venue != self.venue_id:
                trade = dataclasses.replace(trade, position=position)

            self._ledger.close_position(trade)
            lifecycle.transition(OrderState.CLOSED)
            await self._persist()

        return CloseResult(
            success=True,
            trade=trade,
            net_pnl=trade.net_pnl,
            new_balance=self._ledger.balance,
            state=lifecycle.state.value,
        )

    async def reset(self) -> None:
        logger.warning(
            "[%s] Reset requested on a live venue; venue state is not touched",
            self.venue_id.value,
        )
