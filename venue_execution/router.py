"""
Venue Execution - Router.

============================================================
PURPOSE
============================================================
Selects the cheapest eligible venue for an order.

SELECTION RULE:
1. Keep venues whose asset rule admits the coin and whose
   max leverage >= requested leverage
2. Expected fee = size x leverage x (maker rate for limit
   orders, taker rate otherwise)
3. Sort ascending by expected fee, then by priority rank
4. No candidate -> designated fallback venue

The only side effect is appending the decision to a bounded
routing log.

============================================================
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Deque, Dict, Iterable, List, Optional

from .catalog import VenueCatalog
from .types import Order, VenueId, to_decimal, utcnow


logger = logging.getLogger(__name__)


# ============================================================
# ROUTING TYPES
# ============================================================

@dataclass(frozen=True)
class RoutingCandidate:
    """Admissible venue with its expected cost."""

    venue_id: VenueId
    fee_rate: Decimal
    expected_fee: Decimal
    priority: int

    @property
    def sort_key(self):
        return (self.expected_fee, self.priority)


@dataclass
class RoutingDecision:
    """Recorded router outcome."""

    venue_id: VenueId
    coin: str
    size: Decimal
    leverage: Decimal
    is_maker: bool
    fee_rate: Optional[Decimal] = None
    expected_fee: Optional[Decimal] = None
    alternatives: List[VenueId] = field(default_factory=list)
    fallback: bool = False
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "venue": self.venue_id.value,
            "coin": self.coin,
            "size": str(self.size),
            "leverage": str(self.leverage),
            "is_maker": self.is_maker,
            "fee_rate": str(self.fee_rate) if self.fee_rate is not None else None,
            "expected_fee": str(self.expected_fee) if self.expected_fee is not None else None,
            "alternatives": [v.value for v in self.alternatives],
            "fallback": self.fallback,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutingDecision":
        """Deserialize from dictionary."""
        return cls(
            venue_id=VenueId.parse(data["venue"]),
            coin=data["coin"],
            size=to_decimal(data["size"]),
            leverage=to_decimal(data["leverage"]),
            is_maker=bool(data.get("is_maker", False)),
            fee_rate=to_decimal(data["fee_rate"]) if data.get("fee_rate") is not None else None,
            expected_fee=to_decimal(data["expected_fee"]) if data.get("expected_fee") is not None else None,
            alternatives=[VenueId.parse(v) for v in data.get("alternatives", [])],
            fallback=bool(data.get("fallback", False)),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


class RoutingLog:
    """Bounded, ordered log of routing decisions (oldest evicted first)."""

    def __init__(self, limit: int = 500, entries: Optional[Iterable[RoutingDecision]] = None):
        self._entries: Deque[RoutingDecision] = deque(entries or (), maxlen=limit)

    @property
    def limit(self) -> int:
        return self._entries.maxlen

    def append(self, decision: RoutingDecision) -> None:
        self._entries.append(decision)

    def tail(self, count: int = 10) -> List[RoutingDecision]:
        """Most recent decisions, oldest first."""
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def clear(self) -> None:
        self._entries.clear()

    def replace(self, entries: Iterable[RoutingDecision]) -> None:
        """Replace contents in place (keeps shared references valid)."""
        self._entries.clear()
        self._entries.extend(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def to_list(self) -> List[Dict[str, Any]]:
        return [d.to_dict() for d in self._entries]


# ============================================================
# VENUE ROUTER
# ============================================================

class VenueRouter:
    """
    Pure venue selection over a fixed catalog.
    """

    def __init__(
        self,
        catalog: VenueCatalog,
        fallback_venue: VenueId = VenueId.GMX,
        log: Optional[RoutingLog] = None,
    ):
        """
        Initialize router.

        Args:
            catalog: Venue catalog
            fallback_venue: Venue used when nothing is admissible
            log: Shared routing log (a private one is created if omitted)
        """
        self._catalog = catalog
        self._fallback_venue = fallback_venue
        self._log = log if log is not None else RoutingLog()

    @property
    def log(self) -> RoutingLog:
        return self._log

    def candidates(self, order: Order) -> List[RoutingCandidate]:
        """
        Admissible venues for an order, best first.

        Args:
            order: Order to route

        Returns:
            Candidates sorted by (expected fee, priority)
        """
        is_maker = order.order_type.is_maker
        result = []

        for venue in self._catalog:
            if not venue.supports_asset(order.coin):
                continue
            if not venue.supports_leverage(order.leverage):
                continue

            result.append(RoutingCandidate(
                venue_id=venue.id,
                fee_rate=venue.fees.rate_for(is_maker),
                expected_fee=venue.expected_fee(order.size, order.leverage, is_maker),
                priority=venue.priority,
            ))

        result.sort(key=lambda c: c.sort_key)
        return result

    def route(self, order: Order) -> RoutingDecision:
        """
        Select the venue for an order and record the decision.

        Args:
            order: Order to route

        Returns:
            RoutingDecision
        """
        is_maker = order.order_type.is_maker
        candidates = self.candidates(order)

        if not candidates:
            decision = RoutingDecision(
                venue_id=self._fallback_venue,
                coin=order.coin,
                size=order.size,
                leverage=order.leverage,
                is_maker=is_maker,
                fallback=True,
            )
            logger.warning(
                "No venue supports %s x%s, falling back to %s",
                order.coin, order.leverage, self._fallback_venue.value,
            )
            self._log.append(decision)
            return decision

        best = candidates[0]
        decision = RoutingDecision(
            venue_id=best.venue_id,
            coin=order.coin,
            size=order.size,
            leverage=order.leverage,
            is_maker=is_maker,
            fee_rate=best.fee_rate,
            expected_fee=best.expected_fee,
            alternatives=[c.venue_id for c in candidates[1:]],
        )

        savings = candidates[-1].expected_fee - best.expected_fee
        logger.info(
            "Routed %s %s %s x%s -> %s (rate=%s fee=%s, savings vs worst=%s, %d alternatives)",
            order.coin, order.order_type.value, order.size, order.leverage,
            best.venue_id.value, best.fee_rate, best.expected_fee, savings,
            len(candidates) - 1,
        )

        self._log.append(decision)
        return decision
