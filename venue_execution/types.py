"""
Venue Execution - Types.

============================================================
PURPOSE
============================================================
All type definitions for the venue execution engine.

CRITICAL PRINCIPLE:
    "Balance changes only when a position is closed."
    "A position belongs to exactly one venue ledger."

============================================================
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum
from decimal import Decimal


_ZERO = Decimal("0")
_ONE = Decimal("1")


def to_decimal(value: Any) -> Decimal:
    """Convert numbers (including floats from random draws) to Decimal."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def parse_price(value: Any, name: str = "price") -> Decimal:
    """
    Parse a positive price.

    Raises:
        OrderValidationError: Not a positive finite number
    """
    try:
        price = to_decimal(value)
    except ArithmeticError:
        raise OrderValidationError(f"{name} must be numeric, got {value!r}") from None
    if not price.is_finite() or price <= 0:
        raise OrderValidationError(f"{name} must be positive, got {value!r}")
    return price


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# ============================================================
# ENUMS
# ============================================================

class VenueId(Enum):
    """Closed enumeration of every venue in the catalog."""

    OBELISK = "obelisk"
    LIGHTER = "lighter"
    MORPHER = "morpher"
    ASTERDEX = "asterdex"
    HYPERLIQUID = "hyperliquid"
    DYDX = "dydx"
    GMX = "gmx"
    MUX = "mux"
    JUPITER = "jupiter"
    SPOOKYFI = "spookyfi"
    QUICKSWAP = "quickswap"

    @classmethod
    def parse(cls, value: Any) -> "VenueId":
        """
        Parse a venue identifier.

        Raises:
            VenueNotFoundError: Unknown identifier
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise VenueNotFoundError(f"Unknown venue: {value}") from None


class Direction(Enum):
    """Position direction."""

    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def sign(self) -> int:
        return 1 if self == Direction.LONG else -1


class OrderType(Enum):
    """Order type. Limit orders pay the maker rate, market orders the taker rate."""

    MARKET = "MARKET"
    LIMIT = "LIMIT"

    @property
    def is_maker(self) -> bool:
        return self == OrderType.LIMIT


class FailureReason(Enum):
    """Failure tags carried by OrderResult / CloseResult."""

    REJECTED = "REJECTED"
    """Venue rejected the order (simulated market outcome)."""

    TIMEOUT = "TIMEOUT"
    """Order timed out before execution (simulated market outcome)."""

    VENUE_NOT_FOUND = "VENUE_NOT_FOUND"
    """No executor for the requested venue."""

    POSITION_NOT_FOUND = "POSITION_NOT_FOUND"
    """Unknown position id."""

    UNSUPPORTED_ASSET = "UNSUPPORTED_ASSET"
    """Explicit venue does not list the coin."""

    LEVERAGE_EXCEEDED = "LEVERAGE_EXCEEDED"
    """Explicit venue does not allow the requested leverage."""

    CONNECTOR_ERROR = "CONNECTOR_ERROR"
    """Live connector raised or returned an unusable response."""


class ExecutionMode(Enum):
    """Aggregator execution mode."""

    LIVE = "LIVE"
    """Use injected live connectors where available."""

    DRY_RUN = "DRY_RUN"
    """Simulate every venue."""


# ============================================================
# ORDER
# ============================================================

@dataclass
class Order:
    """
    Order submitted to the engine.

    Validated on construction; invalid input raises OrderValidationError
    before anything is routed or mutated.
    """

    coin: str
    """Asset symbol (e.g., BTC)."""

    direction: Direction
    """LONG or SHORT."""

    size: Decimal
    """Notional size in quote currency."""

    price: Decimal
    """Reference price used by the fill simulator."""

    leverage: Decimal = _ONE
    """Leverage multiplier (>= 1)."""

    order_type: OrderType = OrderType.MARKET
    """Market or limit."""

    strategy: str = "manual"
    """Strategy tag."""

    venue: Optional[VenueId] = None
    """Explicit venue, bypasses the router."""

    volatility: Decimal = _ONE
    """Volatility factor scaling spread and slippage."""

    def __post_init__(self) -> None:
        if not self.coin or not str(self.coin).strip():
            raise OrderValidationError("coin is required")
        self.coin = str(self.coin).strip().upper()

        if not isinstance(self.direction, Direction):
            try:
                self.direction = Direction(str(self.direction).upper())
            except ValueError:
                raise OrderValidationError(f"Invalid direction: {self.direction}") from None

        if not isinstance(self.order_type, OrderType):
            try:
                self.order_type = OrderType(str(self.order_type).upper())
            except ValueError:
                raise OrderValidationError(f"Invalid order type: {self.order_type}") from None

        if self.venue is not None:
            self.venue = VenueId.parse(self.venue)

        try:
            self.size = to_decimal(self.size)
            self.price = to_decimal(self.price)
            self.leverage = to_decimal(self.leverage)
            self.volatility = to_decimal(self.volatility)
        except ArithmeticError:
            raise OrderValidationError("size, price, leverage and volatility must be numeric") from None

        if not all(v.is_finite() for v in (self.size, self.price, self.leverage, self.volatility)):
            raise OrderValidationError("size, price, leverage and volatility must be finite")

        if self.size <= 0:
            raise OrderValidationError(f"size must be positive, got {self.size}")
        if self.leverage < 1:
            raise OrderValidationError(f"leverage must be >= 1, got {self.leverage}")
        if self.price <= 0:
            raise OrderValidationError(f"price must be positive, got {self.price}")
        if self.volatility <= 0:
            raise OrderValidationError(f"volatility must be positive, got {self.volatility}")


# ============================================================
# POSITION / TRADE
# ============================================================

@dataclass
class Position:
    """Open position owned by exactly one venue ledger."""

    id: str
    venue: VenueId
    coin: str
    direction: Direction
    entry_price: Decimal
    size: Decimal
    leverage: Decimal
    strategy: str = "manual"
    opened_at: datetime = field(default_factory=utcnow)
    fees: Decimal = _ZERO
    """Entry fee."""
    slippage_cost: Decimal = _ZERO
    """Entry slippage cost in quote currency."""
    latency_ms: Decimal = _ZERO

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "venue": self.venue.value,
            "coin": self.coin,
            "direction": self.direction.value,
            "entry_price": str(self.entry_price),
            "size": str(self.size),
            "leverage": str(self.leverage),
            "strategy": self.strategy,
            "opened_at": self.opened_at.isoformat(),
            "fees": str(self.fees),
            "slippage_cost": str(self.slippage_cost),
            "latency_ms": str(self.latency_ms),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            venue=VenueId.parse(data["venue"]),
            coin=data["coin"],
            direction=Direction(data["direction"]),
            entry_price=to_decimal(data["entry_price"]),
            size=to_decimal(data["size"]),
            leverage=to_decimal(data["leverage"]),
            strategy=data.get("strategy", "manual"),
            opened_at=_parse_ts(data["opened_at"]),
            fees=to_decimal(data.get("fees", "0")),
            slippage_cost=to_decimal(data.get("slippage_cost", "0")),
            latency_ms=to_decimal(data.get("latency_ms", "0")),
        )


@dataclass
class Trade:
    """Closed form of a Position."""

    position: Position
    exit_price: Decimal
    exit_slippage_percent: Decimal
    exit_fee: Decimal
    exit_slippage_cost: Decimal
    gross_pnl: Decimal
    net_pnl: Decimal
    reason: str = "manual"
    closed_at: datetime = field(default_factory=utcnow)

    @property
    def id(self) -> str:
        return self.position.id

    @property
    def venue(self) -> VenueId:
        return self.position.venue

    @property
    def is_win(self) -> bool:
        return self.net_pnl > 0

    @property
    def pnl_percent(self) -> Decimal:
        """Net PnL as a percentage of notional size."""
        return self.net_pnl / self.position.size * 100

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        data = self.position.to_dict()
        data.update({
            "exit_price": str(self.exit_price),
            "exit_slippage_percent": str(self.exit_slippage_percent),
            "exit_fee": str(self.exit_fee),
            "exit_slippage_cost": str(self.exit_slippage_cost),
            "gross_pnl": str(self.gross_pnl),
            "net_pnl": str(self.net_pnl),
            "reason": self.reason,
            "closed_at": self.closed_at.isoformat(),
            "is_win": self.is_win,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trade":
        """Deserialize from dictionary."""
        return cls(
            position=Position.from_dict(data),
            exit_price=to_decimal(data["exit_price"]),
            exit_slippage_percent=to_decimal(data.get("exit_slippage_percent", "0")),
            exit_fee=to_decimal(data["exit_fee"]),
            exit_slippage_cost=to_decimal(data.get("exit_slippage_cost", "0")),
            gross_pnl=to_decimal(data["gross_pnl"]),
            net_pnl=to_decimal(data["net_pnl"]),
            reason=data.get("reason", "manual"),
            closed_at=_parse_ts(data["closed_at"]),
        )


# ============================================================
# RESULTS
# ============================================================

@dataclass
class OrderResult:
    """
    Outcome of PlaceOrder.

    Exactly one of: filled (success=True, position set) or a failure tag.
    """

    success: bool
    order_id: Optional[str] = None
    venue: Optional[VenueId] = None
    position: Optional[Position] = None
    execution_price: Optional[Decimal] = None
    fee: Decimal = _ZERO
    slippage_percent: Decimal = _ZERO
    latency_ms: Decimal = _ZERO
    fill_fraction: Decimal = _ZERO
    reason: Optional[FailureReason] = None
    message: Optional[str] = None
    state: Optional[str] = None
    """Final lifecycle state name."""

    @property
    def is_partial(self) -> bool:
        return self.success and self.fill_fraction < 1

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        message: Optional[str] = None,
        order_id: Optional[str] = None,
        venue: Optional[VenueId] = None,
        state: Optional[str] = None,
    ) -> "OrderResult":
        return cls(
            success=False,
            order_id=order_id,
            venue=venue,
            reason=reason,
            message=message,
            state=state,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "success": self.success,
            "order_id": self.order_id,
            "venue": self.venue.value if self.venue else None,
            "position": self.position.to_dict() if self.position else None,
            "execution_price": str(self.execution_price) if self.execution_price is not None else None,
            "fee": str(self.fee),
            "slippage_percent": str(self.slippage_percent),
            "latency_ms": str(self.latency_ms),
            "fill_fraction": str(self.fill_fraction),
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "state": self.state,
        }


@dataclass
class CloseResult:
    """Outcome of ClosePosition."""

    success: bool
    trade: Optional[Trade] = None
    net_pnl: Decimal = _ZERO
    new_balance: Optional[Decimal] = None
    reason: Optional[FailureReason] = None
    message: Optional[str] = None
    state: Optional[str] = None
    """Final lifecycle state (CLOSED on success)."""

    @classmethod
    def failure(cls, reason: FailureReason, message: Optional[str] = None) -> "CloseResult":
        return cls(success=False, reason=reason, message=message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "success": self.success,
            "trade": self.trade.to_dict() if self.trade else None,
            "net_pnl": str(self.net_pnl),
            "new_balance": str(self.new_balance) if self.new_balance is not None else None,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "state": self.state,
        }


# ============================================================
# EXCEPTIONS
# ============================================================

class VenueExecutionError(Exception):
    """Base exception for the venue execution engine."""
    pass


class OrderValidationError(VenueExecutionError):
    """Order input failed validation."""
    pass


class CatalogValidationError(VenueExecutionError):
    """Venue catalog entry is inconsistent."""
    pass


class VenueNotFoundError(VenueExecutionError):
    """Unknown venue or no executor registered for it."""
    pass


class PersistenceError(VenueExecutionError):
    """Ledger store read/write failed."""
    pass
