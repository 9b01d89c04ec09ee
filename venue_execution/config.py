"""
Venue Execution - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the venue execution engine.

CRITICAL CONSTRAINTS:
- Configuration is immutable once built
- Passed explicitly into each constructor
- No process-wide mutable configuration

============================================================
"""

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional

from dotenv import load_dotenv

from .types import ExecutionMode, VenueId


ENV_PREFIX = "VENUE_EXEC_"


# ============================================================
# LEDGER CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class LedgerConfig:
    """
    Per-venue ledger configuration.
    """

    trade_history_limit: int = 100
    """Maximum closed trades retained (oldest evicted first)."""

    def __post_init__(self) -> None:
        if self.trade_history_limit < 1:
            raise ValueError("trade_history_limit must be at least 1")


# ============================================================
# AGGREGATOR CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class AggregatorConfig:
    """
    Master configuration for the multi-venue aggregator.
    """

    mode: ExecutionMode = ExecutionMode.DRY_RUN
    """LIVE uses injected connectors where supplied."""

    initial_balance: Decimal = Decimal("100")
    """Starting balance of every venue ledger and of the global state."""

    auto_route: bool = True
    """Route orders without an explicit venue through the router."""

    preferred_venue: Optional[VenueId] = None
    """Venue used when auto-routing is off and the order names none."""

    fallback_venue: VenueId = VenueId.GMX
    """Venue chosen when no candidate passes the router filters."""

    routing_log_limit: int = 500
    """Maximum routing decisions retained."""

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    """Per-venue ledger configuration."""

    database_url: str = "sqlite+aiosqlite:///venue_execution.db"
    """SQLAlchemy async database URL for ledger persistence."""

    global_record_key: str = "global"
    """Store key of the aggregator's global record."""

    def __post_init__(self) -> None:
        if self.initial_balance <= 0:
            raise ValueError("initial_balance must be positive")
        if self.routing_log_limit < 1:
            raise ValueError("routing_log_limit must be at least 1")
        if not self.auto_route and self.preferred_venue is None:
            raise ValueError("preferred_venue is required when auto_route is disabled")

    def venue_record_key(self, venue_id: VenueId) -> str:
        """Store key of one venue ledger."""
        return f"venue:{venue_id.value}"

    def with_overrides(self, **changes) -> "AggregatorConfig":
        """Copy with selected fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "AggregatorConfig":
        """
        Create config from environment variables.

        Reads a `.env` file if present. Unset variables keep defaults.

        Returns:
            AggregatorConfig
        """
        load_dotenv()

        def env(name: str) -> Optional[str]:
            return os.environ.get(f"{ENV_PREFIX}{name}")

        defaults = cls()
        preferred = env("PREFERRED_VENUE")
        auto_route = env("AUTO_ROUTE")
        history = env("TRADE_HISTORY_LIMIT")

        return cls(
            mode=ExecutionMode(env("MODE").upper()) if env("MODE") else defaults.mode,
            initial_balance=Decimal(env("INITIAL_BALANCE")) if env("INITIAL_BALANCE") else defaults.initial_balance,
            auto_route=auto_route.lower() in ("1", "true", "yes") if auto_route else defaults.auto_route,
            preferred_venue=VenueId.parse(preferred) if preferred else None,
            fallback_venue=VenueId.parse(env("FALLBACK_VENUE")) if env("FALLBACK_VENUE") else defaults.fallback_venue,
            routing_log_limit=int(env("ROUTING_LOG_LIMIT")) if env("ROUTING_LOG_LIMIT") else defaults.routing_log_limit,
            ledger=LedgerConfig(trade_history_limit=int(history)) if history else defaults.ledger,
            database_url=env("DATABASE_URL") or defaults.database_url,
        )

    @classmethod
    def for_testing(cls) -> "AggregatorConfig":
        """Get configuration for testing."""
        return cls(
            mode=ExecutionMode.DRY_RUN,
            database_url="sqlite+aiosqlite:///:memory:",
        )
