"""
Venue Execution Package.

============================================================
PURPOSE
============================================================
Trade-execution simulation and multi-venue routing.

CRITICAL PRINCIPLE:
    "Balance changes only when a position is closed."
    "A position belongs to exactly one venue ledger."

AUTHORITY BOUNDARIES:
    CAN:
        - Simulate fills (latency, spread, slippage, partials)
        - Route orders to the cheapest eligible venue
        - Reconcile venue ledgers into one global view
        - Persist and restore ledgers

    MUST NOT:
        - Sign, custody or transmit real orders
          (live connectors are injected, never built here)
        - Retry failed orders

============================================================
MODULES
============================================================
- types: Orders, positions, trades, results
- errors: Failure taxonomy
- config: Immutable configuration
- catalog: Venue table
- ledger: Venue ledgers and global state
- state_machine: Order lifecycle
- router: Cheapest-venue selection
- adapters: Simulated and live executors, factory
- aggregator: Multi-venue entry point
- models / repository: Ledger persistence
- cli: Command-line interface

============================================================
"""

# ============================================================
# TYPES
# ============================================================
from .types import (
    # Enums
    VenueId,
    Direction,
    OrderType,
    FailureReason,
    ExecutionMode,
    # Dataclasses
    Order,
    Position,
    Trade,
    OrderResult,
    CloseResult,
    # Exceptions
    VenueExecutionError,
    OrderValidationError,
    CatalogValidationError,
    VenueNotFoundError,
    PersistenceError,
)

# ============================================================
# CONFIG
# ============================================================
from .config import AggregatorConfig, LedgerConfig

# ============================================================
# ERRORS
# ============================================================
from .errors import (
    ErrorCategory,
    ErrorCodeInfo,
    get_error_info,
    categorize,
    is_resubmittable,
)

# ============================================================
# CATALOG / LEDGER / ROUTER
# ============================================================
from .catalog import FeeSchedule, SimulationProfile, Venue, VenueCatalog, DEFAULT_VENUES
from .ledger import Ledger, LedgerStats, GlobalState, VenueStats, DrawdownTracker
from .router import VenueRouter, RoutingDecision, RoutingCandidate, RoutingLog
from .state_machine import OrderState, OrderLifecycle, InvalidTransitionError

# ============================================================
# PERSISTENCE
# ============================================================
from .repository import (
    LedgerRepository,
    LedgerStore,
    SqlLedgerStore,
    InMemoryLedgerStore,
    create_store,
)

# ============================================================
# EXECUTORS / AGGREGATOR
# ============================================================
from .adapters import (
    VenueExecutor,
    SimulatedVenueExecutor,
    LiveVenueConnector,
    LiveVenueExecutor,
    ExecutorFactory,
    ExecutorRegistry,
)
from .aggregator import VenueAggregator
from .logging_utils import setup_logging


__all__ = [
    # Types
    "VenueId",
    "Direction",
    "OrderType",
    "FailureReason",
    "ExecutionMode",
    "Order",
    "Position",
    "Trade",
    "OrderResult",
    "CloseResult",
    "VenueExecutionError",
    "OrderValidationError",
    "CatalogValidationError",
    "VenueNotFoundError",
    "PersistenceError",
    # Config
    "AggregatorConfig",
    "LedgerConfig",
    # Errors
    "ErrorCategory",
    "ErrorCodeInfo",
    "get_error_info",
    "categorize",
    "is_resubmittable",
    # Catalog / ledger / router
    "FeeSchedule",
    "SimulationProfile",
    "Venue",
    "VenueCatalog",
    "DEFAULT_VENUES",
    "Ledger",
    "LedgerStats",
    "GlobalState",
    "VenueStats",
    "DrawdownTracker",
    "VenueRouter",
    "RoutingDecision",
    "RoutingCandidate",
    "RoutingLog",
    "OrderState",
    "OrderLifecycle",
    "InvalidTransitionError",
    # Persistence
    "LedgerRepository",
    "LedgerStore",
    "SqlLedgerStore",
    "InMemoryLedgerStore",
    "create_store",
    # Executors / aggregator
    "VenueExecutor",
    "SimulatedVenueExecutor",
    "LiveVenueConnector",
    "LiveVenueExecutor",
    "ExecutorFactory",
    "ExecutorRegistry",
    "VenueAggregator",
    "setup_logging",
]
