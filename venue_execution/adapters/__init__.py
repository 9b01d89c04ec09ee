"""
Venue Execution - Adapters Package.

============================================================
PURPOSE
============================================================
Venue executor implementations.

AVAILABLE EXECUTORS:
- SimulatedVenueExecutor: Probabilistic fill model (dry run)
- LiveVenueExecutor: Wraps an injected LiveVenueConnector

UTILITIES:
- ExecutorFactory: Resolves live vs simulated per venue
- ExecutorRegistry: Typed venue id -> executor mapping

============================================================
"""

from .base import LedgerBackedExecutor, VenueExecutor
from .factory import ExecutorFactory, ExecutorRegistry
from .live import LiveVenueConnector, LiveVenueExecutor
from .simulated import SimulatedVenueExecutor


__all__ = [
    "VenueExecutor",
    "LedgerBackedExecutor",
    "SimulatedVenueExecutor",
    "LiveVenueConnector",
    "LiveVenueExecutor",
    "ExecutorFactory",
    "ExecutorRegistry",
]
