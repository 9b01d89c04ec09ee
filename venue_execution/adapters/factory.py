"""
Venue Executor Factory.

============================================================
PURPOSE
============================================================
Resolves one executor per catalog venue.

RESOLUTION (per venue):
- mode LIVE and a connector injected -> LiveVenueExecutor
- otherwise                          -> SimulatedVenueExecutor

A missing live connector is a normal configuration branch,
not an error.

============================================================
USAGE
============================================================
```python
factory = ExecutorFactory(catalog, config, store)
registry = factory.create_registry()

executor = registry.get(VenueId.GMX)
result = await executor.place_order(order)
```

============================================================
"""

import logging
import random
from typing import Dict, Iterator, List, Mapping, Optional

from ..catalog import Venue, VenueCatalog
from ..config import AggregatorConfig
from ..repository import LedgerStore
from ..types import ExecutionMode, VenueId, VenueNotFoundError
from .base import VenueExecutor
from .live import LiveVenueConnector, LiveVenueExecutor
from .simulated import SimulatedVenueExecutor


logger = logging.getLogger(__name__)


# ============================================================
# EXECUTOR REGISTRY
# ============================================================

class ExecutorRegistry:
    """
    Typed mapping of venue id to executor.
    """

    def __init__(self, executors: Optional[Mapping[VenueId, VenueExecutor]] = None):
        self._executors: Dict[VenueId, VenueExecutor] = {}
        for executor in (executors or {}).values():
            self.add(executor)

    def add(self, executor: VenueExecutor) -> None:
        """Register an executor under its venue id."""
        self._executors[executor.venue_id] = executor

    def get(self, venue_id: VenueId) -> VenueExecutor:
        """
        Get executor by venue id.

        Raises:
            VenueNotFoundError: No executor for the venue
        """
        executor = self._executors.get(venue_id)
        if executor is None:
            raise VenueNotFoundError(f"No executor for venue: {getattr(venue_id, 'value', venue_id)}")
        return executor

    def __contains__(self, venue_id: object) -> bool:
        return venue_id in self._executors

    def __iter__(self) -> Iterator[VenueExecutor]:
        return iter(self._executors.values())

    def __len__(self) -> int:
        return len(self._executors)

    @property
    def venue_ids(self) -> List[VenueId]:
        return list(self._executors.keys())

    @property
    def live_venues(self) -> List[VenueId]:
        return [v for v, e in self._executors.items() if e.is_live]


# ============================================================
# EXECUTOR FACTORY
# ============================================================

class ExecutorFactory:
    """
    Factory for venue executors.
    """

    def __init__(
        self,
        catalog: VenueCatalog,
        config: AggregatorConfig,
        store: LedgerStore,
        live_connectors: Optional[Mapping[VenueId, LiveVenueConnector]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize factory.

        Args:
            catalog: Venue catalog
            config: Aggregator configuration
            store: Ledger store shared by all executors
            live_connectors: Injected connectors by venue (LIVE mode only)
            rng: Random source shared by simulated executors
        """
        self._catalog = catalog
        self._config = config
        self._store = store
        self._live_connectors = dict(live_connectors or {})
        self._rng = rng

        unknown = [v for v in self._live_connectors if v not in catalog]
        if unknown:
            raise VenueNotFoundError(
                f"Live connectors for unknown venues: {', '.join(v.value for v in unknown)}"
            )

    def create(self, venue: Venue) -> VenueExecutor:
        """
        Create the executor for one venue.

        Args:
            venue: Catalog entry

        Returns:
            LiveVenueExecutor or SimulatedVenueExecutor
        """
        record_key = self._config.venue_record_key(venue.id)
        connector = self._live_connectors.get(venue.id)

        if self._config.mode == ExecutionMode.LIVE and connector is not None:
            logger.info("Venue %s: live connector %s", venue.id.value, type(connector).__name__)
            return LiveVenueExecutor(
                venue=venue,
                connector=connector,
                initial_balance=self._config.initial_balance,
                store=self._store,
                record_key=record_key,
                ledger_config=self._config.ledger,
            )

        if self._config.mode == ExecutionMode.LIVE:
            logger.info("Venue %s: no live connector, using simulator", venue.id.value)

        return SimulatedVenueExecutor(
            venue=venue,
            initial_balance=self._config.initial_balance,
            store=self._store,
            record_key=record_key,
            ledger_config=self._config.ledger,
            rng=self._rng,
        )

    def create_registry(self) -> ExecutorRegistry:
        """Create executors for every catalog venue."""
        registry = ExecutorRegistry()
        for venue in self._catalog:
            registry.add(self.create(venue))
        return registry
