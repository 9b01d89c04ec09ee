"""
Shared fixtures for venue execution tests.

Deterministic venues: zero latency, zero spread, zero slippage
and zero probabilities unless a test overrides them.
"""

import random
from decimal import Decimal

import pytest

from venue_execution.catalog import VenueCatalog, make_venue
from venue_execution.config import AggregatorConfig
from venue_execution.repository import InMemoryLedgerStore
from venue_execution.types import VenueId


FLAT_PROFILE = {
    "latency_min_ms": "0",
    "latency_max_ms": "0",
    "slippage_min": "0",
    "slippage_max": "0",
    "spread_min": "0",
    "spread_max": "0",
    "reject_probability": "0",
    "timeout_probability": "0",
    "partial_fill_probability": "0",
    "size_impact_factor": "0",
}


def flat_venue(
    venue_id=VenueId.GMX,
    maker="0.0005",
    taker="0.0005",
    assets=("BTC", "ETH"),
    max_leverage=50,
    priority=0,
    **overrides,
):
    """Venue with a deterministic simulation profile."""
    profile = dict(FLAT_PROFILE)
    profile.update(overrides)
    return make_venue(
        venue_id, venue_id.value.title(), "test", maker, taker,
        list(assets), max_leverage, priority, **profile,
    )


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def flat_catalog():
    """Three deterministic venues with distinct fees."""
    return VenueCatalog([
        flat_venue(VenueId.GMX, taker="0.0005", priority=2),
        flat_venue(VenueId.HYPERLIQUID, maker="0.0001", taker="0.00035", assets=("BTC", "ETH", "SOL"), priority=1),
        flat_venue(VenueId.DYDX, maker="0.0002", taker="0.0004", assets=("*",), max_leverage=20, priority=0),
    ])


@pytest.fixture
def test_config():
    return AggregatorConfig.for_testing().with_overrides(initial_balance=Decimal("100"))


@pytest.fixture
def venue_factory():
    """Builder for deterministic venues."""
    return flat_venue


@pytest.fixture
def sleep():
    return no_sleep
