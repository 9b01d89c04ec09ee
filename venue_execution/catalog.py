"""
Venue Execution - Venue Catalog.

============================================================
PURPOSE
============================================================
Static, read-only table of trading venues.

Each venue carries:
- Fee schedule (maker/taker, as fractions of notional x leverage)
- Asset-support rule (explicit set or wildcard)
- Maximum leverage and priority rank (lower = preferred)
- Simulation profile for the fill simulator

Slippage and spread values are expressed in percent units
(0.05 means 0.05%).

============================================================
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional

from .types import CatalogValidationError, VenueId, to_decimal


logger = logging.getLogger(__name__)


WILDCARD = "*"


# ============================================================
# FEE SCHEDULE
# ============================================================

@dataclass(frozen=True)
class FeeSchedule:
    """Maker/taker fee rates."""

    maker: Decimal
    taker: Decimal

    def rate_for(self, is_maker: bool) -> Decimal:
        return self.maker if is_maker else self.taker


# ============================================================
# SIMULATION PROFILE
# ============================================================

@dataclass(frozen=True)
class SimulationProfile:
    """
    Parameters of the probabilistic fill model.

    Latency in milliseconds; slippage and spread in percent units.
    """

    latency_min_ms: Decimal = Decimal("50")
    latency_max_ms: Decimal = Decimal("500")

    slippage_min: Decimal = Decimal("0.01")
    slippage_max: Decimal = Decimal("0.15")

    spread_min: Decimal = Decimal("0.01")
    spread_max: Decimal = Decimal("0.10")

    reject_probability: Decimal = Decimal("0.02")
    timeout_probability: Decimal = Decimal("0.01")
    partial_fill_probability: Decimal = Decimal("0.05")

    size_impact_factor: Decimal = Decimal("0.001")
    """Extra slippage (percent) per unit of notional size."""

    size_impact_cap: Decimal = Decimal("0.5")
    """Ceiling of the size-impact term (percent)."""

    def validate(self, venue_id: str) -> None:
        """
        Check ranges and probabilities.

        Raises:
            CatalogValidationError: Inconsistent profile
        """
        ranges = (
            ("latency", self.latency_min_ms, self.latency_max_ms),
            ("slippage", self.slippage_min, self.slippage_max),
            ("spread", self.spread_min, self.spread_max),
        )
        for name, low, high in ranges:
            if low < 0:
                raise CatalogValidationError(f"{venue_id}: {name} minimum must be >= 0")
            if low > high:
                raise CatalogValidationError(
                    f"{venue_id}: {name} minimum {low} exceeds maximum {high}"
                )

        probabilities = (
            ("reject", self.reject_probability),
            ("timeout", self.timeout_probability),
            ("partial fill", self.partial_fill_probability),
        )
        for name, value in probabilities:
            if not 0 <= value <= 1:
                raise CatalogValidationError(
                    f"{venue_id}: {name} probability {value} outside [0, 1]"
                )

        if self.size_impact_factor < 0 or self.size_impact_cap < 0:
            raise CatalogValidationError(f"{venue_id}: size impact must be >= 0")


# ============================================================
# VENUE
# ============================================================

@dataclass(frozen=True)
class Venue:
    """Immutable venue definition."""

    id: VenueId
    name: str
    network: str
    fees: FeeSchedule
    assets: FrozenSet[str]
    max_leverage: Decimal
    priority: int
    profile: SimulationProfile = field(default_factory=SimulationProfile)

    @property
    def supports_all_assets(self) -> bool:
        return WILDCARD in self.assets

    def supports_asset(self, coin: str) -> bool:
        """Check the asset-support rule."""
        return self.supports_all_assets or coin.upper() in self.assets

    def supports_leverage(self, leverage: Decimal) -> bool:
        return to_decimal(leverage) <= self.max_leverage

    def expected_fee(self, size: Decimal, leverage: Decimal, is_maker: bool) -> Decimal:
        """Expected fee = notional x leverage x rate."""
        return to_decimal(size) * to_decimal(leverage) * self.fees.rate_for(is_maker)

    def validate(self) -> None:
        """
        Validate the entry.

        Raises:
            CatalogValidationError: Invalid entry
        """
        vid = self.id.value
        if self.fees.maker < 0 or self.fees.taker < 0:
            raise CatalogValidationError(f"{vid}: fees must be non-negative")
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            raise CatalogValidationError(f"{vid}: priority must be an integer")
        if self.max_leverage < 1:
            raise CatalogValidationError(f"{vid}: max leverage must be >= 1")
        if not self.assets:
            raise CatalogValidationError(f"{vid}: asset rule is empty")
        self.profile.validate(vid)

    def to_dict(self) -> Dict[str, object]:
        """Serialize for status output."""
        return {
            "id": self.id.value,
            "name": self.name,
            "network": self.network,
            "maker_fee": str(self.fees.maker),
            "taker_fee": str(self.fees.taker),
            "assets": sorted(self.assets),
            "max_leverage": str(self.max_leverage),
            "priority": self.priority,
        }


def make_venue(
    venue_id: VenueId,
    name: str,
    network: str,
    maker: str,
    taker: str,
    assets: Iterable[str],
    max_leverage: int,
    priority: int,
    **profile: str,
) -> Venue:
    """Build a Venue from plain literals."""
    return Venue(
        id=venue_id,
        name=name,
        network=network,
        fees=FeeSchedule(maker=Decimal(maker), taker=Decimal(taker)),
        assets=frozenset(a.upper() for a in assets),
        max_leverage=Decimal(max_leverage),
        priority=priority,
        profile=SimulationProfile(**{k: Decimal(v) for k, v in profile.items()}),
    )


# ============================================================
# BUILT-IN VENUES
# ============================================================

DEFAULT_VENUES: List[Venue] = [
    make_venue(
        VenueId.OBELISK, "Obelisk DEX", "multi", "0", "0.0002", [WILDCARD], 20, 0,
        slippage_min="0.005", slippage_max="0.05",
        latency_min_ms="10", latency_max_ms="100",
        reject_probability="0.005", partial_fill_probability="0.01",
    ),
    make_venue(
        VenueId.LIGHTER, "Lighter.xyz", "zksync", "0", "0.0004", ["BTC", "ETH", "ARB"], 20, 1,
        slippage_min="0.01", slippage_max="0.08",
        latency_min_ms="30", latency_max_ms="250",
        reject_probability="0.015", partial_fill_probability="0.03",
    ),
    make_venue(
        VenueId.MORPHER, "Morpher", "polygon", "0", "0", [WILDCARD], 10, 2,
        slippage_min="0.02", slippage_max="0.12",
        latency_min_ms="50", latency_max_ms="400",
        reject_probability="0.02", partial_fill_probability="0.05",
    ),
    make_venue(
        VenueId.ASTERDEX, "AsterDEX", "arbitrum", "0.0001", "0.00035", [WILDCARD], 200, 3,
        slippage_min="0.01", slippage_max="0.10",
        latency_min_ms="40", latency_max_ms="350",
        reject_probability="0.02", partial_fill_probability="0.04",
    ),
    make_venue(
        VenueId.HYPERLIQUID, "Hyperliquid", "arbitrum", "0.0001", "0.00035",
        ["BTC", "ETH", "SOL", "ARB", "OP", "DOGE", "XRP", "AVAX", "SUI", "TIA", "SEI", "INJ"], 50, 4,
        slippage_min="0.01", slippage_max="0.08",
        latency_min_ms="30", latency_max_ms="200",
        reject_probability="0.01", partial_fill_probability="0.02",
    ),
    make_venue(
        VenueId.DYDX, "dYdX v4", "dydx", "0.0002", "0.0005",
        ["BTC", "ETH", "SOL", "AVAX", "DOGE", "ARB", "OP", "LINK", "ATOM"], 20, 5,
        slippage_min="0.02", slippage_max="0.12",
        latency_min_ms="50", latency_max_ms="400",
        reject_probability="0.02", partial_fill_probability="0.05",
    ),
    make_venue(
        VenueId.GMX, "GMX", "arbitrum", "0.0005", "0.0005",
        ["BTC", "ETH", "ARB", "SOL", "LINK", "DOGE", "AVAX", "UNI", "AAVE", "OP"], 50, 6,
        slippage_min="0.02", slippage_max="0.15",
        latency_min_ms="60", latency_max_ms="500",
        reject_probability="0.03", partial_fill_probability="0.06",
    ),
    make_venue(
        VenueId.MUX, "MUX Protocol", "arbitrum", "0.0006", "0.0006",
        ["ETH", "BTC", "ARB", "AVAX", "BNB", "FTM", "LINK", "UNI"], 100, 7,
        slippage_min="0.03", slippage_max="0.18",
        latency_min_ms="80", latency_max_ms="600",
        reject_probability="0.04", partial_fill_probability="0.08",
    ),
    make_venue(
        VenueId.JUPITER, "Jupiter Perps", "solana", "0.0006", "0.0006",
        ["SOL", "BTC", "ETH", "BONK", "WIF", "JUP", "JTO", "PYTH", "RAY", "ORCA"], 100, 5,
        slippage_min="0.01", slippage_max="0.08",
        latency_min_ms="20", latency_max_ms="150",
        reject_probability="0.015", partial_fill_probability="0.03",
        spread_min="0.01", spread_max="0.05",
    ),
    make_venue(
        VenueId.SPOOKYFI, "SpookyFi Perps", "sonic", "0.0002", "0.0005",
        ["BTC", "ETH", "FTM", "SOL", "AVAX", "LINK", "BOO"], 500, 7,
        slippage_min="0.02", slippage_max="0.20",
        latency_min_ms="50", latency_max_ms="400",
        reject_probability="0.03", partial_fill_probability="0.08",
    ),
    make_venue(
        VenueId.QUICKSWAP, "QuickSwap Perps", "polygon", "0.0002", "0.0004",
        ["BTC", "ETH", "MATIC", "SOL", "AVAX", "LINK", "ARB", "OP", "DOGE"], 100, 4,
        slippage_min="0.01", slippage_max="0.12",
        latency_min_ms="30", latency_max_ms="300",
        reject_probability="0.01", partial_fill_probability="0.03",
    ),
]


# ============================================================
# VENUE CATALOG
# ============================================================

class VenueCatalog:
    """
    Read-only venue lookup.

    Loaded once; every entry is validated at construction.
    """

    def __init__(self, venues: Optional[Iterable[Venue]] = None):
        """
        Initialize catalog.

        Args:
            venues: Venue definitions (defaults to the built-in table)

        Raises:
            CatalogValidationError: Invalid or duplicate entry
        """
        entries = list(DEFAULT_VENUES if venues is None else venues)
        self._venues: Dict[VenueId, Venue] = {}

        for venue in entries:
            venue.validate()
            if venue.id in self._venues:
                raise CatalogValidationError(f"Duplicate venue: {venue.id.value}")
            self._venues[venue.id] = venue

        if not self._venues:
            raise CatalogValidationError("Catalog is empty")

        logger.debug("Venue catalog loaded: %s", ", ".join(v.value for v in self._venues))

    def get(self, venue_id: VenueId) -> Optional[Venue]:
        """Get venue by id."""
        return self._venues.get(venue_id)

    def __getitem__(self, venue_id: VenueId) -> Venue:
        if venue_id not in self._venues:
            raise KeyError(f"Venue not in catalog: {venue_id}")
        return self._venues[venue_id]

    def __contains__(self, venue_id: object) -> bool:
        return venue_id in self._venues

    def __iter__(self) -> Iterator[Venue]:
        return iter(self._venues.values())

    def __len__(self) -> int:
        return len(self._venues)

    @property
    def venue_ids(self) -> List[VenueId]:
        return list(self._venues.keys())
