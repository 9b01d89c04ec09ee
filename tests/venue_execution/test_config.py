"""
Configuration Tests.

============================================================
PURPOSE
============================================================
Tests for AggregatorConfig defaults, validation and
environment loading.

============================================================
"""

from decimal import Decimal

import pytest

from venue_execution.config import ENV_PREFIX, AggregatorConfig, LedgerConfig
from venue_execution.types import ExecutionMode, VenueId


ENV_NAMES = [
    "MODE", "INITIAL_BALANCE", "AUTO_ROUTE", "PREFERRED_VENUE",
    "FALLBACK_VENUE", "ROUTING_LOG_LIMIT", "TRADE_HISTORY_LIMIT", "DATABASE_URL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(f"{ENV_PREFIX}{name}", raising=False)
    return monkeypatch


class TestAggregatorConfig:
    """Tests for AggregatorConfig."""

    def test_defaults(self):
        config = AggregatorConfig()

        assert config.mode == ExecutionMode.DRY_RUN
        assert config.initial_balance == Decimal("100")
        assert config.auto_route
        assert config.fallback_venue == VenueId.GMX
        assert config.ledger.trade_history_limit == 100
        assert config.venue_record_key(VenueId.DYDX) == "venue:dydx"

    def test_auto_route_off_requires_preferred_venue(self):
        with pytest.raises(ValueError, match="preferred_venue"):
            AggregatorConfig(auto_route=False)

    def test_non_positive_balance_rejected(self):
        with pytest.raises(ValueError):
            AggregatorConfig(initial_balance=Decimal("0"))

    def test_history_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            LedgerConfig(trade_history_limit=0)

    def test_with_overrides_keeps_original(self):
        config = AggregatorConfig()

        changed = config.with_overrides(mode=ExecutionMode.LIVE)

        assert changed.mode == ExecutionMode.LIVE
        assert config.mode == ExecutionMode.DRY_RUN

    def test_from_env(self, clean_env):
        clean_env.setenv(f"{ENV_PREFIX}MODE", "live")
        clean_env.setenv(f"{ENV_PREFIX}INITIAL_BALANCE", "250")
        clean_env.setenv(f"{ENV_PREFIX}AUTO_ROUTE", "false")
        clean_env.setenv(f"{ENV_PREFIX}PREFERRED_VENUE", "HYPERLIQUID")
        clean_env.setenv(f"{ENV_PREFIX}TRADE_HISTORY_LIMIT", "20")

        config = AggregatorConfig.from_env()

        assert config.mode == ExecutionMode.LIVE
        assert config.initial_balance == Decimal("250")
        assert not config.auto_route
        assert config.preferred_venue == VenueId.HYPERLIQUID
        assert config.ledger.trade_history_limit == 20

    def test_from_env_unset_keeps_defaults(self, clean_env):
        assert AggregatorConfig.from_env() == AggregatorConfig()
