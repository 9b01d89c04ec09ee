"""
Venue Execution - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the venue execution engine.

- Lists venues and previews routing
- Places and closes orders through the aggregator
- Shows and resets ledgers
- Loads configuration from environment, then CLI overrides

============================================================
USAGE
============================================================
python -m venue_execution venues
python -m venue_execution route --coin BTC --size 1000 --leverage 5
python -m venue_execution place --coin ETH --direction LONG --size 50 --price 3000
python -m venue_execution close GMX-1700000000000-ab12cd34 --price 3100
python -m venue_execution status
python -m venue_execution reset --yes

============================================================
"""

import argparse
import asyncio
import json
import logging
import random
import sys
from typing import List, Optional

from .aggregator import VenueAggregator
from .catalog import VenueCatalog
from .config import AggregatorConfig
from .logging_utils import setup_logging
from .repository import InMemoryLedgerStore, create_store
from .router import VenueRouter
from .types import (
    Direction,
    ExecutionMode,
    Order,
    OrderType,
    OrderValidationError,
    VenueExecutionError,
    VenueId,
)


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def _add_order_arguments(parser: argparse.ArgumentParser, with_price: bool) -> None:
    parser.add_argument("--coin", required=True, help="Asset symbol (e.g. BTC)")
    parser.add_argument("--size", required=True, help="Notional size in quote currency")
    parser.add_argument("--leverage", default="1", help="Leverage multiplier (default: 1)")
    parser.add_argument(
        "--type",
        dest="order_type",
        choices=[t.value for t in OrderType],
        default=OrderType.MARKET.value,
        help="Order type (default: MARKET)",
    )
    if with_price:
        parser.add_argument("--price", required=True, help="Reference price")
        parser.add_argument(
            "--direction",
            choices=[d.value for d in Direction],
            default=Direction.LONG.value,
            help="Direction (default: LONG)",
        )
        parser.add_argument(
            "--venue",
            choices=[v.value for v in VenueId],
            help="Explicit venue (bypasses the router)",
        )
        parser.add_argument("--strategy", default="manual", help="Strategy tag")
        parser.add_argument("--volatility", default="1", help="Volatility factor (default: 1)")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="venue-execution",
        description="Multi-venue execution simulator and router",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  venues    - List the venue catalog
  route     - Preview routing candidates for an order
  place     - Place an order through the aggregator
  close     - Close an open position
  status    - Show global and per-venue status
  reset     - Reset every ledger (sandbox only)

Examples:
  %(prog)s route --coin BTC --size 1000 --leverage 5
  %(prog)s place --coin SOL --size 20 --price 150 --direction SHORT
  %(prog)s --log-format json status --json
        """
    )

    # --------------------------------------------------------
    # Engine Options
    # --------------------------------------------------------
    engine_group = parser.add_argument_group("Engine Options")

    engine_group.add_argument(
        "--mode", "-m",
        choices=[m.value for m in ExecutionMode],
        help="Execution mode (default: from environment, else DRY_RUN)",
    )

    engine_group.add_argument(
        "--database-url",
        metavar="URL",
        help="SQLAlchemy async URL for ledger persistence",
    )

    engine_group.add_argument(
        "--in-memory",
        action="store_true",
        help="Keep ledgers in memory only",
    )

    engine_group.add_argument(
        "--seed",
        type=int,
        help="Seed for the fill simulator",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        choices=["json", "text"],
        default="text",
        help="Logging format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    # --------------------------------------------------------
    # Commands
    # --------------------------------------------------------
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("venues", help="List the venue catalog")

    route = commands.add_parser("route", help="Preview routing candidates")
    _add_order_arguments(route, with_price=False)

    place = commands.add_parser("place", help="Place an order")
    _add_order_arguments(place, with_price=True)

    close = commands.add_parser("close", help="Close a position")
    close.add_argument("position_id", help="Position identifier")
    close.add_argument("--price", required=True, help="Exit reference price")
    close.add_argument("--reason", default="manual", help="Close reason tag")
    close.add_argument("--volatility", default="1", help="Volatility factor for exit slippage (default: 1)")

    status = commands.add_parser("status", help="Show status")
    status.add_argument("--json", action="store_true", help="Print raw JSON")

    reset = commands.add_parser("reset", help="Reset every ledger")
    reset.add_argument("--yes", action="store_true", help="Confirm the reset")

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> AggregatorConfig:
    """
    Build aggregator configuration: environment first, CLI overrides.

    Args:
        args: Parsed arguments

    Returns:
        AggregatorConfig instance
    """
    config = AggregatorConfig.from_env()
    overrides = {}
    if args.mode:
        overrides["mode"] = ExecutionMode(args.mode)
    if args.database_url:
        overrides["database_url"] = args.database_url
    return config.with_overrides(**overrides) if overrides else config


def build_order(args: argparse.Namespace, price: str = "1") -> Order:
    """Build an order from CLI arguments."""
    return Order(
        coin=args.coin,
        direction=getattr(args, "direction", Direction.LONG.value),
        size=args.size,
        price=getattr(args, "price", price),
        leverage=args.leverage,
        order_type=args.order_type,
        strategy=getattr(args, "strategy", "manual"),
        venue=getattr(args, "venue", None),
        volatility=getattr(args, "volatility", "1"),
    )


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


# ============================================================
# COMMANDS
# ============================================================

def show_venues(catalog: VenueCatalog) -> None:
    """Print the venue catalog."""
    print(f"\n{'VENUE':<12}{'NAME':<18}{'NETWORK':<10}{'MAKER':>8}{'TAKER':>9}{'LEV':>6}{'PRIO':>6}  ASSETS")
    print("=" * 90)
    for venue in sorted(catalog, key=lambda v: v.priority):
        assets = "all" if venue.supports_all_assets else ",".join(sorted(venue.assets))
        print(
            f"{venue.id.value:<12}{venue.name:<18}{venue.network:<10}"
            f"{venue.fees.maker * 100:>7.3f}%{venue.fees.taker * 100:>8.3f}%"
            f"{venue.max_leverage:>6}{venue.priority:>6}  {assets}"
        )
    print()


def show_route(catalog: VenueCatalog, order: Order) -> None:
    """Print routing candidates without recording a decision."""
    router = VenueRouter(catalog)
    candidates = router.candidates(order)

    print(f"\nRouting {order.coin} ${order.size} x{order.leverage} ({order.order_type.value})")
    print("=" * 60)
    if not candidates:
        print("  No eligible venue, fallback would be used")
    for rank, candidate in enumerate(candidates, 1):
        marker = "->" if rank == 1 else "  "
        print(
            f"{marker} {rank:2d}. {candidate.venue_id.value:<12} "
            f"rate {candidate.fee_rate * 100:.3f}%  fee ${candidate.expected_fee:.4f}  "
            f"prio {candidate.priority}"
        )
    print()


async def run_command(args: argparse.Namespace, config: AggregatorConfig) -> int:
    """
    Run an aggregator-backed command.

    Args:
        args: Parsed arguments
        config: Aggregator configuration

    Returns:
        Exit code
    """
    store = InMemoryLedgerStore() if args.in_memory else create_store(config.database_url)
    rng = random.Random(args.seed) if args.seed is not None else None

    async with VenueAggregator(config=config, store=store, rng=rng) as aggregator:
        if args.command == "place":
            result = await aggregator.place_order(build_order(args))
            _print_json(result.to_dict())
            return 0 if result.success else 1

        if args.command == "close":
            result = await aggregator.close_position(
                args.position_id, args.price, args.reason, args.volatility
            )
            _print_json(result.to_dict())
            return 0 if result.success else 1

        if args.command == "status":
            if args.json:
                _print_json(aggregator.get_status())
            else:
                print(aggregator.display_status())
            return 0

        if args.command == "reset":
            if not args.yes:
                print("Refusing to reset without --yes", file=sys.stderr)
                return 1
            await aggregator.reset()
            print(aggregator.display_status())
            return 0

    return 1


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_format)

    try:
        if args.command == "venues":
            show_venues(VenueCatalog())
            return 0

        if args.command == "route":
            show_route(VenueCatalog(), build_order(args))
            return 0

        config = build_config(args)
        return asyncio.run(run_command(args, config))

    except OrderValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except (VenueExecutionError, ValueError, ArithmeticError) as e:
        logger.error("Command failed: %s", e, exc_info=True)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
