"""Command-line interface for the money market engine."""

import argparse
import logging
import sys
from decimal import Decimal
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from comet_engine.config import get_settings
from comet_engine.core.constants import FACTOR_SCALE, PRICE_SCALE
from comet_engine.core.math import from_scaled
from comet_engine.core.models import ManualClock
from comet_engine.demo import build_demo_market
from comet_engine.engine.interest import InterestRateModel
from comet_engine.engine.market import MoneyMarket
from comet_engine.persistence import SnapshotStorage

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="comet-engine",
        description="Money market accounting and risk engine",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from settings)",
    )

    sub = parser.add_subparsers(dest="command")

    rates = sub.add_parser("rates", help="Print the interest rate curve")
    rates.add_argument("--points", type=int, default=10, help="Utilization steps (default: 10)")

    scenario = sub.add_parser("scenario", help="Run the liquidation demo")
    scenario.add_argument("--partial", action="store_true", help="Use a partial liquidation")
    scenario.add_argument("--save", action="store_true", help="Save a snapshot of the final state")

    show = sub.add_parser("show", help="Render a saved snapshot")
    show.add_argument("snapshot_id", nargs="?", default=None, help="Snapshot ID (default: list snapshots)")

    return parser


def _pct(value: float) -> str:
    return f"{value * 100:.2f}%"


def render_rates(console: Console, model: InterestRateModel, points: int) -> None:
    utilizations, supply, borrow = model.rate_curve(points)
    table = Table(title="Interest Rate Curve")
    table.add_column("Utilization", justify="right")
    table.add_column("Supply APR", justify="right", style="green")
    table.add_column("Borrow APR", justify="right", style="red")
    table.add_column("Borrow APY", justify="right")
    for util, supply_apr, borrow_apr in zip(utilizations, supply, borrow):
        apy = InterestRateModel.apr_to_apy(Decimal(str(borrow_apr)))
        table.add_row(_pct(util), _pct(supply_apr), _pct(borrow_apr), _pct(float(apy)))
    console.print(table)


def render_market(console: Console, market: MoneyMarket, title: str = "Market") -> None:
    """Print totals, accounts and liquidator points."""
    config = market.config
    totals = market.state.totals

    summary = Table.grid(padding=(0, 2))
    summary.add_row("Total supply (principal)", str(totals.total_supply_base))
    summary.add_row("Total borrow (principal)", str(totals.total_borrow_base))
    summary.add_row("Utilization", _pct(market.get_utilization() / FACTOR_SCALE))
    summary.add_row("Reserves", str(from_scaled(market.get_reserves(), config.base_scale)))
    console.print(Panel(summary, title=title))

    accounts = Table(title="Accounts")
    accounts.add_column("Account")
    accounts.add_column("Principal", justify="right")
    accounts.add_column("Collateral")
    accounts.add_column("Liquidatable", justify="center")
    for address, account in sorted(market.state.accounts.items()):
        collateral = ", ".join(
            f"{from_scaled(balance, config.asset_config(asset).scale)} {asset}"
            for asset, balance in account.collateral.items()
            if balance
        )
        liquidatable = market.is_liquidatable(address)
        accounts.add_row(
            address,
            str(account.signed_principal),
            collateral or "-",
            "[red]yes[/red]" if liquidatable else "no",
        )
    console.print(accounts)

    if market.state.liquidator_points:
        points = Table(title="Liquidators")
        points.add_column("Absorber")
        points.add_column("Absorbs", justify="right")
        points.add_column("Accounts absorbed", justify="right")
        for absorber, p in market.state.liquidator_points.items():
            points.add_row(absorber, str(p.num_absorbs), str(p.num_absorbed))
        console.print(points)


def run_scenario(partial: bool = False) -> MoneyMarket:
    """
    Supply, borrow, crash WETH and liquidate the borrower.

    Returns:
        The market after liquidation
    """
    market = build_demo_market(clock=ManualClock())
    usdc, weth = market.tokens["USDC"], market.tokens["WETH"]

    usdc.mint("lender", 1_000_000 * 10**6)
    market.supply("lender", "USDC", 1_000_000 * 10**6)

    weth.mint("borrower", 10 * 10**18)
    market.supply("borrower", "WETH", 10 * 10**18)
    market.withdraw("borrower", "USDC", 24_000 * 10**6)

    # 3000 -> 2800 leaves a healthy cushion for partial liquidation; 2000 is bad debt
    crash_price = 2800 if partial else 2000
    market.feeds["WETH"].set_price(crash_price * PRICE_SCALE)
    logger.info(f"WETH repriced to {crash_price}")

    if partial and market.is_partially_liquidatable("borrower"):
        market.absorb_partial("liquidator", "borrower")
    else:
        market.absorb("liquidator", ["borrower"])
    return market


def main(argv: Optional[list] = None) -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    console = Console()

    if args.command == "rates":
        market = build_demo_market(settings)
        render_rates(console, market.interest, args.points)
    elif args.command == "scenario":
        market = run_scenario(partial=args.partial)
        render_market(console, market, title="After liquidation")
        if args.save:
            snapshot_id = SnapshotStorage(settings.ensure_snapshot_dir()).save_snapshot(market, name="scenario")
            console.print(f"Saved snapshot [bold]{snapshot_id}[/bold]")
    elif args.command == "show":
        storage = SnapshotStorage(settings.ensure_snapshot_dir())
        if args.snapshot_id is None:
            table = Table(title="Snapshots")
            for column in ("id", "name", "saved_at", "accounts", "events"):
                table.add_column(column)
            for entry in storage.list_snapshots():
                table.add_row(*(str(entry[c]) for c in ("id", "name", "saved_at", "accounts", "events")))
            console.print(table)
            return
        market = storage.restore_market(args.snapshot_id, ManualClock())
        if market is None:
            console.print(f"[red]Snapshot not found: {args.snapshot_id}[/red]")
            sys.exit(1)
        render_market(console, market, title=args.snapshot_id)


if __name__ == "__main__":
    main()
