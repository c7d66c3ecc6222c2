"""Command-line interface for the Radix lending client."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from decimal import Decimal

from .config import AppConfig, TransportConfig, load_config
from .decimals import format_decimal, to_display_float
from .errors import LendingClientError
from .logging_setup import configure_logging
from .models import AssetName, PortfolioSnapshot
from .services import ActionResult, LendingService


def _asset_amount(value: str) -> tuple[AssetName, str]:
    """Parse ``LABEL=AMOUNT`` into an asset name and the raw amount."""
    label, sep, amount = value.partition("=")
    if not sep or not amount:
        raise argparse.ArgumentTypeError(f"expected LABEL=AMOUNT, got {value!r}")
    try:
        return AssetName.parse(label), amount
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _asset_label(value: str) -> AssetName:
    try:
        return AssetName.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="radix-lending",
        description="Radix lending market client",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--manifest-dir",
        default=None,
        help="Directory for prepared manifests (overrides config)",
    )

    sub = parser.add_subparsers(dest="command")

    snapshot_parser = sub.add_parser("snapshot", help="Show an account's lending position")
    snapshot_parser.add_argument("account", help="Account address or configured label")

    for name, help_text in (
        ("supply", "Supply assets, opening a position if needed"),
        ("borrow", "Borrow assets against the position"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("account", help="Account address or configured label")
        p.add_argument(
            "amounts",
            nargs="+",
            type=_asset_amount,
            metavar="LABEL=AMOUNT",
            help="Asset and amount, e.g. XRD=100",
        )

    for name, help_text in (
        ("withdraw", "Withdraw a supplied asset"),
        ("repay", "Repay borrowed debt"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("account", help="Account address or configured label")
        p.add_argument("label", type=_asset_label, help="Asset label, e.g. xUSDT")
        p.add_argument("amount", help="Amount of the asset")

    return parser


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.manifest_dir:
        return dataclasses.replace(
            config, transport=TransportConfig(manifest_dir=args.manifest_dir)
        )
    return config


def _money(value: Decimal) -> str:
    return f"${to_display_float(value):,.2f}"


def format_snapshot(snapshot: PortfolioSnapshot) -> str:
    """Human-readable rendering of a snapshot."""
    lines = [f"Account: {snapshot.account}"]
    if not snapshot.has_position:
        lines.append("No position found.")
    else:
        lines.append(f"Position: {snapshot.badge.local_id}")

    for title, rows in (("Supplied", snapshot.supply_assets), ("Borrowed", snapshot.borrow_assets)):
        if not rows:
            continue
        lines.append(f"{title}:")
        for asset in rows:
            lines.append(
                f"  {asset.label.value:<6} {format_decimal(asset.selected_amount):>24}"
                f"  {_money(asset.value):>14}  {to_display_float(asset.rate):.2f}%"
            )

    lines.extend(
        [
            f"Total supply:      {_money(snapshot.total_supply_value)}",
            f"Total borrow:      {_money(snapshot.total_borrow_value)}",
            f"Net worth:         {_money(snapshot.net_worth)}",
            f"Net APY:           {to_display_float(snapshot.net_rate):.2f}%",
            f"Borrow power used: {to_display_float(snapshot.borrow_power_used):.2f}%",
            f"Health factor:     {snapshot.health_factor}",
        ]
    )
    return "\n".join(lines)


def format_result(result: ActionResult) -> str:
    check = result.check
    lines = [
        f"{result.intent.action.value}: {result.submission.status}",
        f"Health factor: {check.current} -> {check.projected}",
    ]
    if result.submission.reference:
        lines.append(f"Manifest: {result.submission.reference}")
    if result.snapshot is not None:
        lines.append("")
        lines.append(format_snapshot(result.snapshot))
    return "\n".join(lines)


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = _apply_overrides(load_config(args.config), args)
    service = LendingService(config)
    account = config.resolve_account(args.account)

    if args.command == "snapshot":
        print(format_snapshot(await service.snapshot(account)))
    elif args.command == "supply":
        print(format_result(await service.supply(account, dict(args.amounts))))
    elif args.command == "borrow":
        print(format_result(await service.borrow(account, dict(args.amounts))))
    elif args.command == "withdraw":
        print(format_result(await service.withdraw(account, args.label, args.amount)))
    elif args.command == "repay":
        print(format_result(await service.repay(account, args.label, args.amount)))
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except (LendingClientError, ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
