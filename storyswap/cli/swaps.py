"""Swap maintenance commands: ``reap`` and ``stats``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from typing import Any

from storyswap.config.loader import load_config
from storyswap.config.settings import Settings
from storyswap.services.swap_service import STATS_TIMEFRAMES
from storyswap.utils.errors import StorySwapError
from storyswap.utils.logging import configure_logging, get_logger

_logger = get_logger(__name__)


async def _build(app_settings: Settings) -> dict[str, Any]:
    # Deferred so --help does not build the web application.
    from storyswap.main import build_services, initialize_providers

    components = build_services(app_settings, load_config(settings=app_settings))
    await initialize_providers(components)
    return components


def _parse_timestamp(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_reap(args: argparse.Namespace, app_settings: Settings) -> int:
    components = await _build(app_settings)
    reaped = await components["swap_service"].reap(now=args.now)
    print(f"Expired swaps: {reaped}")
    return 0


async def _handle_stats(args: argparse.Namespace, app_settings: Settings) -> int:
    components = await _build(app_settings)
    stats = await components["swap_service"].swap_stats(args.timeframe)

    print(f"Swap Statistics ({stats.timeframe})")
    print("=" * 40)
    print(f"  Total:         {stats.total}")
    print(f"  Completed:     {stats.completed}")
    print(f"  Pending:       {stats.pending}")
    print(f"  Rejected:      {stats.rejected}")
    print(f"  Expired:       {stats.expired}")
    print(f"  Success rate:  {stats.success_rate:.2f}%")

    if stats.breakdown:
        print("\n  Average processing time:")
        for item in stats.breakdown:
            avg = f"{item.avg_processing_ms:.0f} ms" if item.avg_processing_ms is not None else "n/a"
            print(f"    {item.status.value:<10} {avg}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m storyswap.cli",
        description="StorySwap swap maintenance.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Maintenance commands")

    # -- reap --
    reap_parser = subparsers.add_parser("reap", help="Expire overdue pending/rejected swaps")
    reap_parser.add_argument(
        "--now",
        type=_parse_timestamp,
        default=None,
        help="Cutoff timestamp (ISO-8601, default: current UTC time)",
    )

    # -- stats --
    stats_parser = subparsers.add_parser("stats", help="Show swap statistics")
    stats_parser.add_argument(
        "--timeframe",
        choices=list(STATS_TIMEFRAMES),
        default="7d",
        help="Window of swap creation times (default: 7d)",
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse the subcommand and dispatch to its handler."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, app_env=app_settings.app_env)

    handlers = {"reap": _handle_reap, "stats": _handle_stats}
    try:
        exit_code = asyncio.run(handlers[args.command](args, app_settings))
    except StorySwapError as exc:
        _logger.error("cli_command_failed", command=args.command, error=exc.message)
        print(f"Error: {exc.message}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
