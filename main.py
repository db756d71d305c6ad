# main.py

"""Entry point for the price tracker (scheduled refresh or tracking)."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from src.config.logging_config import setup_logging
from src.services.batch_selector import SelectionMode

logger = logging.getLogger("price_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description="Refresh tracked product prices and notify subscribers.",
    )
    parser.add_argument(
        "--db",
        default=None,
        type=Path,
        help="SQLite database path (default: data/products.db).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    refresh = sub.add_parser(
        "refresh",
        help="Re-scrape tracked products (run this from a scheduler).",
    )
    refresh.add_argument(
        "-m",
        "--mode",
        choices=[m.value for m in SelectionMode],
        default=SelectionMode.FULL.value,
        help="full: every product in batches; stale: only stale ones.",
    )
    refresh.add_argument(
        "-c",
        "--cap",
        type=int,
        default=None,
        help="Max products this run (stale mode default: STALE_CAP).",
    )
    refresh.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )

    track = sub.add_parser(
        "track",
        help="Start tracking a product URL.",
    )
    track.add_argument("url", help="Product page URL.")
    track.add_argument(
        "-e",
        "--email",
        default=None,
        help="Subscribe this email address to notifications.",
    )
    track.add_argument(
        "-t",
        "--target",
        type=float,
        default=None,
        dest="target_price",
        help="Notify when the price falls to this target.",
    )
    return parser


def _run_refresh(args: argparse.Namespace) -> None:
    """Run one refresh and exit with its status."""
    from src.cli.runner import run_refresh

    exit_code = asyncio.run(
        run_refresh(
            mode=SelectionMode(args.mode),
            cap=args.cap,
            output_format=args.output_format,
            db_path=args.db,
        )
    )
    sys.exit(exit_code)


def _run_track(args: argparse.Namespace) -> None:
    """Track a URL and exit with its status."""
    from src.cli.runner import run_track

    exit_code = asyncio.run(
        run_track(
            url=args.url,
            email=args.email,
            target_price=args.target_price,
            db_path=args.db,
        )
    )
    sys.exit(exit_code)


def main() -> None:
    """Route to the refresh or track command."""
    log_file = setup_logging()
    logger.info("price_tracker starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "track":
        _run_track(args)
    else:
        _run_refresh(args)


if __name__ == "__main__":
    main()
