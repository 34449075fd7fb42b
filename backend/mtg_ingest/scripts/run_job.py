#!/usr/bin/env python3
"""
Run pipeline jobs in-process, without a worker.

Usage:
    mtg-ingest discover
    mtg-ingest scrape-decklist 42
    mtg-ingest update-prices
    mtg-ingest update-card 0000579f-7b35-4ed3-b44c-db2a538066fe
    mtg-ingest dlq list --limit 20
    mtg-ingest dlq retry 0
    mtg-ingest dlq clear
"""
import argparse
import json
import sys
from typing import Any, Optional, Sequence

import structlog

from mtg_ingest.core.logging import setup_logging

logger = structlog.get_logger(__name__)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def cmd_discover(args: argparse.Namespace) -> int:
    from mtg_ingest.tasks.commanders import run_discovery

    _print_json(run_discovery())
    return 0


def cmd_scrape_decklist(args: argparse.Namespace) -> int:
    from mtg_ingest.tasks.commanders import run_decklist_scrape

    result = run_decklist_scrape(args.commander_id, execution_id=args.execution_id)
    _print_json(result)
    return 0 if result["status"] == "success" else 1


def cmd_update_prices(args: argparse.Namespace) -> int:
    from mtg_ingest.tasks.pricing import run_price_update

    _print_json(run_price_update())
    return 0


def cmd_update_card(args: argparse.Namespace) -> int:
    from mtg_ingest.tasks.pricing import run_price_update

    _print_json(run_price_update(args.card_id))
    return 0


def cmd_dlq(args: argparse.Namespace) -> int:
    from mtg_ingest.tasks import error_handlers

    if args.action == "list":
        _print_json({
            "count": error_handlers.get_dlq_count(),
            "entries": error_handlers.get_dlq_entries(limit=args.limit),
        })
        return 0
    if args.action == "retry":
        retried = error_handlers.retry_dlq_entry(args.index)
        _print_json({"retried": retried, "index": args.index})
        return 0 if retried else 1
    _print_json({"removed": error_handlers.clear_dlq()})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mtg-ingest",
        description="Run commander scraping and card price jobs synchronously",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", help="Discover top commanders and schedule decklist scrapes")
    discover.set_defaults(func=cmd_discover)

    decklist = subparsers.add_parser("scrape-decklist", help="Scrape one commander's decklist now")
    decklist.add_argument("commander_id", type=int)
    decklist.add_argument("--execution-id", type=int, default=None)
    decklist.set_defaults(func=cmd_scrape_decklist)

    prices = subparsers.add_parser("update-prices", help="Price every tracked card not yet priced today")
    prices.set_defaults(func=cmd_update_prices)

    card = subparsers.add_parser("update-card", help="Price a single card")
    card.add_argument("card_id")
    card.set_defaults(func=cmd_update_card)

    dlq = subparsers.add_parser("dlq", help="Inspect the dead letter queue")
    dlq.add_argument("action", choices=["list", "retry", "clear"])
    dlq.add_argument("index", type=int, nargs="?", default=0, help="Entry to retry (0 = newest)")
    dlq.add_argument("--limit", type=int, default=100)
    dlq.set_defaults(func=cmd_dlq)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        return args.func(args)
    except Exception as e:
        logger.error("Job failed", command=args.command, error_type=type(e).__name__, error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
