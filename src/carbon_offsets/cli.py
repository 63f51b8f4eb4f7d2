"""Command-line utilities for carbon_offsets."""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from pathlib import Path

from .errors import CarbonOffsetsError
from .estimation.heuristics import LocalHeuristicEstimator
from .estimation.remote import ClimatiqClient
from .estimation.service import CarbonEstimationService
from .impact import offset_equivalents
from .ledger.ledger import OffsetLedger
from .ledger.storage import JsonFileStore
from .logging_pipeline import (
    BoundedQueueHandler,
    configure_structured_logging,
    shutdown_listeners,
)
from .schemas import PageSignal
from .settings import CarbonOffsetsSettings, get_settings

DEFAULT_STORE_PATH = Path.home() / ".carbon-offsets" / "store.json"


def _print_json(payload: object) -> None:
    print(json.dumps(payload, separators=(",", ":"), default=str))


def _store_path(args: argparse.Namespace, settings: CarbonOffsetsSettings) -> Path:
    if args.store:
        return Path(args.store)
    if settings.store_path:
        return Path(settings.store_path)
    return DEFAULT_STORE_PATH


def _load_ledger(
    args: argparse.Namespace, settings: CarbonOffsetsSettings
) -> OffsetLedger:
    store = JsonFileStore(_store_path(args, settings))
    return OffsetLedger.load(store, history_limit=settings.history_limit)


def _cmd_estimate(args: argparse.Namespace, settings: CarbonOffsetsSettings) -> int:
    signal = PageSignal(
        site_host=args.site or "",
        products=tuple(args.product or ()),
        prices=tuple(args.price or ()),
    )
    seed = args.seed if args.seed is not None else settings.random_seed
    client = None if args.offline else ClimatiqClient(settings=settings)
    service = CarbonEstimationService(
        client, heuristics=LocalHeuristicEstimator(random.Random(seed))
    )
    estimate = service.estimate(signal)
    payload = estimate.to_dict()
    payload["equivalents"] = offset_equivalents(estimate.carbon_kg)
    _print_json(payload)
    return 0


def _cmd_record(args: argparse.Namespace, settings: CarbonOffsetsSettings) -> int:
    ledger = _load_ledger(args, settings)
    event = ledger.record_offset(
        args.kind,
        args.carbon_kg,
        site_host=args.site or "",
        product_label=args.product,
        sourced_from_remote=args.remote,
        url=args.url,
    )
    _print_json(event.to_wire())
    return 0


def _cmd_stats(args: argparse.Namespace, settings: CarbonOffsetsSettings) -> int:
    _print_json(_load_ledger(args, settings).get_stats().to_wire())
    return 0


def _cmd_recent(args: argparse.Namespace, settings: CarbonOffsetsSettings) -> int:
    ledger = _load_ledger(args, settings)
    _print_json([event.to_wire() for event in ledger.recent_window()])
    return 0


def _cmd_prune(args: argparse.Namespace, settings: CarbonOffsetsSettings) -> int:
    removed = _load_ledger(args, settings).prune_retention()
    _print_json({"removed": removed})
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="carbon-offsets",
        description="Estimate purchase carbon and track offsets.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Structured log verbosity written to stderr.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    estimate = sub.add_parser("estimate", help="Estimate the carbon of a page scan.")
    estimate.add_argument("--site", help="Host of the page, e.g. amazon.com.")
    estimate.add_argument(
        "--product", action="append", help="Product name (repeatable)."
    )
    estimate.add_argument(
        "--price", action="append", type=float, help="Observed price (repeatable)."
    )
    estimate.add_argument(
        "--offline", action="store_true", help="Skip the remote estimation API."
    )
    estimate.add_argument("--seed", type=int, help="Seed for heuristic jitter.")
    estimate.set_defaults(handler=_cmd_estimate)

    def _with_store(command: argparse.ArgumentParser) -> argparse.ArgumentParser:
        command.add_argument("--store", help="Path to the JSON ledger store.")
        return command

    record = _with_store(sub.add_parser("record", help="Record an offset."))
    record.add_argument("--kind", choices=["manual", "auto"], default="manual")
    record.add_argument("--carbon-kg", type=float, required=True)
    record.add_argument("--site", help="Host the purchase came from.")
    record.add_argument("--product", help="Product label.")
    record.add_argument("--url", help="Page URL.")
    record.add_argument(
        "--remote",
        action="store_true",
        help="Mark the carbon value as produced by the remote API.",
    )
    record.set_defaults(handler=_cmd_record)

    _with_store(sub.add_parser("stats", help="Show lifetime offset totals.")).set_defaults(
        handler=_cmd_stats
    )
    _with_store(
        sub.add_parser("recent", help="List offsets from the last five minutes.")
    ).set_defaults(handler=_cmd_recent)
    _with_store(
        sub.add_parser("prune", help="Drop offsets older than seven days.")
    ).set_defaults(handler=_cmd_prune)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the carbon-offsets command line."""
    parser = _build_parser()

    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # pragma: no cover - controlled via tests
        exit_code = int(exc.code) if isinstance(exc.code, int) else 1
        return 0 if exit_code == 0 else 1

    package_logger = logging.getLogger("carbon_offsets")
    listener = configure_structured_logging(
        package_logger, surface="cli", level=getattr(logging, args.log_level)
    )
    try:
        return int(args.handler(args, get_settings()))
    except (CarbonOffsetsError, ValueError, OSError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        shutdown_listeners([listener])
        for handler in list(package_logger.handlers):
            if isinstance(handler, BoundedQueueHandler) and handler.queue is listener.queue:
                package_logger.removeHandler(handler)


if __name__ == "__main__":
    raise SystemExit(main())
