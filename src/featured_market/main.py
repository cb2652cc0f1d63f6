"""CLI entry point for the featured market engine.

Usage:
    # Select the next featured market (strategy from settings / env)
    python -m src.featured_market.main
    python -m src.featured_market.main --strategy power --power 1.5
    python -m src.featured_market.main --strategy ai --output featured.json

    # Show the featured history, newest first
    python -m src.featured_market.main --mode history --limit 10

    # Load a JSON snapshot of active markets into the candidate pool
    python -m src.featured_market.main --mode load --input markets.json
"""

from __future__ import annotations

import argparse
import json
import logging
import random
from pathlib import Path

from pydantic import ValidationError

from src.common.config import Settings
from src.common.logging import setup_logging

from .models import SelectionError, StoreUnavailableError
from .orchestrator import FeaturedMarketSelector
from .ranker import MockRelevanceRanker
from .store import SQLiteMarketStore

logger = logging.getLogger(__name__)

# CLI flag → SelectionSettings field
_SELECTION_FLAGS = {
    "strategy": "strategy",
    "threshold": "min_score_threshold",
    "power": "power_exponent",
    "shortlist_size": "shortlist_size",
    "exclude_recent": "exclude_recent_count",
    "retention": "history_retention",
}


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.load(args.config)
    selection = settings.selection.model_dump()
    for flag, field_name in _SELECTION_FLAGS.items():
        value = getattr(args, flag, None)
        if value is not None:
            selection[field_name] = value

    database = settings.database.model_dump()
    if args.db:
        database["db_path"] = args.db
    if args.namespace:
        database["namespace"] = args.namespace

    return Settings(selection=selection, database=database, llm=settings.llm)


def _open_store(settings: Settings) -> SQLiteMarketStore:
    return SQLiteMarketStore(settings.database.db_abs_path, namespace=settings.database.namespace)


def _run_select(args: argparse.Namespace, settings: Settings) -> None:
    store = _open_store(settings)
    rng = random.Random(args.seed) if args.seed is not None else None
    ranker = MockRelevanceRanker() if args.mock_ranker else None

    selector = FeaturedMarketSelector(store, settings, rng=rng, ranker=ranker)
    result = selector.run()

    if result.selected:
        record = result.record
        logger.info("=== Featured Market ===")
        logger.info("  %s", record.candidate.label)
        logger.info("  ID: %s | TVL: %s", record.candidate.id, f"{record.candidate.score:,.2f}")
        logger.info("  Selected at: %s (%s)", record.selected_at.isoformat(), record.strategy)
        if record.reason:
            logger.info("  Reason: %s", record.reason)
    else:
        logger.info("No market featured this run: %s", result.skipped_reason)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info("Output written to %s", args.output)


def _run_history(args: argparse.Namespace, settings: Settings) -> None:
    store = _open_store(settings)
    records = store.list_featured(args.limit)

    logger.info("=== Featured history (%d entries) ===", len(records))
    for i, record in enumerate(records, 1):
        logger.info(
            "  #%d %s | %s (TVL %s, %s)",
            i,
            record.selected_at.strftime("%Y-%m-%d %H:%M:%S"),
            record.candidate.label,
            f"{record.candidate.score:,.2f}",
            record.strategy or "unknown",
        )

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in records], f, ensure_ascii=False, indent=2)
        logger.info("Output written to %s", args.output)


def _run_load(args: argparse.Namespace, settings: Settings) -> None:
    if not args.input:
        raise SystemExit("Error: --input is required for 'load' mode")

    with open(Path(args.input), encoding="utf-8") as f:
        markets = json.load(f)
    if not isinstance(markets, list):
        raise SystemExit("Error: --input must contain a JSON list of market objects")

    store = _open_store(settings)
    loaded = 0
    for i, market in enumerate(markets):
        market_id = market.get("marketId", i) if isinstance(market, dict) else i
        try:
            key = int(market_id)
        except (TypeError, ValueError, OverflowError):
            logger.warning("Skipping market #%d: non-numeric marketId %r", i, market_id)
            continue
        store.put_market(key, market if isinstance(market, dict) else json.dumps(market))
        loaded += 1

    logger.info("Loaded %d markets into namespace %s", loaded, settings.database.namespace)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Featured market selection / history / pool loading"
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=["select", "history", "load"],
        default="select",
        help="'select' (run one selection), 'history' (show featured markets), or 'load' (import pool)",
    )
    parser.add_argument("--config", type=str, help="Path to settings YAML file")
    parser.add_argument("--db", type=str, help="SQLite database path (overrides settings)")
    parser.add_argument("--namespace", type=str, help="Store namespace (overrides settings)")
    parser.add_argument(
        "--strategy",
        type=str,
        help="[select] direct | sqrt | rank | power | ai (or method id 1-5)",
    )
    parser.add_argument("--threshold", type=float, help="[select] Minimum TVL to be eligible")
    parser.add_argument("--power", type=float, help="[select] Exponent for the power strategy")
    parser.add_argument("--shortlist-size", type=int, help="[select] AI shortlist size")
    parser.add_argument("--exclude-recent", type=int, help="[select] Recently featured markets to exclude")
    parser.add_argument("--retention", type=int, help="[select] Featured history entries to keep")
    parser.add_argument("--seed", type=int, help="[select] Random seed for reproducible draws")
    parser.add_argument(
        "--mock-ranker",
        action="store_true",
        help="[select] Use the offline ranker instead of OpenAI for the ai strategy",
    )
    parser.add_argument("--limit", type=int, help="[history] Number of entries to show")
    parser.add_argument("--input", type=str, help="[load] JSON file with a list of markets")
    parser.add_argument("--output", type=str, help="Output JSON file path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else None)

    try:
        settings = _load_settings(args)
    except (ValidationError, ValueError, FileNotFoundError) as exc:
        logger.error("Invalid configuration: %s", exc)
        raise SystemExit(2) from exc

    try:
        if args.mode == "history":
            _run_history(args, settings)
        elif args.mode == "load":
            _run_load(args, settings)
        else:
            _run_select(args, settings)
    except StoreUnavailableError as exc:
        logger.error("Market store unavailable: %s", exc)
        raise SystemExit(1) from exc
    except SelectionError as exc:
        logger.error("Featured market selection failed: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
