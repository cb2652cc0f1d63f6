"""Featured market selection run.

One run:
1. Read the recent featured history and the active market pool
2. Exclude recently featured markets and markets below the score threshold
3. Pick one market with the configured strategy
4. Stamp it and append it to the featured history (trimmed to retention)

A run either appends exactly one record or appends nothing.

Usage:
    selector = FeaturedMarketSelector(SQLiteMarketStore(db_path), settings)
    result = selector.run()
    if result.selected:
        print(result.record.candidate.label)
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import datetime, timezone

from src.common.config import Settings

from .ai_strategy import AIRelevanceStrategy
from .filtering import build_exclusion_set, filter_eligible
from .models import (
    SelectionError,
    SelectionRecord,
    SelectionRunResult,
    StoreUnavailableError,
)
from .ranker import RelevanceRanker
from .store import MarketStore
from .weighting import SCORE_STRATEGIES, PowerStrategy, WeightingStrategy

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_strategy(
    settings: Settings,
    rng: random.Random | None = None,
    ranker: RelevanceRanker | None = None,
) -> WeightingStrategy:
    """Instantiate the strategy named in ``settings.selection.strategy``."""
    selection = settings.selection
    name = selection.strategy

    if name == AIRelevanceStrategy.name:
        return AIRelevanceStrategy(
            ranker=ranker or RelevanceRanker(settings=settings.llm),
            shortlist_size=selection.shortlist_size,
            rng=rng,
        )
    if name == PowerStrategy.name:
        return PowerStrategy(exponent=selection.power_exponent, rng=rng)
    if name in SCORE_STRATEGIES:
        return SCORE_STRATEGIES[name](rng=rng)
    raise ValueError(f"Unknown selection strategy: {name!r}")


class FeaturedMarketSelector:
    """Selects the next featured market and records it."""

    def __init__(
        self,
        store: MarketStore,
        settings: Settings | None = None,
        history: MarketStore | None = None,
        strategy: WeightingStrategy | None = None,
        ranker: RelevanceRanker | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.history = history or store
        self.settings = settings or Settings()
        self.strategy = strategy or build_strategy(self.settings, rng=rng, ranker=ranker)
        self.clock = clock or _utc_now

    def describe_strategy(self) -> str:
        return self.strategy.description

    def run(self) -> SelectionRunResult:
        """Execute one selection run.

        Returns:
            SelectionRunResult; ``record`` is None when nothing was eligible.

        Raises:
            StoreUnavailableError: The store could not be read or written.
            SelectionError: The strategy returned an ineligible market.
            Exception: Any unhandled strategy error, re-raised after logging.
        """
        selection = self.settings.selection
        result = SelectionRunResult(strategy=self.strategy.name)
        logger.info("Starting featured market selection using method: %s", self.describe_strategy())

        try:
            # At least one entry is read so the new timestamp can be kept monotonic
            recent = self.history.list_recent_selections(max(selection.exclude_recent_count, 1))
            candidates = self.store.list_candidates()
        except StoreUnavailableError:
            logger.exception("Market store unavailable, aborting selection")
            raise

        excluded = build_exclusion_set(recent[: selection.exclude_recent_count])
        result.excluded_ids = sorted(excluded)
        result.pool_size = len(candidates)
        logger.info(
            "Total active markets: %d (excluding %d recently featured)",
            len(candidates), len(excluded),
        )

        if not candidates:
            result.skipped_reason = "no active markets"
            logger.info("No active markets available to feature")
            return result

        eligible = filter_eligible(candidates, excluded, selection.min_score_threshold)
        result.eligible_count = len(eligible)

        if not eligible:
            result.skipped_reason = (
                f"no eligible markets (TVL >= {selection.min_score_threshold:g} "
                "and not recently featured)"
            )
            logger.info("No eligible markets available to feature: %s", result.skipped_reason)
            return result

        logger.info("Eligible markets: %d", len(eligible))

        try:
            picked = self.strategy.select(eligible)
        except Exception:
            logger.exception("Strategy %s failed, no market featured", self.strategy.name)
            raise

        if picked not in eligible:
            raise SelectionError(f"Strategy {self.strategy.name} returned an ineligible market: {picked!r}")

        record = SelectionRecord(
            candidate=picked.snapshot(),
            selected_at=self._stamp(recent),
            strategy=self.strategy.name,
            reason=self.strategy.rationale,
        )

        try:
            self.history.append_selection(record, selection.history_retention)
        except StoreUnavailableError:
            logger.exception("Could not record featured market %s", picked.id)
            raise

        result.record = record
        logger.info(
            'Featured market selected: "%s" (ID: %s, TVL: %s)',
            picked.label, picked.id, f"{picked.score:,.2f}",
        )
        return result

    def _stamp(self, recent: list[SelectionRecord]) -> datetime:
        """Current time, never earlier than the newest history entry."""
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if recent and recent[0].selected_at > now:
            logger.warning(
                "Clock is behind newest featured entry (%s < %s); reusing its timestamp",
                now.isoformat(), recent[0].selected_at.isoformat(),
            )
            return recent[0].selected_at
        return now
