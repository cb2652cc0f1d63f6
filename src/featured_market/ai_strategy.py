"""AI relevance tie-break strategy.

Phase 1 narrows the eligible pool to a shortlist by repeated
direct-proportional draws without replacement. Phase 2 asks the relevance
ranker to pick one shortlist entry.

Fallback chain:
  pool <= shortlist size   → direct-proportional over the full pool
  shortlist of one         → that entry
  ranker failure / bad idx → first shortlist entry
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from .models import Candidate, RankingResult
from .ranker import RelevanceRanker
from .weighting import DirectProportionalStrategy, WeightingStrategy

logger = logging.getLogger(__name__)

DEFAULT_SHORTLIST_SIZE = 4


def build_shortlist(
    eligible: Sequence[Candidate],
    size: int,
    rng: random.Random,
) -> list[Candidate]:
    """Draw up to ``size`` distinct candidates, one direct-proportional draw at a time.

    Each drawn candidate is removed (first entry with the same id) before
    the next draw.
    """
    direct = DirectProportionalStrategy(rng)
    remaining = list(eligible)
    shortlist: list[Candidate] = []

    while len(shortlist) < size and remaining:
        picked = direct.select(remaining)
        shortlist.append(picked)
        for i, candidate in enumerate(remaining):
            if candidate.id == picked.id:
                del remaining[i]
                break

    return shortlist


class AIRelevanceStrategy(WeightingStrategy):
    """Shortlist by score, then let the relevance ranker choose."""

    name = "ai"

    def __init__(
        self,
        ranker: RelevanceRanker | None = None,
        shortlist_size: int = DEFAULT_SHORTLIST_SIZE,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(rng)
        if shortlist_size < 1:
            raise ValueError(f"Shortlist size must be at least 1, got {shortlist_size}")
        self.ranker = ranker or RelevanceRanker()
        self.shortlist_size = shortlist_size
        self.last_shortlist: list[Candidate] = []
        self.last_ranking: RankingResult | None = None

    @property
    def description(self) -> str:
        return "AI selection with latest news"

    def select(self, eligible: Sequence[Candidate]) -> Candidate:
        if not eligible:
            raise ValueError("No eligible candidates to select from")

        self.last_shortlist = []
        self.last_ranking = None
        self.rationale = ""

        if len(eligible) <= self.shortlist_size:
            logger.info(
                "Not enough markets (%d) for AI selection, using direct proportional method instead",
                len(eligible),
            )
            self.rationale = "direct proportional fallback: pool smaller than shortlist"
            return DirectProportionalStrategy(self.rng).select(eligible)

        shortlist = build_shortlist(eligible, self.shortlist_size, self.rng)
        self.last_shortlist = shortlist
        logger.info("Selected %d candidate markets for AI evaluation", len(shortlist))

        if len(shortlist) == 1:
            logger.info("Only one candidate market available, skipping AI evaluation")
            self.rationale = "single shortlist entry"
            return shortlist[0]

        ranking = self._rank(shortlist)
        self.last_ranking = ranking

        if not ranking.ok:
            logger.warning("AI ranking unavailable (%s), using first candidate", ranking.error)
            self.rationale = f"first shortlist entry: {ranking.error}"
            return shortlist[0]

        if ranking.index is None or not 1 <= ranking.index <= len(shortlist):
            logger.warning(
                "Invalid candidate index %r from AI (expected 1-%d), using first candidate",
                ranking.index, len(shortlist),
            )
            self.rationale = f"first shortlist entry: invalid index {ranking.index!r}"
            return shortlist[0]

        chosen = shortlist[ranking.index - 1]
        logger.info("AI selected candidate %d: %s", ranking.index, chosen.label)
        self.rationale = ranking.reason
        return chosen

    def _rank(self, shortlist: list[Candidate]) -> RankingResult:
        entries = [{"label": c.label, "score": c.score} for c in shortlist]
        try:
            return self.ranker.rank(entries)
        except Exception as exc:
            logger.warning("Relevance ranker raised", exc_info=True)
            return RankingResult.failure(f"{type(exc).__name__}: {exc}")
