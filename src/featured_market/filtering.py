"""Eligibility filtering: score threshold + recent-selection exclusion."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .models import Candidate, SelectionRecord

logger = logging.getLogger(__name__)

DEFAULT_MIN_SCORE = 200.0


def build_exclusion_set(records: Iterable[object]) -> set[str]:
    """Collect candidate ids from recent history entries.

    Entries that are not usable SelectionRecords are skipped one by one;
    a bad entry never discards the rest of the window.
    """
    excluded: set[str] = set()
    for i, record in enumerate(records):
        if not isinstance(record, SelectionRecord) or not record.candidate.id:
            logger.warning("Skipping malformed history entry #%d: %r", i, record)
            continue
        excluded.add(record.candidate.id)
    return excluded


def filter_eligible(
    candidates: Iterable[object],
    excluded: set[str] | None = None,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[Candidate]:
    """Return the eligible subset, preserving input order.

    Args:
        candidates: Candidate pool. Non-Candidate entries are dropped.
        excluded: Ids barred from selection (recently featured).
        min_score: Minimum score (inclusive).

    Returns:
        Eligible candidates; empty when nothing qualifies.
    """
    excluded = excluded or set()
    eligible: list[Candidate] = []
    below_threshold = 0
    recently_featured = 0

    for item in candidates:
        if not isinstance(item, Candidate):
            logger.warning("Dropping malformed candidate: %r", item)
            continue
        if item.score < min_score:
            below_threshold += 1
            continue
        if item.id in excluded:
            recently_featured += 1
            continue
        eligible.append(item)

    logger.debug(
        "Filtered pool: %d eligible, %d below threshold %.2f, %d recently featured",
        len(eligible), below_threshold, min_score, recently_featured,
    )
    return eligible
