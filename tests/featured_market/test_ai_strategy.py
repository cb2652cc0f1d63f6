"""Tests for the AI relevance tie-break strategy.

Tests cover:
- Shortlist construction (draw without replacement, exhaustion)
- Small-pool fallback to direct proportional selection
- Ranker success, failure, invalid index and raised exceptions
- The pick always comes from the shortlist when the ranker fails
"""

from __future__ import annotations

import random

import pytest

from src.featured_market.ai_strategy import AIRelevanceStrategy, build_shortlist
from src.featured_market.models import Candidate, RankingResult
from src.featured_market.ranker import MockRelevanceRanker


def _pool(n: int) -> list[Candidate]:
    return [Candidate(id=f"M{i}", label=f"Market {i}?", score=300 + 100 * i) for i in range(n)]


class RaisingRanker(MockRelevanceRanker):
    def rank(self, entries):
        self.calls.append(entries)
        raise TimeoutError("ranking timed out")


class TestBuildShortlist:

    def test_draws_requested_size(self):
        shortlist = build_shortlist(_pool(8), 4, random.Random(1))
        assert len(shortlist) == 4
        assert len({c.id for c in shortlist}) == 4

    def test_members_come_from_pool(self):
        pool = _pool(8)
        shortlist = build_shortlist(pool, 4, random.Random(3))
        assert all(c in pool for c in shortlist)

    def test_exhausts_small_pool(self):
        shortlist = build_shortlist(_pool(3), 10, random.Random(5))
        assert sorted(c.id for c in shortlist) == ["M0", "M1", "M2"]

    def test_does_not_mutate_input(self):
        pool = _pool(6)
        before = list(pool)
        build_shortlist(pool, 4, random.Random(9))
        assert pool == before

    def test_first_draw_follows_weights(self, fixed_random):
        # r = 0 always hits the first remaining market
        shortlist = build_shortlist(_pool(6), 3, fixed_random(0.0))
        assert [c.id for c in shortlist] == ["M0", "M1", "M2"]

    def test_reproducible_with_seed(self):
        a = build_shortlist(_pool(10), 4, random.Random(11))
        b = build_shortlist(_pool(10), 4, random.Random(11))
        assert a == b


class TestSmallPool:

    @pytest.mark.parametrize("n", [2, 3, 4])
    def test_pool_at_or_below_shortlist_skips_ranker(self, n):
        ranker = MockRelevanceRanker(index=2)
        pool = _pool(n)
        strategy = AIRelevanceStrategy(ranker=ranker, shortlist_size=4, rng=random.Random(0))

        picked = strategy.select(pool)

        assert picked in pool
        assert ranker.calls == []
        assert strategy.last_shortlist == []
        assert "direct proportional" in strategy.rationale

    def test_uses_direct_draw(self, fixed_random):
        # Scores 300, 400 → r = 0.5 * 700 = 350 lands on M1
        strategy = AIRelevanceStrategy(ranker=MockRelevanceRanker(), rng=fixed_random(0.5))
        assert strategy.select(_pool(2)).id == "M1"


class TestRanking:

    def test_ranker_choice_is_used(self):
        ranker = MockRelevanceRanker(index=3, reason="Election news")
        strategy = AIRelevanceStrategy(ranker=ranker, shortlist_size=4, rng=random.Random(2))

        picked = strategy.select(_pool(8))

        assert picked == strategy.last_shortlist[2]
        assert strategy.rationale == "Election news"
        assert strategy.last_ranking.ok

    def test_ranker_receives_labels_and_scores(self):
        ranker = MockRelevanceRanker(index=1)
        strategy = AIRelevanceStrategy(ranker=ranker, shortlist_size=4, rng=random.Random(4))

        strategy.select(_pool(8))

        assert len(ranker.calls) == 1
        entries = ranker.calls[0]
        assert entries == [{"label": c.label, "score": c.score} for c in strategy.last_shortlist]

    def test_shortlist_of_one_skips_ranker(self):
        ranker = MockRelevanceRanker(index=1)
        strategy = AIRelevanceStrategy(ranker=ranker, shortlist_size=1, rng=random.Random(4))

        picked = strategy.select(_pool(5))

        assert picked == strategy.last_shortlist[0]
        assert ranker.calls == []

    def test_rejects_invalid_shortlist_size(self):
        with pytest.raises(ValueError):
            AIRelevanceStrategy(ranker=MockRelevanceRanker(), shortlist_size=0)

    def test_description(self):
        assert AIRelevanceStrategy(ranker=MockRelevanceRanker()).description == "AI selection with latest news"


class TestFallback:

    def test_ranker_failure_uses_first_shortlist_entry(self):
        ranker = MockRelevanceRanker(error="OPENAI_API_KEY not set")
        strategy = AIRelevanceStrategy(ranker=ranker, rng=random.Random(6))

        picked = strategy.select(_pool(8))

        assert picked == strategy.last_shortlist[0]
        assert "OPENAI_API_KEY not set" in strategy.rationale

    @pytest.mark.parametrize("index", [0, -1, 5, 99])
    def test_out_of_range_index_uses_first_entry(self, index):
        strategy = AIRelevanceStrategy(ranker=MockRelevanceRanker(index=index), rng=random.Random(6))
        picked = strategy.select(_pool(8))
        assert picked == strategy.last_shortlist[0]
        assert "invalid index" in strategy.rationale

    def test_missing_index_uses_first_entry(self):
        class NoIndexRanker(MockRelevanceRanker):
            def rank(self, entries):
                return RankingResult(ok=True, index=None, reason="?")

        strategy = AIRelevanceStrategy(ranker=NoIndexRanker(), rng=random.Random(6))
        assert strategy.select(_pool(8)) == strategy.last_shortlist[0]

    def test_raising_ranker_is_contained(self):
        ranker = RaisingRanker()
        strategy = AIRelevanceStrategy(ranker=ranker, rng=random.Random(6))

        picked = strategy.select(_pool(8))

        assert picked == strategy.last_shortlist[0]
        assert not strategy.last_ranking.ok
        assert "TimeoutError" in strategy.last_ranking.error

    @pytest.mark.parametrize("seed", range(25))
    def test_failed_ranking_always_returns_shortlist_member(self, seed):
        strategy = AIRelevanceStrategy(ranker=RaisingRanker(), rng=random.Random(seed))
        pool = _pool(10)

        picked = strategy.select(pool)

        assert picked is not None
        assert picked in strategy.last_shortlist
        assert picked in pool

    def test_state_resets_between_runs(self):
        strategy = AIRelevanceStrategy(ranker=MockRelevanceRanker(index=2), rng=random.Random(8))
        strategy.select(_pool(8))
        strategy.select(_pool(3))
        assert strategy.last_shortlist == []
        assert strategy.last_ranking is None
