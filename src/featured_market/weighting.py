"""Score-weighted selection strategies.

Every strategy turns the eligible pool into a single pick through the same
weighted draw; they only differ in how a market's score becomes a weight:

  direct  weight = score
  sqrt    weight = sqrt(score)
  rank    weight = 1 / (rank + 1), rank 0-based by descending score
  power   weight = (score / max score) ** exponent
"""

from __future__ import annotations

import math
import random
from collections.abc import Sequence
from typing import TypeVar

from .models import Candidate

T = TypeVar("T")


def weighted_draw(items: Sequence[T], weights: Sequence[float], rng: random.Random) -> T:
    """Pick one item with probability proportional to its weight.

    Draws ``r`` uniformly from ``[0, total)`` and returns the first item
    whose cumulative weight reaches ``r``. If rounding leaves the walk
    without a match, the last item is returned.

    Raises:
        ValueError: If ``items`` is empty or lengths differ.
    """
    if not items:
        raise ValueError("Cannot draw from an empty list")
    if len(items) != len(weights):
        raise ValueError(f"Got {len(items)} items but {len(weights)} weights")

    total = sum(weights)
    r = rng.random() * total

    cumulative = 0.0
    for item, weight in zip(items, weights):
        cumulative += weight
        if r <= cumulative:
            return item

    return items[-1]


class WeightingStrategy:
    """Base class: order the pool, weight it, draw once."""

    name = ""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()
        self.rationale = ""

    @property
    def description(self) -> str:
        return self.name

    def order(self, candidates: Sequence[Candidate]) -> list[Candidate]:
        return list(candidates)

    def weights(self, candidates: Sequence[Candidate]) -> list[float]:
        raise NotImplementedError

    def select(self, eligible: Sequence[Candidate]) -> Candidate:
        if not eligible:
            raise ValueError("No eligible candidates to select from")
        if len(eligible) == 1:
            return eligible[0]
        ordered = self.order(eligible)
        return weighted_draw(ordered, self.weights(ordered), self.rng)


class DirectProportionalStrategy(WeightingStrategy):
    """Probability exactly proportional to score."""

    name = "direct"

    @property
    def description(self) -> str:
        return "Direct proportional (TVL)"

    def weights(self, candidates: Sequence[Candidate]) -> list[float]:
        return [c.score for c in candidates]


class SquareRootStrategy(WeightingStrategy):
    """Compresses the dominance of very large scores."""

    name = "sqrt"

    @property
    def description(self) -> str:
        return "Square root transformation"

    def weights(self, candidates: Sequence[Candidate]) -> list[float]:
        return [math.sqrt(c.score) for c in candidates]


class RankBasedStrategy(WeightingStrategy):
    """Only the ordering of scores matters, not their magnitude."""

    name = "rank"

    @property
    def description(self) -> str:
        return "Rank-based"

    def order(self, candidates: Sequence[Candidate]) -> list[Candidate]:
        # sorted() is stable, so equal scores keep their input order
        return sorted(candidates, key=lambda c: c.score, reverse=True)

    def weights(self, candidates: Sequence[Candidate]) -> list[float]:
        return [1 / (rank + 1) for rank in range(len(candidates))]


class PowerStrategy(WeightingStrategy):
    """score ** exponent; exponent > 1 favors large scores more than direct."""

    name = "power"

    def __init__(self, exponent: float = 2.0, rng: random.Random | None = None) -> None:
        super().__init__(rng)
        if exponent <= 0:
            raise ValueError(f"Power exponent must be positive, got {exponent}")
        self.exponent = exponent

    @property
    def description(self) -> str:
        return f"Power function (TVL^{self.exponent})"

    def weights(self, candidates: Sequence[Candidate]) -> list[float]:
        """Weights scaled by the largest score, so the top candidate weighs 1.0.

        (score / top) ** exponent keeps the same proportions as
        score ** exponent but cannot overflow for large exponents.
        """
        top = max((c.score for c in candidates), default=0.0)
        if top <= 0:
            return [0.0 for _ in candidates]
        return [(c.score / top) ** self.exponent for c in candidates]


SCORE_STRATEGIES: dict[str, type[WeightingStrategy]] = {
    DirectProportionalStrategy.name: DirectProportionalStrategy,
    SquareRootStrategy.name: SquareRootStrategy,
    RankBasedStrategy.name: RankBasedStrategy,
    PowerStrategy.name: PowerStrategy,
}
