"""AI relevance ranking for shortlisted markets.

Two chained OpenAI Responses API calls:

1. Research: a model with the ``web_search_preview`` tool gathers current
   news on each shortlisted market.
2. Ranking: a second model, continuing from the research response, returns
   a structured ``RankingDecision`` (1-based candidate index + reason).

The ranker never raises. Missing credentials, API errors and unparseable
answers all come back as ``RankingResult.failure`` so the calling strategy
can fall back.
"""

from __future__ import annotations

import logging

from openai import OpenAI
from pydantic import BaseModel, Field

from src.common.config import LLMSettings, get_openai_api_key

from .models import RankingResult
from .prompts import build_ranking_prompt, build_research_prompt

logger = logging.getLogger(__name__)


class RankingDecision(BaseModel):
    """Structured answer of the ranking step."""
    selected_candidate_index: int = Field(
        description="The index of the selected candidate (1-based)",
    )
    reason: str = Field(
        description="Brief explanation of why this market was selected based on current news and relevance",
    )


class RelevanceRanker:
    """Rank shortlist entries by current-news relevance via OpenAI.

    Usage:
        ranker = RelevanceRanker()
        result = ranker.rank([{"label": "Will X happen?", "score": 1200.0}, ...])
        if result.ok:
            print(result.index, result.reason)
    """

    def __init__(
        self,
        api_key: str | None = None,
        settings: LLMSettings | None = None,
        client: OpenAI | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else get_openai_api_key()
        self.settings = settings or LLMSettings()
        self._client = client

    def _get_client(self) -> OpenAI:
        """Lazy-initialize the OpenAI client."""
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    @property
    def available(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def rank(self, entries: list[dict]) -> RankingResult:
        """Pick the most newsworthy entry.

        Args:
            entries: Shortlist as ``{"label": str, "score": float}`` dicts.

        Returns:
            RankingResult with a 1-based index on success. The index is
            NOT range-checked here; the caller owns the shortlist.
        """
        if not entries:
            return RankingResult.failure("empty shortlist")
        if not self.available:
            logger.warning("OPENAI_API_KEY not set, skipping AI ranking")
            return RankingResult.failure("OPENAI_API_KEY not set")

        try:
            client = self._get_client()

            logger.info("Researching %d candidate markets with web search...", len(entries))
            research = client.responses.create(
                model=self.settings.research_model,
                input=build_research_prompt(entries),
                tools=[{
                    "type": "web_search_preview",
                    "search_context_size": self.settings.search_context_size,
                }],
            )
            research_text = research.output_text or ""
            logger.info("Web search completed")
            logger.debug("Research notes:\n%s", research_text)

            response = client.responses.parse(
                model=self.settings.ranking_model,
                input=build_ranking_prompt(entries),
                text_format=RankingDecision,
                previous_response_id=research.id,
            )
            decision = response.output_parsed
            if decision is None:
                return RankingResult.failure("ranking response had no parsed decision")

            logger.info(
                "AI ranking complete: candidate %d (%s)",
                decision.selected_candidate_index, decision.reason,
            )
            return RankingResult.success(
                index=decision.selected_candidate_index,
                reason=decision.reason,
                research=research_text,
            )

        except Exception as exc:
            logger.warning("AI ranking failed", exc_info=True)
            return RankingResult.failure(f"{type(exc).__name__}: {exc}")


class MockRelevanceRanker(RelevanceRanker):
    """Offline ranker for tests and dry runs.

    Always answers with the configured index (or failure when ``error`` is
    set) and records every shortlist it was shown.
    """

    def __init__(self, index: int = 1, reason: str = "mock ranking", error: str = "") -> None:
        super().__init__(api_key="mock")
        self.index = index
        self.reason = reason
        self.error = error
        self.calls: list[list[dict]] = []

    def rank(self, entries: list[dict]) -> RankingResult:
        self.calls.append([dict(e) for e in entries])
        if self.error:
            return RankingResult.failure(self.error)
        return RankingResult.success(index=self.index, reason=self.reason)
