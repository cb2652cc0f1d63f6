"""Tests for the OpenAI relevance ranker and its prompts."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

from src.common.config import LLMSettings
from src.featured_market.prompts import (
    build_ranking_prompt,
    build_research_prompt,
    format_candidates,
)
from src.featured_market.ranker import (
    MockRelevanceRanker,
    RankingDecision,
    RelevanceRanker,
)

ENTRIES = [
    {"label": "Will the Fed cut rates in March?", "score": 12500.0},
    {"label": "Will BTC close above $100k?", "score": 8300.0},
    {"label": "Will it snow in Lisbon?", "score": 410.0},
]


def _mock_client(decision: RankingDecision | None = None, research_text: str = "Fed meeting next week") -> MagicMock:
    client = MagicMock()
    client.responses.create.return_value = SimpleNamespace(id="resp_123", output_text=research_text)
    client.responses.parse.return_value = SimpleNamespace(output_parsed=decision)
    return client


class TestPrompts:

    def test_format_candidates(self):
        text = format_candidates(ENTRIES[:2])
        assert text.splitlines() == [
            'Candidate 1: "Will the Fed cut rates in March?" (TVL: $12,500)',
            'Candidate 2: "Will BTC close above $100k?" (TVL: $8,300)',
        ]

    def test_research_prompt_lists_candidates(self):
        prompt = build_research_prompt(ENTRIES)
        assert "Candidate 3: \"Will it snow in Lisbon?\"" in prompt
        assert "latest news" in prompt

    def test_ranking_prompt_states_range(self):
        assert "(1 to 3)" in build_ranking_prompt(ENTRIES)


class TestRelevanceRanker:

    def test_missing_api_key_fails_without_calling_api(self):
        ranker = RelevanceRanker(api_key="")
        result = ranker.rank(ENTRIES)
        assert not result.ok
        assert "OPENAI_API_KEY" in result.error
        assert ranker._client is None

    def test_reads_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert RelevanceRanker().api_key == "sk-test"

    def test_empty_shortlist_fails(self):
        result = RelevanceRanker(client=_mock_client()).rank([])
        assert not result.ok

    def test_successful_ranking(self):
        client = _mock_client(RankingDecision(selected_candidate_index=2, reason="Crypto rally"))
        ranker = RelevanceRanker(api_key="sk-test", client=client)

        result = ranker.rank(ENTRIES)

        assert result.ok
        assert result.index == 2
        assert result.reason == "Crypto rally"
        assert result.research == "Fed meeting next week"

    def test_research_uses_web_search_tool(self):
        client = _mock_client(RankingDecision(selected_candidate_index=1, reason="r"))
        settings = LLMSettings(research_model="gpt-4.1", search_context_size="medium")

        RelevanceRanker(api_key="sk-test", settings=settings, client=client).rank(ENTRIES)

        kwargs = client.responses.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4.1"
        assert kwargs["tools"] == [{"type": "web_search_preview", "search_context_size": "medium"}]
        assert "Will the Fed cut rates in March?" in kwargs["input"]

    def test_ranking_continues_research_response(self):
        client = _mock_client(RankingDecision(selected_candidate_index=1, reason="r"))

        RelevanceRanker(api_key="sk-test", client=client).rank(ENTRIES)

        kwargs = client.responses.parse.call_args.kwargs
        assert kwargs["previous_response_id"] == "resp_123"
        assert kwargs["text_format"] is RankingDecision
        assert kwargs["model"] == "gpt-4o-mini"

    def test_index_is_not_range_checked(self):
        client = _mock_client(RankingDecision(selected_candidate_index=9, reason="r"))
        result = RelevanceRanker(api_key="sk-test", client=client).rank(ENTRIES)
        assert result.ok
        assert result.index == 9

    def test_unparsed_response_fails(self):
        result = RelevanceRanker(api_key="sk-test", client=_mock_client(None)).rank(ENTRIES)
        assert not result.ok
        assert "no parsed decision" in result.error

    def test_api_error_becomes_failure(self):
        client = _mock_client()
        client.responses.create.side_effect = RuntimeError("503 Service Unavailable")

        result = RelevanceRanker(api_key="sk-test", client=client).rank(ENTRIES)

        assert not result.ok
        assert result.error == "RuntimeError: 503 Service Unavailable"
        client.responses.parse.assert_not_called()

    def test_parse_error_becomes_failure(self):
        client = _mock_client()
        client.responses.parse.side_effect = ValueError("schema mismatch")

        result = RelevanceRanker(api_key="sk-test", client=client).rank(ENTRIES)

        assert not result.ok
        assert "schema mismatch" in result.error


class TestMockRelevanceRanker:

    def test_records_calls(self):
        ranker = MockRelevanceRanker(index=2, reason="because")
        result = ranker.rank(ENTRIES)
        assert result.ok and result.index == 2 and result.reason == "because"
        assert ranker.calls == [ENTRIES]

    def test_configured_error(self):
        result = MockRelevanceRanker(error="down").rank(ENTRIES)
        assert not result.ok
        assert result.error == "down"
