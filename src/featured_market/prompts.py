"""Prompt templates for the relevance ranking collaborator."""

from __future__ import annotations

RESEARCH_PROMPT = """Research the latest news and information about these prediction market topics:
{candidates}

For each candidate, find out:
1. How relevant is this topic to current events?
2. What recent news or developments might impact this market?
3. How much public interest exists in this topic right now?

Be thorough in your research as your findings will be used to select one market to feature."""

RANKING_PROMPT = """Based on your research about these prediction markets:
{candidates}

Select the ONE market that has the most relevance to current events and news. Consider:
1. Which market question relates to the most trending or important current news
2. Which market will generate the most interest from users right now
3. Which market has the most significant recent developments that could impact its outcome

Return the candidate number (1 to {count}) and a brief reason explaining why it's the most newsworthy or relevant right now."""


def format_candidates(entries: list[dict]) -> str:
    """Render shortlist entries as numbered lines.

    Example:
        Candidate 1: "Will X happen by June?" (TVL: $1,250)
    """
    lines = []
    for i, entry in enumerate(entries, 1):
        score = float(entry.get("score") or 0)
        lines.append(f'Candidate {i}: "{entry.get("label", "")}" (TVL: ${score:,.0f})')
    return "\n".join(lines)


def build_research_prompt(entries: list[dict]) -> str:
    return RESEARCH_PROMPT.format(candidates=format_candidates(entries))


def build_ranking_prompt(entries: list[dict]) -> str:
    return RANKING_PROMPT.format(candidates=format_candidates(entries), count=len(entries))
