"""Featured Market Engine: picks the next featured prediction market.

Weights the active market pool by TVL (direct, sqrt, rank, power or
AI-assisted), skips recently featured markets and records each pick in a
retention-capped history.
"""

from .models import (
    Candidate,
    MalformedRecordError,
    RankingResult,
    SelectionError,
    SelectionRecord,
    SelectionRunResult,
    StoreUnavailableError,
)
from .orchestrator import FeaturedMarketSelector, build_strategy

__all__ = [
    "Candidate",
    "FeaturedMarketSelector",
    "MalformedRecordError",
    "RankingResult",
    "SelectionError",
    "SelectionRecord",
    "SelectionRunResult",
    "StoreUnavailableError",
    "build_strategy",
]
