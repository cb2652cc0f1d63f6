"""Shared test fixtures for the featured market engine."""

import random
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure src is importable
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.common.config import Settings, SelectionSettings
from src.featured_market.models import Candidate, SelectionRecord
from src.featured_market.store import SQLiteMarketStore

_SETTINGS_ENV_VARS = (
    "MARKET_SELECTION_METHOD",
    "MIN_TVL_THRESHOLD",
    "TVL_POWER",
    "AI_CANDIDATE_COUNT",
    "EXCLUDE_RECENT_COUNT",
    "FEATURED_HISTORY_RETENTION",
    "DATABASE_PATH",
    "STORE_NAMESPACE",
    "OPENAI_API_KEY",
)


class FixedRandom(random.Random):
    """Random source whose random() always returns the same value."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the runner's environment out of settings loading."""
    for name in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fixed_random():
    """Factory for FixedRandom sources."""
    return FixedRandom


@pytest.fixture
def make_settings():
    """Build Settings with selection overrides (snake_case or camelCase)."""

    def _make(**selection) -> Settings:
        return Settings(selection=SelectionSettings(**selection))

    return _make


@pytest.fixture
def sample_markets() -> list[dict]:
    """Stored market payloads: A=1000, B=500, C=100."""
    return [
        {"marketAddress": "A", "marketQuestion": "Will A happen?", "tvl": 1000, "category": "politics"},
        {"marketAddress": "B", "marketQuestion": "Will B happen?", "tvl": 500, "category": "sports"},
        {"marketAddress": "C", "marketQuestion": "Will C happen?", "tvl": 100, "category": "crypto"},
    ]


@pytest.fixture
def sample_pool(sample_markets) -> list[Candidate]:
    return [Candidate.from_dict(m) for m in sample_markets]


@pytest.fixture
def make_record():
    """Build a SelectionRecord for a candidate id."""

    def _make(market_id: str, score: float = 1000.0, when: datetime | None = None) -> SelectionRecord:
        return SelectionRecord(
            candidate=Candidate(id=market_id, label=f"Will {market_id} happen?", score=score),
            selected_at=when or datetime(2026, 1, 1, tzinfo=timezone.utc),
            strategy="direct",
        )

    return _make


@pytest.fixture
def temp_store(tmp_path) -> SQLiteMarketStore:
    """SQLite store on a temporary database."""
    return SQLiteMarketStore(tmp_path / "test_featured.db")


@pytest.fixture
def loaded_store(temp_store, sample_markets) -> SQLiteMarketStore:
    """Temporary store pre-loaded with the sample markets."""
    for i, market in enumerate(sample_markets, 1):
        temp_store.put_market(i, market)
    return temp_store
