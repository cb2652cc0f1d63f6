"""Project configuration and paths.

Loads settings from config/settings.yaml, the project .env file and
environment variables (in that order, later sources win).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# === Paths ===
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"

# Load .env from project root
load_dotenv(PROJECT_ROOT / ".env")

STRATEGY_NAMES = ("direct", "sqrt", "rank", "power", "ai")

# Numeric method ids used by the MARKET_SELECTION_METHOD variable
_METHOD_IDS = {str(i): name for i, name in enumerate(STRATEGY_NAMES, start=1)}


def parse_strategy_name(value: Any) -> str:
    """Normalize a strategy name or numeric method id ("1".."5")."""
    text = str(value).strip().lower()
    text = _METHOD_IDS.get(text, text)
    if text not in STRATEGY_NAMES:
        raise ValueError(
            f"Unknown selection strategy {value!r} "
            f"(expected one of {', '.join(STRATEGY_NAMES)} or 1-5)"
        )
    return text


class SelectionSettings(BaseModel):
    """Featured market selection policy."""
    strategy: str = "direct"
    min_score_threshold: float = Field(default=200.0, ge=0, alias="minScoreThreshold")
    power_exponent: float = Field(default=2.0, gt=0, alias="powerExponent")
    shortlist_size: int = Field(default=4, ge=1, alias="shortlistSize")
    exclude_recent_count: int = Field(default=1, ge=0, alias="excludeRecentCount")
    history_retention: int = Field(default=100, ge=1, alias="historyRetention")

    model_config = {"populate_by_name": True}

    @field_validator("strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value: Any) -> str:
        return parse_strategy_name(value)

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> SelectionSettings:
        """Build from a plain key/value mapping (camelCase or snake_case keys)."""
        return cls(**(data or {}))


class DatabaseSettings(BaseModel):
    """Database connection settings."""
    db_path: str = str(DATA_DIR / "featured_markets.db")
    namespace: str = "trueCast"

    @property
    def db_abs_path(self) -> Path:
        """Resolve db_path relative to the project root."""
        p = Path(self.db_path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


class LLMSettings(BaseModel):
    """Relevance ranking model settings."""
    research_model: str = "gpt-4.1"
    ranking_model: str = "gpt-4o-mini"
    search_context_size: str = "high"


class Settings(BaseModel):
    """Top-level application settings."""
    selection: SelectionSettings = Field(default_factory=SelectionSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)

    @classmethod
    def load(cls, path: str | Path | None = None, use_env: bool = True) -> Settings:
        """Load settings from YAML (default config/settings.yaml), then apply env overrides."""
        settings_path = Path(path) if path else CONFIG_DIR / "settings.yaml"
        data: dict[str, Any] = {}
        if settings_path.exists():
            with open(settings_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            # Empty sections fall back to defaults
            data = {key: value for key, value in data.items() if value is not None}
        elif path:
            raise FileNotFoundError(f"Settings file not found: {settings_path}")

        if use_env:
            data = _apply_env_overrides(data)
        return cls(**data)


# Environment variable → (section, field)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "MARKET_SELECTION_METHOD": ("selection", "strategy"),
    "MIN_TVL_THRESHOLD": ("selection", "min_score_threshold"),
    "TVL_POWER": ("selection", "power_exponent"),
    "AI_CANDIDATE_COUNT": ("selection", "shortlist_size"),
    "EXCLUDE_RECENT_COUNT": ("selection", "exclude_recent_count"),
    "FEATURED_HISTORY_RETENTION": ("selection", "history_retention"),
    "DATABASE_PATH": ("database", "db_path"),
    "STORE_NAMESPACE": ("database", "namespace"),
}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in data.items()}
    for env_name, (section, field_name) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value.strip() == "":
            continue
        if not isinstance(merged.get(section), dict):
            merged[section] = {}
        section_data = merged[section]
        # YAML may use the camelCase alias; drop it so the env value wins
        alias = SelectionSettings.model_fields[field_name].alias if section == "selection" else None
        if alias:
            section_data.pop(alias, None)
        section_data[field_name] = value.strip()
    return merged


def get_openai_api_key() -> str:
    """Get OpenAI API key from environment (empty string when unset)."""
    return os.getenv("OPENAI_API_KEY", "")
