"""Data models for the featured market engine.

All models use @dataclass with to_dict() for JSON serialization. Stored
market payloads use the market updater's camelCase keys
(``marketAddress``, ``marketQuestion``, ``tvl``); the engine works with
the neutral ``id`` / ``label`` / ``score`` view.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Stored key ↔ engine field
_ID_KEYS = ("id", "marketAddress")
_LABEL_KEYS = ("label", "marketQuestion")
_SCORE_KEYS = ("score", "tvl")
_RECORD_KEYS = ("selectedAt", "strategy", "reason")


class SelectionError(Exception):
    """Base error for the selection engine."""


class StoreUnavailableError(SelectionError):
    """The candidate store or history sink cannot be reached."""


class MalformedRecordError(SelectionError, ValueError):
    """A single stored record could not be parsed."""


def _first_present(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def coerce_score(value: Any) -> float:
    """Turn a stored score into a non-negative float; anything unusable is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace(",", "")
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score) or math.isinf(score) or score < 0:
        return 0.0
    return score


@dataclass(frozen=True)
class Candidate:
    """A scored market that can be featured."""

    id: str
    label: str = ""
    score: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: Any) -> Candidate:
        """Parse a stored market record.

        Raises:
            MalformedRecordError: If the record is not a mapping or has no id.
        """
        if not isinstance(data, dict):
            raise MalformedRecordError(f"Market record must be an object, got {type(data).__name__}")

        raw_id = _first_present(data, _ID_KEYS)
        if raw_id is None or isinstance(raw_id, (dict, list, bool)) or not str(raw_id).strip():
            raise MalformedRecordError("Market record has no id")

        label = _first_present(data, _LABEL_KEYS)
        extra = {
            k: v for k, v in data.items()
            if k not in _ID_KEYS + _LABEL_KEYS + _SCORE_KEYS + _RECORD_KEYS
        }
        return cls(
            id=str(raw_id).strip(),
            label="" if label is None else str(label),
            score=coerce_score(_first_present(data, _SCORE_KEYS)),
            extra=extra,
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "marketAddress": self.id,
            "marketQuestion": self.label,
            "tvl": self.score,
        }

    def snapshot(self) -> Candidate:
        """Detached copy, so later edits to the source dict never leak into history."""
        return Candidate(id=self.id, label=self.label, score=self.score, extra=dict(self.extra))


def _to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(round(moment.timestamp() * 1000))


def _ms_to_datetime(value: float) -> datetime:
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedRecordError(f"selectedAt out of range: {value!r}") from exc


def _from_epoch_ms(value: Any) -> datetime:
    if isinstance(value, bool):
        raise MalformedRecordError("selectedAt must be a timestamp")
    if isinstance(value, (int, float)):
        return _ms_to_datetime(value)
    if isinstance(value, str):
        try:
            millis = float(value)
        except ValueError:
            millis = None
        if millis is not None:
            return _ms_to_datetime(millis)
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError as exc:
            raise MalformedRecordError(f"Invalid selectedAt: {value!r}") from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise MalformedRecordError(f"Invalid selectedAt: {value!r}")


@dataclass(frozen=True)
class SelectionRecord:
    """One completed featured market selection."""

    candidate: Candidate
    selected_at: datetime
    strategy: str = ""
    reason: str = ""

    @property
    def selected_at_ms(self) -> int:
        return _to_epoch_ms(self.selected_at)

    def to_dict(self) -> dict:
        data = self.candidate.to_dict()
        data["selectedAt"] = self.selected_at_ms
        if self.strategy:
            data["strategy"] = self.strategy
        if self.reason:
            data["reason"] = self.reason
        return data

    @classmethod
    def from_dict(cls, data: Any) -> SelectionRecord:
        """Parse a stored history entry.

        Raises:
            MalformedRecordError: If the entry has no candidate id or timestamp.
        """
        candidate = Candidate.from_dict(data)
        if data.get("selectedAt") is None:
            raise MalformedRecordError("History entry has no selectedAt")
        return cls(
            candidate=candidate,
            selected_at=_from_epoch_ms(data["selectedAt"]),
            strategy=str(data.get("strategy") or ""),
            reason=str(data.get("reason") or ""),
        )


@dataclass(frozen=True)
class RankingResult:
    """Outcome of a relevance ranking call: a 1-based pick or a failure."""

    ok: bool
    index: int | None = None
    reason: str = ""
    error: str = ""
    research: str = ""

    @classmethod
    def success(cls, index: int, reason: str, research: str = "") -> RankingResult:
        return cls(ok=True, index=index, reason=reason, research=research)

    @classmethod
    def failure(cls, error: str) -> RankingResult:
        return cls(ok=False, error=error)


@dataclass
class SelectionRunResult:
    """Outcome of one orchestrator run."""

    strategy: str
    pool_size: int = 0
    eligible_count: int = 0
    excluded_ids: list[str] = field(default_factory=list)
    record: SelectionRecord | None = None
    skipped_reason: str = ""

    @property
    def selected(self) -> bool:
        return self.record is not None

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "pool_size": self.pool_size,
            "eligible_count": self.eligible_count,
            "excluded_ids": list(self.excluded_ids),
            "selected": self.selected,
            "record": self.record.to_dict() if self.record else None,
            "skipped_reason": self.skipped_reason,
        }
