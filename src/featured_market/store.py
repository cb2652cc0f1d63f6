"""Candidate store and featured history persistence.

``MarketStore`` is the narrow contract the orchestrator depends on:

    list_candidates()                    active pool, malformed rows skipped
    list_recent_selections(n)            newest-first history window
    append_selection(record, retention)  push to front, trim to retention

``SQLiteMarketStore`` is the durable implementation; ``InMemoryMarketStore``
keeps the same contract in plain lists for tests and dry runs.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Protocol

from src.common.database import get_connection, init_db

from .models import (
    Candidate,
    MalformedRecordError,
    SelectionRecord,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "trueCast"


class MarketStore(Protocol):
    def list_candidates(self) -> list[Candidate]: ...

    def list_recent_selections(self, n: int) -> list[SelectionRecord]: ...

    def append_selection(self, record: SelectionRecord, retention: int) -> None: ...


def parse_candidates(payloads: list[Any]) -> list[Candidate]:
    """Parse raw market payloads (JSON strings or dicts), skipping bad ones."""
    candidates: list[Candidate] = []
    for payload in payloads:
        try:
            data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
            candidates.append(Candidate.from_dict(data))
        except (json.JSONDecodeError, UnicodeDecodeError, MalformedRecordError) as exc:
            logger.warning("Skipping malformed market record: %s", exc)
    return candidates


def parse_selections(payloads: list[Any]) -> list[SelectionRecord]:
    """Parse raw history entries, skipping bad ones."""
    records: list[SelectionRecord] = []
    for payload in payloads:
        try:
            data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
            records.append(SelectionRecord.from_dict(data))
        except (json.JSONDecodeError, UnicodeDecodeError, MalformedRecordError) as exc:
            logger.warning("Skipping malformed featured market entry: %s", exc)
    return records


class SQLiteMarketStore:
    """SQLite-backed candidate pool and featured history.

    Usage:
        store = SQLiteMarketStore("data/featured_markets.db")
        pool = store.list_candidates()
        store.append_selection(record, retention=100)
    """

    def __init__(self, db_path: str | Path, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.db_path = Path(db_path)
        self.namespace = namespace
        try:
            init_db(self.db_path)
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailableError(f"Cannot open market store at {self.db_path}: {exc}") from exc

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path)
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailableError(f"Cannot open market store at {self.db_path}: {exc}") from exc

    def _fetch_payloads(self, sql: str, params: tuple) -> list[str]:
        conn = self._connect()
        try:
            return [row["payload"] for row in conn.execute(sql, params).fetchall()]
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Market store read failed: {exc}") from exc
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Candidate pool
    # ------------------------------------------------------------------

    def list_candidates(self) -> list[Candidate]:
        payloads = self._fetch_payloads(
            "SELECT payload FROM active_markets WHERE namespace = ? ORDER BY market_id",
            (self.namespace,),
        )
        return parse_candidates(payloads)

    def put_market(self, market_id: int, payload: dict | str) -> None:
        """Insert or replace one active market payload."""
        text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO active_markets (namespace, market_id, payload, updated_at) "
                    "VALUES (?, ?, ?, datetime('now')) "
                    "ON CONFLICT(namespace, market_id) DO UPDATE SET "
                    "payload = excluded.payload, updated_at = excluded.updated_at",
                    (self.namespace, int(market_id), text),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Market store write failed: {exc}") from exc
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Featured history
    # ------------------------------------------------------------------

    def list_recent_selections(self, n: int) -> list[SelectionRecord]:
        if n <= 0:
            return []
        payloads = self._fetch_payloads(
            "SELECT payload FROM featured_markets WHERE namespace = ? ORDER BY id DESC LIMIT ?",
            (self.namespace, n),
        )
        return parse_selections(payloads)

    def list_featured(self, limit: int | None = None) -> list[SelectionRecord]:
        """Featured history newest-first; all entries when ``limit`` is None."""
        payloads = self._fetch_payloads(
            "SELECT payload FROM featured_markets WHERE namespace = ? ORDER BY id DESC LIMIT ?",
            (self.namespace, -1 if limit is None else limit),
        )
        return parse_selections(payloads)

    def history_length(self) -> int:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM featured_markets WHERE namespace = ?",
                (self.namespace,),
            ).fetchone()
            return int(row["n"])
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Market store read failed: {exc}") from exc
        finally:
            conn.close()

    def append_selection(self, record: SelectionRecord, retention: int) -> None:
        """Push a record to the front of the history and trim to ``retention``.

        Insert and trim commit together.
        """
        if retention < 1:
            raise ValueError(f"History retention must be at least 1, got {retention}")
        payload = json.dumps(record.to_dict(), ensure_ascii=False)
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO featured_markets (namespace, payload, selected_at) VALUES (?, ?, ?)",
                    (self.namespace, payload, record.selected_at.isoformat()),
                )
                conn.execute(
                    "DELETE FROM featured_markets WHERE namespace = ? AND id NOT IN ("
                    "SELECT id FROM featured_markets WHERE namespace = ? ORDER BY id DESC LIMIT ?)",
                    (self.namespace, self.namespace, retention),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Featured history write failed: {exc}") from exc
        finally:
            conn.close()


class InMemoryMarketStore:
    """List-backed store with the same contract as SQLiteMarketStore.

    Market payloads are kept raw so malformed entries behave as they would
    in the database.
    """

    def __init__(
        self,
        markets: list[Any] | None = None,
        history: list[Any] | None = None,
    ) -> None:
        self.markets: list[Any] = list(markets or [])
        # Newest first
        self.history: list[Any] = list(history or [])
        self.available = True

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailableError("In-memory store marked unavailable")

    def list_candidates(self) -> list[Candidate]:
        self._check()
        return parse_candidates(self.markets)

    def list_recent_selections(self, n: int) -> list[SelectionRecord]:
        self._check()
        if n <= 0:
            return []
        return parse_selections(self.history[:n])

    def list_featured(self, limit: int | None = None) -> list[SelectionRecord]:
        self._check()
        return parse_selections(self.history if limit is None else self.history[:limit])

    def append_selection(self, record: SelectionRecord, retention: int) -> None:
        self._check()
        if retention < 1:
            raise ValueError(f"History retention must be at least 1, got {retention}")
        self.history.insert(0, json.dumps(record.to_dict(), ensure_ascii=False))
        del self.history[retention:]
