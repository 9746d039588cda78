"""
Persist trades, broker status, settings and the strategy list (SQLite).

Simple document store keyed by id (trades), broker name (brokers) or a fixed
singleton key (settings, strategies). Each call is one transaction: a bulk put
either lands completely or not at all. sqlite3 errors surface as StoreError.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import timezone
from pathlib import Path
from typing import Iterator, Sequence

from tradebook_core.contracts import DEFAULT_STRATEGIES, AppSettings, BrokerStatus, Trade
from tradebook_core.errors import StoreError, ValidationError

from data.serialization import (
    broker_from_dict,
    broker_to_dict,
    check_trade_document,
    settings_from_dict,
    settings_to_dict,
    trade_from_dict,
    trade_to_dict,
)

_SETTINGS_KEY = "app_settings"
_STRATEGIES_KEY = "user_strategies"


class TradeStore:
    """SQLite-backed journal store. One file per path."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot create store directory {self._path.parent}: {exc}") from exc
        self._init_schema()

    @property
    def path(self) -> Path:
        return self._path

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._path), timeout=10.0)

    @contextmanager
    def _tx(self, action: str) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on any error; sqlite errors become StoreError."""
        try:
            conn = self._conn()
        except sqlite3.Error as exc:
            raise StoreError(f"{action}: cannot open {self._path}: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(f"{action} failed: {exc}") from exc
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._tx("init schema") as c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS trades (
                    id TEXT PRIMARY KEY,
                    date_utc TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    broker TEXT NOT NULL,
                    doc TEXT NOT NULL
                )
                """
            )
            c.execute("CREATE INDEX IF NOT EXISTS idx_trades_date ON trades (date_utc)")
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS brokers (
                    name TEXT PRIMARY KEY,
                    doc TEXT NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS singletons (
                    id TEXT PRIMARY KEY,
                    doc TEXT NOT NULL
                )
                """
            )

    # --- trades ---

    @staticmethod
    def _trade_row(trade: Trade) -> tuple[str, str, str, str, str]:
        return (
            trade.id,
            trade.date.astimezone(timezone.utc).isoformat(),
            trade.symbol,
            trade.broker.value,
            json.dumps(check_trade_document(trade_to_dict(trade))),
        )

    def get_all_trades(self) -> list[Trade]:
        """All trades, oldest first."""
        with self._tx("read trades") as c:
            rows = c.execute("SELECT id, doc FROM trades ORDER BY date_utc ASC, id ASC").fetchall()
        out: list[Trade] = []
        for trade_id, doc in rows:
            try:
                out.append(trade_from_dict(json.loads(doc)))
            except (json.JSONDecodeError, ValidationError) as exc:
                raise StoreError(f"Corrupt trade record {trade_id!r}: {exc}") from exc
        return out

    def put_trade(self, trade: Trade) -> None:
        """Insert or replace one trade (last write wins per id)."""
        self.put_trades_bulk([trade])

    def put_trades_bulk(self, trades: Sequence[Trade]) -> None:
        """Insert or replace many trades in a single transaction."""
        rows = [self._trade_row(t) for t in trades]
        if not rows:
            return
        with self._tx(f"write {len(rows)} trades") as c:
            c.executemany(
                "INSERT OR REPLACE INTO trades (id, date_utc, symbol, broker, doc) VALUES (?, ?, ?, ?, ?)",
                rows,
            )

    def count_trades(self) -> int:
        with self._tx("count trades") as c:
            row = c.execute("SELECT COUNT(*) FROM trades").fetchone()
        return row[0] if row else 0

    # --- brokers ---

    def get_all_brokers(self) -> list[BrokerStatus]:
        with self._tx("read brokers") as c:
            rows = c.execute("SELECT name, doc FROM brokers").fetchall()
        out: list[BrokerStatus] = []
        for name, doc in rows:
            try:
                out.append(broker_from_dict(json.loads(doc)))
            except (json.JSONDecodeError, KeyError, ValidationError) as exc:
                raise StoreError(f"Corrupt broker record {name!r}: {exc}") from exc
        return out

    def put_broker(self, status: BrokerStatus) -> None:
        with self._tx(f"write broker {status.name.value}") as c:
            c.execute(
                "INSERT OR REPLACE INTO brokers (name, doc) VALUES (?, ?)",
                (status.name.value, json.dumps(broker_to_dict(status))),
            )

    # --- singletons ---

    def _get_singleton(self, key: str) -> dict | None:
        with self._tx(f"read {key}") as c:
            row = c.execute("SELECT doc FROM singletons WHERE id = ?", (key,)).fetchone()
        if not row:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt {key} record: {exc}") from exc

    def _put_singleton(self, key: str, doc: dict) -> None:
        with self._tx(f"write {key}") as c:
            c.execute("INSERT OR REPLACE INTO singletons (id, doc) VALUES (?, ?)", (key, json.dumps(doc)))

    def get_settings(self) -> AppSettings:
        doc = self._get_singleton(_SETTINGS_KEY)
        return settings_from_dict(doc) if doc else AppSettings()

    def put_settings(self, settings: AppSettings) -> None:
        self._put_singleton(_SETTINGS_KEY, settings_to_dict(settings))

    def get_strategies(self) -> list[str]:
        doc = self._get_singleton(_STRATEGIES_KEY)
        if not doc or not doc.get("list"):
            return list(DEFAULT_STRATEGIES)
        return [str(s) for s in doc["list"]]

    def put_strategies(self, strategies: Sequence[str]) -> None:
        self._put_singleton(_STRATEGIES_KEY, {"list": list(strategies)})
