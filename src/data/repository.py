"""
TradeRepository: the single owner of journal state (trades, brokers, settings, strategies).

Every mutation validates, writes the store, and only then updates the in-memory
view. A StoreError leaves memory exactly as it was. Newly created trades are
handed to the webhook sync after a successful add or import.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from typing import Iterable, Protocol, Sequence

from tradebook_core.contracts import (
    DEFAULT_TZ,
    AppSettings,
    Broker,
    BrokerStatus,
    GroupedTrade,
    Metrics,
    Trade,
)
from tradebook_core.errors import ValidationError
from tradebook_core.metrics import compute_metrics
from tradebook_core.validation import coerce_broker, validate_trade

from data.serialization import default_brokers
from data.trade_store import TradeStore

logger = logging.getLogger("tradebook.repository")


class TradeSync(Protocol):
    def push(self, trades: Sequence[Trade], url: str | None = None) -> bool: ...


def _newest_first(trades: Iterable[Trade]) -> list[Trade]:
    return sorted(trades, key=lambda t: t.date, reverse=True)


class TradeRepository:
    """In-memory journal view backed by a TradeStore."""

    def __init__(self, store: TradeStore, *, sync: TradeSync | None = None, tz: tzinfo = DEFAULT_TZ) -> None:
        self._store = store
        self._sync = sync
        self._tz = tz
        self._trades: list[Trade] = []
        self._brokers: list[BrokerStatus] = default_brokers()
        self._settings = AppSettings()
        self._strategies: list[str] = []
        self._tickets = itertools.count(1)
        self._active_ticket: int | None = None

    # --- loading / read access ---

    def load(self) -> TradeRepository:
        trades = self._store.get_all_trades()
        stored = {b.name: b for b in self._store.get_all_brokers()}
        settings = self._store.get_settings()
        strategies = self._store.get_strategies()

        self._trades = _newest_first(trades)
        self._brokers = [stored.get(b.name, b) for b in default_brokers()]
        self._settings = settings
        self._strategies = strategies
        logger.info("Loaded %d trades from %s", len(self._trades), self._store.path)
        return self

    @property
    def trades(self) -> list[Trade]:
        """All trades, newest first (a copy)."""
        return list(self._trades)

    @property
    def brokers(self) -> list[BrokerStatus]:
        return list(self._brokers)

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def strategies(self) -> list[str]:
        return list(self._strategies)

    def get(self, trade_id: str) -> Trade | None:
        for t in self._trades:
            if t.id == trade_id:
                return t
        return None

    def metrics(self, *, now: datetime | None = None) -> Metrics:
        return compute_metrics(self._trades, now=now, tz=self._tz)

    # --- trade mutations ---

    def add_trade(self, trade: Trade) -> Trade:
        validate_trade(trade)
        if self.get(trade.id) is not None:
            raise ValidationError(f"Trade {trade.id!r} already exists")
        self._store.put_trade(trade)
        self._trades = _newest_first([trade, *self._trades])
        logger.info("Added trade %s %s x%d", trade.symbol, trade.broker.value, trade.quantity)
        self._push([trade])
        return trade

    def update_trade(self, trade: Trade) -> Trade:
        return self.update_trades_bulk([trade])[0]

    def update_trades_bulk(self, trades: Sequence[Trade]) -> list[Trade]:
        """Replace existing trades by id in one store transaction."""
        updates = list(trades)
        known = {t.id for t in self._trades}
        for t in updates:
            validate_trade(t)
            if t.id not in known:
                raise ValidationError(f"Cannot update unknown trade {t.id!r}")
        if not updates:
            return []
        self._store.put_trades_bulk(updates)
        by_id = {t.id: t for t in updates}
        self._trades = _newest_first(by_id.get(t.id, t) for t in self._trades)
        logger.info("Updated %d trades", len(updates))
        return updates

    def begin_import(self) -> int:
        """Start an import; only the most recent ticket may complete."""
        self._active_ticket = next(self._tickets)
        return self._active_ticket

    def import_trades(self, trades: Iterable[Trade], ticket: int | None = None) -> list[Trade] | None:
        """Persist matcher output. Returns the trades actually added, or None for a stale ticket.

        Trades whose id is already present (or repeated within the batch) are skipped,
        so re-importing the same export is a no-op.
        """
        if ticket is not None:
            if ticket != self._active_ticket:
                logger.info("Ignoring stale import ticket %d (active: %s)", ticket, self._active_ticket)
                return None
            self._active_ticket = None

        seen = {t.id for t in self._trades}
        new: list[Trade] = []
        for t in trades:
            validate_trade(t)
            if t.id in seen:
                continue
            seen.add(t.id)
            new.append(t)
        if not new:
            logger.info("Import added no new trades")
            return []

        self._store.put_trades_bulk(new)
        self._trades = _newest_first([*new, *self._trades])
        logger.info("Imported %d new trades", len(new))
        self._push(new)
        return new

    def annotate_group(
        self,
        group: GroupedTrade,
        *,
        strategy: str | None = None,
        confidence: int | None = None,
        notes: str | None = None,
        mistake: str | None = None,
    ) -> list[Trade]:
        """Apply the same journal fields to every trade of *group*; None leaves a field as is."""
        changes: dict = {}
        if strategy is not None:
            changes["strategy"] = strategy.strip()
        if confidence is not None:
            changes["confidence"] = confidence
        if notes is not None:
            changes["notes"] = notes
        if mistake is not None:
            changes["mistake"] = mistake
        if not changes:
            return []
        return self.update_trades_bulk([replace(t, **changes) for t in group.trades])

    # --- strategies / settings / brokers ---

    def add_strategy(self, name: str) -> list[str]:
        name = name.strip()
        if not name:
            raise ValidationError("Strategy name must be non-empty")
        if name in self._strategies:
            return self.strategies
        updated = [*self._strategies, name]
        self._store.put_strategies(updated)
        self._strategies = updated
        return self.strategies

    def save_settings(self, settings: AppSettings) -> AppSettings:
        self._store.put_settings(settings)
        self._settings = settings
        return settings

    def _broker_status(self, name: Broker | str) -> BrokerStatus:
        broker = coerce_broker(name)
        for b in self._brokers:
            if b.name is broker:
                return b
        return BrokerStatus(name=broker)

    def _put_broker(self, status: BrokerStatus) -> BrokerStatus:
        self._store.put_broker(status)
        self._brokers = [status if b.name is status.name else b for b in self._brokers]
        return status

    def toggle_broker(self, name: Broker | str) -> BrokerStatus:
        current = self._broker_status(name)
        return self._put_broker(replace(current, is_connected=not current.is_connected))

    def record_broker_sync(self, name: Broker | str, when: datetime | None = None) -> BrokerStatus:
        current = self._broker_status(name)
        return self._put_broker(replace(current, last_sync=when or datetime.now(timezone.utc)))

    # --- sync ---

    def _push(self, trades: Sequence[Trade]) -> None:
        if self._sync is None or not trades:
            return
        self._sync.push(trades, url=self._settings.sheet_webhook_url)
