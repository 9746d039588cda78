"""Tests for TradeRepository: write-through state, idempotent import, single-flight tickets."""

from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from data.repository import TradeRepository
from data.trade_store import TradeStore
from tradebook_core.contracts import AppSettings, Broker
from tradebook_core.errors import StoreError, ValidationError
from tradebook_core.grouping import group_by_day_symbol_broker
from tradebook_core.matcher import import_tradebook


@pytest.fixture
def store(tmp_path: Path) -> TradeStore:
    return TradeStore(tmp_path / "journal.db")


@pytest.fixture
def sync() -> MagicMock:
    return MagicMock()


@pytest.fixture
def repo(store: TradeStore, sync: MagicMock) -> TradeRepository:
    return TradeRepository(store, sync=sync).load()


class TestLoad:
    def test_defaults_on_empty_store(self, repo: TradeRepository) -> None:
        assert repo.trades == []
        assert [b.name for b in repo.brokers] == list(Broker)
        assert not any(b.is_connected for b in repo.brokers)
        assert repo.strategies == ["Manual", "Trend-Following", "Mean-Reversion", "Breakout"]
        assert repo.settings == AppSettings()

    def test_trades_newest_first(self, store: TradeStore, sample_trades) -> None:
        store.put_trades_bulk(sample_trades)
        repo = TradeRepository(store).load()
        assert [t.id for t in repo.trades] == ["t5", "t4", "t3", "t2", "t1"]


class TestAddAndUpdate:
    def test_add_writes_store_then_memory_and_syncs(self, repo, store, sync, make_trade, ts) -> None:
        trade = make_trade("a", ts(2024, 3, 4))
        repo.add_trade(trade)
        assert repo.get("a") == trade
        assert [t.id for t in store.get_all_trades()] == ["a"]
        sync.push.assert_called_once_with([trade], url=None)

    def test_sync_uses_saved_webhook(self, repo, sync, make_trade, ts) -> None:
        repo.save_settings(AppSettings(sheet_webhook_url="https://example.test/hook"))
        repo.add_trade(make_trade("a", ts(2024, 3, 4)))
        assert sync.push.call_args.kwargs["url"] == "https://example.test/hook"

    def test_duplicate_id_rejected(self, repo, make_trade, ts) -> None:
        repo.add_trade(make_trade("a", ts(2024, 3, 4)))
        with pytest.raises(ValidationError, match="already exists"):
            repo.add_trade(make_trade("a", ts(2024, 3, 5)))

    def test_invalid_trade_never_reaches_store(self, repo, store, make_trade, ts) -> None:
        with pytest.raises(ValidationError):
            repo.add_trade(replace(make_trade("a", ts(2024, 3, 4)), quantity=0))
        assert store.get_all_trades() == []
        assert repo.trades == []

    def test_store_failure_leaves_memory_unchanged(self, repo, store, sync, make_trade, ts) -> None:
        store.put_trade = MagicMock(side_effect=StoreError("disk full"))
        with pytest.raises(StoreError):
            repo.add_trade(make_trade("a", ts(2024, 3, 4)))
        assert repo.trades == []
        sync.push.assert_not_called()

    def test_update_unknown_id(self, repo, make_trade, ts) -> None:
        with pytest.raises(ValidationError, match="unknown trade"):
            repo.update_trade(make_trade("ghost", ts(2024, 3, 4)))

    def test_update_replaces_in_place(self, repo, store, make_trade, ts) -> None:
        trade = repo.add_trade(make_trade("a", ts(2024, 3, 4)))
        repo.update_trade(replace(trade, notes="moved stop"))
        assert repo.get("a").notes == "moved stop"
        assert store.get_all_trades()[0].notes == "moved stop"

    def test_annotate_group_updates_every_execution(self, repo, sample_trades) -> None:
        repo.import_trades(sample_trades)
        group = next(g for g in group_by_day_symbol_broker(repo.trades) if g.id == "2024-03-04_INFY_Zerodha")
        updated = repo.annotate_group(group, strategy="Scalp", confidence=9, mistake="Overtraded")
        assert {t.id for t in updated} == {"t1", "t2"}
        for trade_id in ("t1", "t2"):
            t = repo.get(trade_id)
            assert (t.strategy, t.confidence, t.mistake) == ("Scalp", 9, "Overtraded")
        assert repo.get("t5").strategy == "Manual"

    def test_annotate_with_nothing_is_noop(self, repo, sample_trades) -> None:
        repo.import_trades(sample_trades)
        group = group_by_day_symbol_broker(repo.trades)[0]
        assert repo.annotate_group(group) == []


class TestImport:
    def test_reimport_is_idempotent(self, repo, sync, zerodha_export) -> None:
        trades = import_tradebook(zerodha_export, Broker.ZERODHA).trades
        first = repo.import_trades(trades)
        second = repo.import_trades(import_tradebook(zerodha_export, Broker.ZERODHA).trades)
        assert len(first) == 3
        assert second == []
        assert len(repo.trades) == 3
        assert sync.push.call_count == 1

    def test_overlapping_wider_export_adds_only_new_trades(self, repo) -> None:
        base = (
            "Symbol,Side,Price,Quantity,Date\n"
            "INFY,Buy,1500,5,2024-03-04 10:00\n"
            "INFY,Sell,1510,5,2024-03-04 11:00\n"
        )
        wider = (
            "Symbol,Side,Price,Quantity,Date\n"
            "TCS,Buy,3500,2,2024-03-01 10:00\n"
            "TCS,Sell,3550,2,2024-03-01 11:00\n"
            "INFY,Buy,1500,5,2024-03-04 10:00\n"
            "INFY,Sell,1510,5,2024-03-04 11:00\n"
        )
        repo.import_trades(import_tradebook(base, Broker.ZERODHA).trades)
        added = repo.import_trades(import_tradebook(wider, Broker.ZERODHA).trades)
        assert [t.symbol for t in added] == ["TCS"]
        assert sorted(t.symbol for t in repo.trades) == ["INFY", "TCS"]

    def test_duplicates_within_batch_dropped(self, repo, make_trade, ts) -> None:
        t = make_trade("a", ts(2024, 3, 4))
        assert repo.import_trades([t, t]) == [t]

    def test_stale_ticket_ignored(self, repo, make_trade, ts) -> None:
        stale = repo.begin_import()
        current = repo.begin_import()
        assert repo.import_trades([make_trade("a", ts(2024, 3, 4))], stale) is None
        assert repo.trades == []
        assert repo.import_trades([make_trade("b", ts(2024, 3, 4))], current) is not None
        assert [t.id for t in repo.trades] == ["b"]

    def test_ticket_completes_once(self, repo, make_trade, ts) -> None:
        ticket = repo.begin_import()
        repo.import_trades([make_trade("a", ts(2024, 3, 4))], ticket)
        assert repo.import_trades([make_trade("b", ts(2024, 3, 4))], ticket) is None


class TestSettingsAndBrokers:
    def test_add_strategy_persists(self, repo, store) -> None:
        repo.add_strategy("Scalp")
        repo.add_strategy("Scalp")
        assert repo.strategies[-1] == "Scalp"
        assert store.get_strategies().count("Scalp") == 1

    def test_blank_strategy_rejected(self, repo) -> None:
        with pytest.raises(ValidationError):
            repo.add_strategy("   ")

    def test_toggle_broker(self, repo, store) -> None:
        status = repo.toggle_broker("fyers")
        assert status.is_connected
        assert repo.toggle_broker(Broker.FYERS).is_connected is False
        assert store.get_all_brokers()[0].name is Broker.FYERS

    def test_record_broker_sync(self, repo, store) -> None:
        when = datetime(2024, 3, 4, 12, tzinfo=timezone.utc)
        repo.record_broker_sync(Broker.DHAN, when)
        reloaded = TradeRepository(store).load()
        dhan = next(b for b in reloaded.brokers if b.name is Broker.DHAN)
        assert dhan.last_sync == when

    def test_metrics_over_loaded_trades(self, repo, sample_trades) -> None:
        repo.import_trades(sample_trades)
        assert repo.metrics().total_trades == 5
        assert repo.metrics().best_broker is Broker.DHAN
