"""Pytest fixtures: trades, raw orders and broker exports for deterministic tests."""

from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from tradebook_core.contracts import DEFAULT_TZ, Broker, RawOrder, Segment, Side, Trade


def _ts(year: int, month: int, day: int, hour: int = 10, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, 0, tzinfo=DEFAULT_TZ)


def _trade(
    trade_id: str,
    ts: datetime,
    symbol: str = "INFY",
    broker: Broker = Broker.ZERODHA,
    entry: str = "100",
    exit_: str = "110",
    qty: int = 10,
    **kwargs,
) -> Trade:
    return Trade(
        id=trade_id,
        date=ts,
        symbol=symbol,
        broker=broker,
        entry_price=Decimal(entry),
        exit_price=Decimal(exit_),
        quantity=qty,
        **kwargs,
    )


def _order(side: Side, qty: int, price: str, ts: datetime, symbol: str = "X", row: int = 0) -> RawOrder:
    return RawOrder(symbol=symbol, side=side, price=Decimal(price), quantity=qty, timestamp=ts, row_number=row)


@pytest.fixture
def ts():
    return _ts


@pytest.fixture
def make_trade():
    return _trade


@pytest.fixture
def make_order():
    return _order


@pytest.fixture
def sample_trades() -> list[Trade]:
    """Five trades over two days, three brokers, mixed outcomes."""
    return [
        _trade("t1", _ts(2024, 3, 4, 10), "INFY", Broker.ZERODHA, "100", "110", 10, strategy="Breakout", confidence=8),
        _trade("t2", _ts(2024, 3, 4, 11), "INFY", Broker.ZERODHA, "110", "108", 10, strategy="Breakout", confidence=4),
        _trade("t3", _ts(2024, 3, 4, 12), "TCS", Broker.FYERS, "3500", "3450", 2, strategy="Mean-Reversion", confidence=6),
        _trade(
            "t4", _ts(2024, 3, 5, 9, 30), "NIFTY24MARFUT", Broker.DHAN, "22000", "22050", 50,
            segment=Segment.FNO, strategy="Trend-Following", confidence=7,
        ),
        _trade("t5", _ts(2024, 3, 5, 14), "INFY", Broker.ZERODHA, "105", "104", 5, confidence=5),
    ]


ZERODHA_EXPORT = """\
Client ID,AB1234
Tradebook for Equity from 2024-03-01 to 2024-03-31
,
symbol,isin,trade_date,exchange,segment,series,trade_type,auction,quantity,price,trade_id,order_id,order_execution_time
NSE:SOUTHBANK-EQ,INE683A01023,2024-03-04,NSE,EQ,EQ,buy,false,10,30.50,1001,2001,2024-03-04T09:20:00
SOUTHBANK,INE683A01023,2024-03-04,NSE,EQ,EQ,sell,false,10,31.25,1002,2002,2024-03-04T14:05:00
INFY,INE009A01021,2024-03-04,NSE,EQ,EQ,buy,false,5,1500.00,1003,2003,2024-03-04T10:00:00
INFY,INE009A01021,2024-03-04,NSE,EQ,EQ,buy,false,5,1505.00,1004,2004,2024-03-04T10:30:00
INFY,INE009A01021,2024-03-04,NSE,EQ,EQ,sell,false,8,1520.00,1005,2005,2024-03-04T15:00:00
"""


@pytest.fixture
def zerodha_export() -> str:
    return ZERODHA_EXPORT


@pytest.fixture
def export_file(tmp_path: Path) -> Path:
    path = tmp_path / "tradebook.csv"
    path.write_text(ZERODHA_EXPORT)
    return path
