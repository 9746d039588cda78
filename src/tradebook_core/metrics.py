"""
Portfolio metrics and PnL series over a Trade collection.

Pure functions: no I/O, no hidden state, inputs never mutated. Calendar days are
taken in the journal's local timezone (tz argument), not UTC.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Iterable, Sequence

from tradebook_core.contracts import (
    DEFAULT_TZ,
    NO_BROKER,
    Broker,
    DailyStat,
    Metrics,
    PnLPoint,
    ProductType,
    Trade,
)

ZERO = Decimal(0)


def local_day(ts: datetime, tz: tzinfo = DEFAULT_TZ) -> date:
    """Calendar day of *ts* in *tz*."""
    return ts.astimezone(tz).date()


def _today(now: datetime | None, tz: tzinfo) -> date:
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(tz).date()


def total_pnl(trades: Iterable[Trade]) -> Decimal:
    return sum((t.pnl for t in trades), ZERO)


def pnl_by_broker(trades: Iterable[Trade]) -> dict[Broker, Decimal]:
    out: dict[Broker, Decimal] = {}
    for t in trades:
        out[t.broker] = out.get(t.broker, ZERO) + t.pnl
    return out


def best_broker(trades: Iterable[Trade]) -> Broker | str:
    """Broker with the highest summed PnL; ties go to the earlier Broker member."""
    sums = pnl_by_broker(trades)
    best: Broker | str = NO_BROKER
    best_pnl: Decimal | None = None
    for broker in Broker:
        if broker not in sums:
            continue
        if best_pnl is None or sums[broker] > best_pnl:
            best, best_pnl = broker, sums[broker]
    return best


def compute_metrics(
    trades: Sequence[Trade],
    *,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
) -> Metrics:
    """Dashboard summary: total/avg PnL, win rate, today's count, best broker."""
    n = len(trades)
    total = total_pnl(trades)
    wins = sum(1 for t in trades if t.pnl > 0)
    today = _today(now, tz)
    return Metrics(
        total_pnl=total,
        win_rate=(wins / n * 100) if n else 0.0,
        avg_trade_value=(total / n) if n else ZERO,
        total_trades=n,
        trades_today=sum(1 for t in trades if local_day(t.date, tz) == today),
        best_broker=best_broker(trades),
    )


def cumulative_pnl_series(trades: Iterable[Trade]) -> list[PnLPoint]:
    """One point per trade, oldest first, carrying the running PnL total."""
    points: list[PnLPoint] = []
    running = ZERO
    for t in sorted(trades, key=lambda t: t.date):
        running += t.pnl
        points.append(
            PnLPoint(
                date=t.date,
                cumulative_pnl=running,
                trade_pnl=t.pnl,
                symbol=t.symbol,
                broker=t.broker,
                strategy=t.strategy,
                confidence=t.confidence,
            )
        )
    return points


def daily_pnl(trades: Iterable[Trade], *, tz: tzinfo = DEFAULT_TZ) -> list[DailyStat]:
    """PnL and trade count per local calendar day, ascending."""
    pnl: dict[date, Decimal] = {}
    counts: Counter[date] = Counter()
    for t in trades:
        d = local_day(t.date, tz)
        pnl[d] = pnl.get(d, ZERO) + t.pnl
        counts[d] += 1
    return [DailyStat(day=d, pnl=pnl[d], trade_count=counts[d]) for d in sorted(pnl)]


def broker_distribution(trades: Iterable[Trade]) -> dict[Broker, int]:
    """Trade count per broker, in first-encounter order."""
    out: dict[Broker, int] = {}
    for t in trades:
        out[t.broker] = out.get(t.broker, 0) + 1
    return out


def product_type_pnl(trades: Iterable[Trade]) -> dict[ProductType, Decimal]:
    """Summed PnL per product type; a missing product type counts as Delivery."""
    out: dict[ProductType, Decimal] = {}
    for t in trades:
        key = t.effective_product_type
        out[key] = out.get(key, ZERO) + t.pnl
    return out


def filter_by_date_range(
    trades: Iterable[Trade],
    start: date | None = None,
    end: date | None = None,
    *,
    tz: tzinfo = DEFAULT_TZ,
) -> list[Trade]:
    """Trades whose local day lies in [start, end]; either bound may be open."""
    out = []
    for t in trades:
        d = local_day(t.date, tz)
        if start is not None and d < start:
            continue
        if end is not None and d > end:
            continue
        out.append(t)
    return out
