"""
Bucketed statistics for the analysis view: per strategy and per symbol.

Win rates stay unrounded on BucketStats; display_win_rate is the rounded value.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Iterable

from tradebook_core.contracts import BucketStats, Trade


def _bucket(trades: Iterable[Trade], key: Callable[[Trade], str]) -> list[BucketStats]:
    acc: dict[str, list] = {}
    for t in trades:
        k = key(t)
        row = acc.setdefault(k, [0, 0, Decimal(0), 0])
        row[0] += 1
        row[1] += 1 if t.pnl > 0 else 0
        row[2] += t.pnl
        row[3] += t.confidence
    return [
        BucketStats(key=k, total=total, wins=wins, total_pnl=pnl, total_confidence=conf)
        for k, (total, wins, pnl, conf) in acc.items()
    ]


def per_strategy_stats(trades: Iterable[Trade]) -> list[BucketStats]:
    """One bucket per strategy label, in first-seen order."""
    return _bucket(trades, lambda t: t.strategy)


def per_symbol_stats(trades: Iterable[Trade]) -> list[BucketStats]:
    """One bucket per symbol, best PnL first."""
    buckets = _bucket(trades, lambda t: t.symbol)
    return sorted(buckets, key=lambda b: b.total_pnl, reverse=True)
