"""
Trade history view: group executions by (day, symbol, broker), then sort and filter.

Groups are regenerated on every pass; nothing here has a lifecycle of its own.
Sort fields are a closed enumeration (SortField) with type-correct comparison:
instants for date, case-insensitive text for symbol/broker, numbers for totals.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, tzinfo
from decimal import Decimal
from typing import Any, Iterable, Sequence

from tradebook_core.contracts import (
    DEFAULT_TZ,
    Broker,
    GroupedTrade,
    SortDirection,
    SortField,
    Trade,
    TradeFilter,
)
from tradebook_core.metrics import local_day


def group_key(day: date, symbol: str, broker: Broker) -> str:
    return f"{day.isoformat()}_{symbol}_{broker.value}"


def _build_group(key: str, day: date, trades: Sequence[Trade]) -> GroupedTrade:
    first = trades[0]
    return GroupedTrade(
        id=key,
        day=day,
        date=first.date,
        symbol=first.symbol,
        broker=first.broker,
        total_pnl=sum((t.pnl for t in trades), Decimal(0)),
        total_qty=sum(t.quantity for t in trades),
        trades=tuple(trades),
    )


def group_by_day_symbol_broker(trades: Iterable[Trade], *, tz: tzinfo = DEFAULT_TZ) -> list[GroupedTrade]:
    """One GroupedTrade per (local day, symbol, broker), in first-seen order."""
    buckets: dict[str, tuple[date, list[Trade]]] = {}
    for t in trades:
        day = local_day(t.date, tz)
        key = group_key(day, t.symbol, t.broker)
        if key not in buckets:
            buckets[key] = (day, [])
        buckets[key][1].append(t)
    return [_build_group(key, day, members) for key, (day, members) in buckets.items()]


def _sort_key(group: GroupedTrade, field: SortField) -> Any:
    if field is SortField.DATE:
        return group.date.timestamp()
    if field is SortField.SYMBOL:
        return group.symbol.lower()
    if field is SortField.BROKER:
        return group.broker.value.lower()
    if field is SortField.TOTAL_PNL:
        return group.total_pnl
    if field is SortField.TOTAL_QTY:
        return group.total_qty
    raise ValueError(f"Unsupported sort field: {field!r}")


def sort_groups(
    groups: Iterable[GroupedTrade],
    field: SortField = SortField.DATE,
    direction: SortDirection = SortDirection.DESC,
) -> list[GroupedTrade]:
    """Stable sort; equal keys keep their incoming order in both directions."""
    field = SortField(field)
    direction = SortDirection(direction)
    return sorted(groups, key=lambda g: _sort_key(g, field), reverse=direction is SortDirection.DESC)


@dataclass(frozen=True)
class SortState:
    """Column-header sort state: newest first by default."""

    field: SortField = SortField.DATE
    direction: SortDirection = SortDirection.DESC

    def toggle(self, field: SortField) -> SortState:
        """Same field flips direction; a different field starts descending."""
        field = SortField(field)
        if field is self.field:
            return SortState(field, self.direction.reversed)
        return SortState(field, SortDirection.DESC)

    def apply(self, groups: Iterable[GroupedTrade]) -> list[GroupedTrade]:
        return sort_groups(groups, self.field, self.direction)


def filter_trades(trades: Iterable[Trade], flt: TradeFilter) -> list[Trade]:
    return [t for t in trades if flt.matches(t)]


def filter_groups(groups: Iterable[GroupedTrade], flt: TradeFilter) -> list[GroupedTrade]:
    """Keep groups with at least one matching trade, rebuilt from those trades only.

    Equivalent to filtering trades first and grouping afterwards.
    """
    if flt.is_empty:
        return list(groups)
    out: list[GroupedTrade] = []
    for g in groups:
        matching = [t for t in g.trades if flt.matches(t)]
        if not matching:
            continue
        if len(matching) == len(g.trades):
            out.append(g)
        else:
            out.append(_build_group(g.id, g.day, matching))
    return out


def build_history(
    trades: Iterable[Trade],
    *,
    flt: TradeFilter | None = None,
    sort: SortState | None = None,
    tz: tzinfo = DEFAULT_TZ,
) -> list[GroupedTrade]:
    """Filter -> group -> sort, the full trade-history pipeline."""
    selected = filter_trades(trades, flt) if flt is not None else list(trades)
    groups = group_by_day_symbol_broker(selected, tz=tz)
    return (sort or SortState()).apply(groups)
