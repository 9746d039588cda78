"""
Human-readable journal output for the terminal.

Every CLI command renders through these formatters; money is shown with two
decimals and an explicit sign, dates in the journal's local timezone.
"""

from __future__ import annotations

from datetime import tzinfo
from decimal import Decimal
from typing import Sequence

from tradebook_core.contracts import (
    DEFAULT_TZ,
    BrokerStatus,
    BucketStats,
    DailyStat,
    GroupedTrade,
    MatchResult,
    Metrics,
    Trade,
)


def _money(value: Decimal) -> str:
    return f"{value:+,.2f}"


def _price(value: Decimal) -> str:
    return f"{value:,.2f}"


def _local(trade_or_group, tz: tzinfo) -> str:
    return trade_or_group.date.astimezone(tz).strftime("%Y-%m-%d %H:%M")


def format_summary(metrics: Metrics, daily: Sequence[DailyStat] = ()) -> str:
    """Dashboard block: totals, win rate, best broker, recent daily PnL."""
    best = metrics.best_broker if isinstance(metrics.best_broker, str) else metrics.best_broker.value
    lines = [
        "=== Journal Summary ===",
        f"Total PnL    : {_money(metrics.total_pnl)}",
        f"Win rate     : {metrics.win_rate:.1f}%",
        f"Avg trade    : {_money(metrics.avg_trade_value)}",
        f"Trades       : {metrics.total_trades} ({metrics.trades_today} today)",
        f"Best broker  : {best}",
    ]
    if daily:
        lines.append("")
        lines.append("  Daily PnL:")
        for d in daily:
            lines.append(f"    {d.day.isoformat()}  {_money(d.pnl):>14s}  ({d.trade_count} trades)")
    lines.append("===")
    return "\n".join(lines)


def format_trade(trade: Trade, tz: tzinfo = DEFAULT_TZ) -> str:
    product = trade.product_type.value if trade.product_type else "-"
    return (
        f"{_local(trade, tz)}  {trade.symbol:<12s} {trade.broker.value:<10s} "
        f"{trade.quantity:>6d} x {_price(trade.entry_price)} -> {_price(trade.exit_price)}  "
        f"PnL {_money(trade.pnl)}  [{trade.segment.value}/{product}] {trade.strategy} c{trade.confidence}  id={trade.id}"
    )


def format_history(groups: Sequence[GroupedTrade], *, expand: bool = False, tz: tzinfo = DEFAULT_TZ) -> str:
    """One line per (day, symbol, broker) group; expand lists each execution below it."""
    if not groups:
        return "No trades match the current filters."
    lines = [f"{'DATE':<16s}  {'SYMBOL':<12s} {'BROKER':<10s} {'QTY':>6s}  {'PNL':>14s}  EXEC"]
    for g in groups:
        lines.append(
            f"{_local(g, tz):<16s}  {g.symbol:<12s} {g.broker.value:<10s} {g.total_qty:>6d}  "
            f"{_money(g.total_pnl):>14s}  {len(g.trades)}"
        )
        if expand:
            for t in g.trades:
                lines.append(f"    {format_trade(t, tz)}")
    return "\n".join(lines)


def format_bucket_table(title: str, buckets: Sequence[BucketStats]) -> str:
    lines = [f"--- {title} ---"]
    if not buckets:
        lines.append("  (none)")
        return "\n".join(lines)
    for b in buckets:
        lines.append(
            f"  {b.key:<20s} {_money(b.total_pnl):>14s}  win {b.display_win_rate:>3d}% "
            f"({b.wins}/{b.total})  conf {b.avg_confidence:.1f}"
        )
    return "\n".join(lines)


def format_import_result(result: MatchResult, new_trades: Sequence[Trade], tz: tzinfo = DEFAULT_TZ) -> str:
    lines = [
        f"Closed trades found : {len(result.trades)}",
        f"New trades saved    : {len(new_trades)}",
    ]
    skipped = len(result.trades) - len(new_trades)
    if skipped:
        lines.append(f"Already in journal  : {skipped}")
    if result.open_orders:
        lines.append(f"Open positions      : {len(result.open_orders)} legs, {result.open_quantity} units (not imported)")
    for t in new_trades:
        lines.append(f"  {format_trade(t, tz)}")
    return "\n".join(lines)


def format_brokers(brokers: Sequence[BrokerStatus], tz: tzinfo = DEFAULT_TZ) -> str:
    lines = []
    for b in brokers:
        status = "connected" if b.is_connected else "disconnected"
        synced = b.last_sync.astimezone(tz).strftime("%Y-%m-%d %H:%M") if b.last_sync else "never"
        lines.append(f"  {b.name.value:<10s} {status:<13s} last sync: {synced}")
    return "\n".join(lines)
