"""
CLI entry point: tradebook import | add | summary | history | annotate | analysis | review | strategies | brokers | health.

Every command loads config from --config (default config.yaml), opens the
journal store, and prints human-readable output. Imports and edits also emit
structured JSON events to stderr.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import click
from dotenv import load_dotenv

from config import load_config
from tradebook_core.contracts import Broker, ProductType, Segment, SortDirection, SortField
from tradebook_core.errors import TradebookError

load_dotenv()

logger = logging.getLogger("tradebook")

_BROKERS = click.Choice([b.value for b in Broker], case_sensitive=False)
_SEGMENTS = click.Choice([s.value for s in Segment], case_sensitive=False)
_PRODUCTS = click.Choice([p.value for p in ProductType], case_sensitive=False)
_DAY = click.DateTime(formats=["%Y-%m-%d"])


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """tradebook: trading journal with deterministic broker tradebook reconciliation."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _open(ctx: click.Context):
    """Load config and the journal repository; cached on the context."""
    if "repo" in ctx.obj:
        return ctx.obj["cfg"], ctx.obj["repo"]
    from data import TradeRepository, TradeStore
    from services import SheetSync

    try:
        cfg = load_config(ctx.obj["config_path"])
    except (FileNotFoundError, ValueError) as exc:
        click.secho(f"Error: {exc}", fg="red", err=True)
        raise SystemExit(1)
    sync = SheetSync(cfg.sync.webhook_url, timeout=cfg.sync.timeout_seconds)
    repo = TradeRepository(TradeStore(cfg.journal.store_path), sync=sync, tz=cfg.journal.tz).load()
    ctx.obj["cfg"], ctx.obj["repo"] = cfg, repo
    return cfg, repo


def _events(cfg):
    from cli.structured_log import StructuredEventLogger

    return StructuredEventLogger(cfg.journal.store_path, enabled=cfg.logging.structured_logs)


def _coach(cfg):
    from services import TradeCoach

    return TradeCoach(cfg.feedback.api_key, model=cfg.feedback.model)


@contextmanager
def _journal_errors(events=None):
    """Journal errors become a red message and exit code 1."""
    try:
        yield
    except TradebookError as exc:
        if events is not None:
            events.error(type(exc).__name__, str(exc))
        click.secho(f"Error: {exc}", fg="red", err=True)
        raise SystemExit(1)


# ---------- tradebook import ----------


@cli.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--broker", type=_BROKERS, default=None, help="Broker the export came from (default: journal.default_broker).")
@click.pass_context
def import_cmd(ctx: click.Context, file: Path, broker: str | None) -> None:
    """Reconcile a broker tradebook export into closed trades (FIFO) and save new ones."""
    from cli.output import format_import_result
    from tradebook_core.matcher import match_orders
    from tradebook_core.parser import parse_tradebook

    with _journal_errors():
        cfg, repo = _open(ctx)
    events = _events(cfg)
    broker_name = broker or cfg.journal.default_broker.value

    with _journal_errors(events):
        ticket = repo.begin_import()
        events.import_started(broker_name, str(file), ticket)
        orders = parse_tradebook(file.read_bytes(), tz=cfg.journal.tz)
        result = match_orders(
            orders,
            broker_name,
            default_segment=cfg.imports.default_segment,
            note=cfg.imports.note,
        )
        new = repo.import_trades(result.trades, ticket)
        if new is None:
            events.import_ignored(ticket, "superseded by a newer import")
            click.echo("Import superseded by a newer import; nothing saved.")
            return
        events.import_completed(broker_name, len(orders), len(result.trades), len(new), result.open_quantity)
        repo.record_broker_sync(broker_name)

    if not result.trades:
        click.echo("No closed trades found. Only complete buy/sell round trips are imported.")
        return
    click.echo(format_import_result(result, new, tz=cfg.journal.tz))


# ---------- tradebook add ----------


@cli.command()
@click.option("--symbol", required=True)
@click.option("--broker", type=_BROKERS, default=None)
@click.option("--entry", "entry_price", required=True, help="Entry price.")
@click.option("--exit", "exit_price", required=True, help="Exit price.")
@click.option("--qty", "quantity", required=True, help="Quantity (whole units).")
@click.option("--segment", type=_SEGMENTS, default=Segment.EQUITY.value, show_default=True)
@click.option("--product", "product_type", type=_PRODUCTS, default=None)
@click.option("--confidence", type=click.IntRange(1, 10), default=5, show_default=True)
@click.option("--strategy", default="Manual", show_default=True)
@click.option("--notes", default="")
@click.option("--mistake", default=None)
@click.option("--date", "date_str", default=None, help="Exit time (ISO). Naive times are in the journal timezone.")
@click.option("--ai", "with_ai", is_flag=True, help="Attach AI feedback to the saved trade.")
@click.pass_context
def add(ctx: click.Context, symbol, broker, entry_price, exit_price, quantity, segment, product_type,
        confidence, strategy, notes, mistake, date_str, with_ai) -> None:
    """Log a trade by hand."""
    from cli.output import format_trade
    from tradebook_core.validation import new_manual_trade

    with _journal_errors():
        cfg, repo = _open(ctx)
    events = _events(cfg)

    when = None
    if date_str:
        try:
            when = datetime.fromisoformat(date_str)
        except ValueError:
            raise click.BadParameter(f"not an ISO timestamp: {date_str!r}", param_hint="--date")
        if when.tzinfo is None:
            when = when.replace(tzinfo=cfg.journal.tz)

    with _journal_errors(events):
        trade = new_manual_trade(
            symbol=symbol,
            broker=broker or cfg.journal.default_broker,
            entry_price=entry_price,
            exit_price=exit_price,
            quantity=quantity,
            segment=segment,
            product_type=product_type,
            confidence=confidence,
            strategy=strategy,
            notes=notes,
            mistake=mistake,
            date=when,
        )
        if with_ai:
            trade = replace(trade, ai_analysis=_coach(cfg).analyze_trade(trade))
        repo.add_trade(trade)
        events.trade_saved(trade.id, trade.symbol, trade.broker.value, str(trade.pnl))

    click.echo(format_trade(trade, cfg.journal.tz))
    if trade.ai_analysis:
        click.echo(f"\nAI feedback: {trade.ai_analysis}")


# ---------- tradebook summary ----------


@cli.command()
@click.option("--days", default=7, show_default=True, help="Number of most recent trading days to list.")
@click.pass_context
def summary(ctx: click.Context, days: int) -> None:
    """Dashboard metrics: total PnL, win rate, average trade, best broker."""
    from cli.output import format_summary
    from tradebook_core.metrics import daily_pnl

    with _journal_errors():
        cfg, repo = _open(ctx)
    daily = daily_pnl(repo.trades, tz=cfg.journal.tz)
    click.echo(format_summary(repo.metrics(), daily[-days:] if days > 0 else []))


# ---------- tradebook history ----------


@cli.command()
@click.option("--sort", "sort_field", type=click.Choice([f.value for f in SortField]), default=SortField.DATE.value, show_default=True)
@click.option("--direction", type=click.Choice([d.value for d in SortDirection]), default=SortDirection.DESC.value, show_default=True)
@click.option("--broker", type=_BROKERS, default=None)
@click.option("--segment", type=_SEGMENTS, default=None)
@click.option("--strategy", default=None)
@click.option("--product", "product_type", type=_PRODUCTS, default=None)
@click.option("--expand", is_flag=True, help="List each execution under its group.")
@click.pass_context
def history(ctx: click.Context, sort_field, direction, broker, segment, strategy, product_type, expand) -> None:
    """Trade history grouped by day, symbol and broker."""
    from cli.output import format_history
    from tradebook_core.contracts import TradeFilter
    from tradebook_core.grouping import SortState, build_history
    from tradebook_core.validation import coerce_broker, coerce_product_type, coerce_segment

    with _journal_errors():
        cfg, repo = _open(ctx)
    flt = TradeFilter(
        broker=coerce_broker(broker) if broker else None,
        segment=coerce_segment(segment) if segment else None,
        strategy=strategy,
        product_type=coerce_product_type(product_type),
    )
    groups = build_history(
        repo.trades,
        flt=flt,
        sort=SortState(SortField(sort_field), SortDirection(direction)),
        tz=cfg.journal.tz,
    )
    click.echo(format_history(groups, expand=expand, tz=cfg.journal.tz))


# ---------- tradebook annotate ----------


@cli.command()
@click.argument("group_id")
@click.option("--strategy", default=None)
@click.option("--confidence", type=click.IntRange(1, 10), default=None)
@click.option("--notes", default=None)
@click.option("--mistake", default=None)
@click.pass_context
def annotate(ctx: click.Context, group_id, strategy, confidence, notes, mistake) -> None:
    """Apply journal fields to every execution of a group (GROUP_ID = YYYY-MM-DD_SYMBOL_Broker)."""
    from tradebook_core.grouping import group_by_day_symbol_broker

    with _journal_errors():
        cfg, repo = _open(ctx)
    events = _events(cfg)

    groups = {g.id: g for g in group_by_day_symbol_broker(repo.trades, tz=cfg.journal.tz)}
    group = groups.get(group_id)
    if group is None:
        click.secho(f"Error: no trade group {group_id!r}", fg="red", err=True)
        raise SystemExit(1)

    with _journal_errors(events):
        updated = repo.annotate_group(group, strategy=strategy, confidence=confidence, notes=notes, mistake=mistake)
    if not updated:
        click.echo("Nothing to change.")
        return
    fields = [name for name, v in (("strategy", strategy), ("confidence", confidence), ("notes", notes), ("mistake", mistake)) if v is not None]
    events.trades_updated([t.id for t in updated], fields)
    click.echo(f"Updated {len(updated)} trades in {group_id}.")


# ---------- tradebook analysis ----------


@cli.command()
@click.option("--start", type=_DAY, default=None, help="First day (YYYY-MM-DD), inclusive.")
@click.option("--end", type=_DAY, default=None, help="Last day (YYYY-MM-DD), inclusive.")
@click.option("--ai", "with_ai", is_flag=True, help="Ask the AI coach for a portfolio review.")
@click.pass_context
def analysis(ctx: click.Context, start, end, with_ai) -> None:
    """Performance by strategy, symbol, product type and broker."""
    from cli.output import format_bucket_table, format_summary
    from tradebook_core.metrics import (
        broker_distribution,
        compute_metrics,
        cumulative_pnl_series,
        filter_by_date_range,
        product_type_pnl,
    )
    from tradebook_core.stats import per_strategy_stats, per_symbol_stats

    with _journal_errors():
        cfg, repo = _open(ctx)
    tz = cfg.journal.tz
    trades = filter_by_date_range(
        repo.trades,
        start.date() if start else None,
        end.date() if end else None,
        tz=tz,
    )

    click.echo(format_summary(compute_metrics(trades, tz=tz)))
    series = cumulative_pnl_series(trades)
    if series:
        peak = max(p.cumulative_pnl for p in series)
        trough = min(p.cumulative_pnl for p in series)
        click.echo(f"Equity curve : {len(series)} points, peak {peak:+,.2f}, trough {trough:+,.2f}")
    click.echo("")
    click.echo(format_bucket_table("By Strategy", per_strategy_stats(trades)))
    symbol_stats = per_symbol_stats(trades)
    click.echo(format_bucket_table("By Symbol", symbol_stats))

    click.echo("--- By Product Type ---")
    for product, pnl in product_type_pnl(trades).items():
        click.echo(f"  {product.value:<20s} {pnl:>+14,.2f}")
    click.echo("--- Trades per Broker ---")
    for broker, count in broker_distribution(trades).items():
        click.echo(f"  {broker.value:<20s} {count:>6d}")

    if with_ai:
        click.echo("")
        click.echo("--- AI Portfolio Review ---")
        click.echo(_coach(cfg).analyze_portfolio(symbol_stats))


# ---------- tradebook review ----------


@cli.command()
@click.argument("trade_id")
@click.option("--save/--no-save", default=True, show_default=True, help="Store the feedback on the trade.")
@click.pass_context
def review(ctx: click.Context, trade_id: str, save: bool) -> None:
    """AI feedback for one trade."""
    with _journal_errors():
        cfg, repo = _open(ctx)
    trade = repo.get(trade_id)
    if trade is None:
        click.secho(f"Error: no trade {trade_id!r}", fg="red", err=True)
        raise SystemExit(1)

    feedback = _coach(cfg).analyze_trade(trade)
    click.echo(feedback)
    if save:
        events = _events(cfg)
        with _journal_errors(events):
            repo.update_trade(replace(trade, ai_analysis=feedback))
        events.trades_updated([trade.id], ["aiAnalysis"])


# ---------- tradebook strategies ----------


@cli.command()
@click.option("--add", "new_strategy", default=None, help="Add a strategy label.")
@click.pass_context
def strategies(ctx: click.Context, new_strategy: str | None) -> None:
    """List (or extend) the strategy labels offered for journaling."""
    with _journal_errors():
        _, repo = _open(ctx)
        names = repo.add_strategy(new_strategy) if new_strategy is not None else repo.strategies
    for name in names:
        click.echo(f"  {name}")


# ---------- tradebook brokers ----------


@cli.command()
@click.option("--toggle", type=_BROKERS, default=None, help="Flip a broker's connected flag.")
@click.pass_context
def brokers(ctx: click.Context, toggle: str | None) -> None:
    """Broker connection status."""
    from cli.output import format_brokers

    with _journal_errors():
        cfg, repo = _open(ctx)
        if toggle:
            status = repo.toggle_broker(toggle)
            click.echo(f"{status.name.value} is now {'connected' if status.is_connected else 'disconnected'}.")
    click.echo(format_brokers(repo.brokers, tz=cfg.journal.tz))


# ---------- tradebook health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health: config, journal store, trade records.

    Exit code 0 = healthy, 1 = unhealthy.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded (store={cfg.journal.store_path}, tz={cfg.journal.timezone})"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        from data import TradeStore

        store = TradeStore(cfg.journal.store_path)
        checks.append(("store", True, f"{store.count_trades()} trade records"))
        trades = store.get_all_trades()
        checks.append(("records", True, f"{len(trades)} valid trades"))
    except TradebookError as e:
        checks.append(("store", False, str(e)))

    feedback = "configured" if cfg.feedback.api_key else "no OPENAI_API_KEY (placeholder feedback)"
    checks.append(("feedback", True, feedback))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
