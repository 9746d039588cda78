"""
FIFO tradebook matcher: RawOrder rows -> closed Trade records.

Per symbol, pending Buys and pending Sells wait in two FIFO queues. Orders are
replayed in chronological order; each incoming order drains the opposite queue
oldest-first, emitting one Trade per (resting, incoming) pair, and any leftover
quantity rests on its own side. Whatever is still resting at the end is an open
position and produces no Trade.

The resting leg is the entry (it built the inventory), the incoming leg is the
exit (it liquidates it); Trade.date is the exit timestamp.
"""

from __future__ import annotations

import hashlib
import logging
from collections import Counter, deque
from dataclasses import dataclass, replace
from datetime import tzinfo
from decimal import Decimal
from typing import Iterable

from tradebook_core.contracts import (
    DEFAULT_TZ,
    IMPORT_ANALYSIS,
    IMPORT_ID_PREFIX,
    IMPORT_NOTE,
    Broker,
    MatchResult,
    RawOrder,
    Segment,
    Side,
    Trade,
)
from tradebook_core.errors import ValidationError
from tradebook_core.parser import parse_tradebook
from tradebook_core.symbols import normalize_symbol
from tradebook_core.validation import coerce_broker

logger = logging.getLogger("tradebook.matcher")


@dataclass
class _Leg:
    """An order waiting in a queue with its unmatched quantity."""

    order: RawOrder
    remaining: int
    ref: str


def _check_order(order: RawOrder) -> None:
    if not isinstance(order.quantity, int) or order.quantity <= 0:
        raise ValidationError(f"Row {order.row_number}: quantity must be a positive integer, got {order.quantity!r}")
    if not isinstance(order.price, Decimal) or order.price <= 0:
        raise ValidationError(f"Row {order.row_number}: price must be a positive Decimal, got {order.price!r}")
    if order.timestamp.tzinfo is None:
        raise ValidationError(f"Row {order.row_number}: timestamp must be timezone-aware")
    if not normalize_symbol(order.symbol):
        raise ValidationError(f"Row {order.row_number}: empty symbol")


def _leg_refs(ordered: list[RawOrder]) -> list[str]:
    """Content key per order, independent of the row's position in the file.

    The broker's own trade id wins when present. Otherwise identical rows are
    told apart by occurrence count, so a wider export reproduces the same keys.
    """
    seen: Counter[str] = Counter()
    refs: list[str] = []
    for o in ordered:
        if o.broker_ref:
            key = "ref:" + o.broker_ref
        else:
            key = "|".join(
                [normalize_symbol(o.symbol), o.side.value, o.timestamp.isoformat(), str(o.price), str(o.quantity)]
            )
        seen[key] += 1
        refs.append(f"{key}#{seen[key]}")
    return refs


def _trade_id(broker: Broker, symbol: str, entry: _Leg, exit_: _Leg, qty: int) -> str:
    """Stable id: the same round trip gets the same id in any export containing it."""
    key = "|".join([broker.value, symbol, entry.ref, exit_.ref, str(qty)])
    return IMPORT_ID_PREFIX + hashlib.sha1(key.encode("utf-8")).hexdigest()[:16]


def _close(
    entry: _Leg,
    exit_: _Leg,
    qty: int,
    symbol: str,
    broker: Broker,
    default_segment: Segment,
    note: str,
) -> Trade:
    e, x = entry.order, exit_.order
    product = e.product_type if e.product_type == x.product_type else None
    return Trade(
        id=_trade_id(broker, symbol, entry, exit_, qty),
        date=x.timestamp,
        symbol=symbol,
        broker=broker,
        entry_price=e.price,
        exit_price=x.price,
        quantity=qty,
        segment=e.segment or x.segment or default_segment,
        product_type=product,
        notes=note,
        mistake="",
        ai_analysis=IMPORT_ANALYSIS,
    )


def match_orders(
    raw_orders: Iterable[RawOrder],
    broker_hint: Broker | str,
    *,
    default_segment: Segment = Segment.EQUITY,
    note: str = IMPORT_NOTE,
) -> MatchResult:
    """Pair orders per symbol with FIFO queues.

    Returns the closed trades together with the open remainder (quantity
    reduced to what was never matched), so callers can audit conservation.
    """
    broker = coerce_broker(broker_hint)
    orders = list(raw_orders)
    for o in orders:
        _check_order(o)

    # Chronological; source row breaks ties between identical timestamps.
    ordered = sorted(orders, key=lambda o: (o.timestamp, o.row_number))
    refs = _leg_refs(ordered)

    books: dict[str, dict[Side, deque[_Leg]]] = {}
    trades: list[Trade] = []

    for order, ref in zip(ordered, refs):
        symbol = normalize_symbol(order.symbol)
        book = books.setdefault(symbol, {Side.BUY: deque(), Side.SELL: deque()})
        incoming = _Leg(order, order.quantity, ref)
        resting_queue = book[order.side.opposite]

        while incoming.remaining > 0 and resting_queue:
            resting = resting_queue[0]
            qty = min(resting.remaining, incoming.remaining)
            trades.append(_close(resting, incoming, qty, symbol, broker, default_segment, note))
            resting.remaining -= qty
            incoming.remaining -= qty
            if resting.remaining == 0:
                resting_queue.popleft()

        if incoming.remaining > 0:
            book[order.side].append(incoming)

    open_orders = [
        replace(leg.order, symbol=symbol, quantity=leg.remaining)
        for symbol, book in books.items()
        for side in (Side.BUY, Side.SELL)
        for leg in book[side]
    ]
    if open_orders:
        logger.info(
            "Dropped %d open legs (%d units) across %d symbols",
            len(open_orders),
            sum(o.quantity for o in open_orders),
            len({o.symbol for o in open_orders}),
        )
    return MatchResult(trades=trades, open_orders=open_orders)


def match(
    raw_orders: Iterable[RawOrder],
    broker_hint: Broker | str,
    *,
    default_segment: Segment = Segment.EQUITY,
    note: str = IMPORT_NOTE,
) -> list[Trade]:
    """Closed trades only. An empty list means no complete round trip was found."""
    return match_orders(raw_orders, broker_hint, default_segment=default_segment, note=note).trades


def import_tradebook(
    data: str | bytes,
    broker_hint: Broker | str,
    *,
    tz: tzinfo = DEFAULT_TZ,
    default_segment: Segment = Segment.EQUITY,
    note: str = IMPORT_NOTE,
) -> MatchResult:
    """Parse a raw export and match it. ParseError if there is no order table."""
    orders = parse_tradebook(data, tz=tz)
    return match_orders(orders, broker_hint, default_segment=default_segment, note=note)
