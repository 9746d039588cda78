"""
Trade validation: reject malformed records before they reach the store.

Also builds manual journal entries, so a hand-entered trade goes through
exactly the same checks (and the same derived pnl) as an imported one.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from tradebook_core.contracts import (
    DEFAULT_CONFIDENCE,
    DEFAULT_STRATEGY,
    Broker,
    ProductType,
    Segment,
    Trade,
)
from tradebook_core.errors import ValidationError
from tradebook_core.symbols import normalize_symbol

CONFIDENCE_MIN, CONFIDENCE_MAX = 1, 10


def coerce_broker(value: Broker | str) -> Broker:
    if isinstance(value, Broker):
        return value
    for b in Broker:
        if str(value).strip().lower() in (b.value.lower(), b.name.lower()):
            return b
    raise ValidationError(f"Unknown broker {value!r}. Supported: {[b.value for b in Broker]}")


def coerce_segment(value: Segment | str) -> Segment:
    if isinstance(value, Segment):
        return value
    for s in Segment:
        if str(value).strip().lower() in (s.value.lower(), s.name.lower()):
            return s
    raise ValidationError(f"Unknown segment {value!r}. Supported: {[s.value for s in Segment]}")


def coerce_product_type(value: ProductType | str | None) -> ProductType | None:
    if value is None or isinstance(value, ProductType):
        return value
    if not str(value).strip():
        return None
    for p in ProductType:
        if str(value).strip().lower() == p.value.lower():
            return p
    raise ValidationError(f"Unknown product type {value!r}. Supported: {[p.value for p in ProductType]}")


def to_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got {value!r}")
    try:
        # str() first so floats keep their shortest repr (110.1 -> "110.1")
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number, got {value!r}") from None
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    return result


def validate_trade(trade: Trade) -> Trade:
    """Check every field of *trade*. Returns it unchanged or raises ValidationError."""
    problems: list[str] = []
    if not isinstance(trade.id, str) or not trade.id.strip():
        problems.append("id must be a non-empty string")
    if not isinstance(trade.date, datetime):
        problems.append("date must be a datetime")
    elif trade.date.tzinfo is None:
        problems.append("date must be timezone-aware")
    if not isinstance(trade.symbol, str) or not trade.symbol.strip():
        problems.append("symbol must be non-empty")
    if not isinstance(trade.broker, Broker):
        problems.append(f"broker must be one of {[b.value for b in Broker]}")
    for name in ("entry_price", "exit_price"):
        price = getattr(trade, name)
        if not isinstance(price, Decimal) or not price.is_finite() or price <= 0:
            problems.append(f"{name} must be a positive Decimal")
    if isinstance(trade.quantity, bool) or not isinstance(trade.quantity, int) or trade.quantity <= 0:
        problems.append("quantity must be a positive integer")
    if not isinstance(trade.segment, Segment):
        problems.append(f"segment must be one of {[s.value for s in Segment]}")
    if trade.product_type is not None and not isinstance(trade.product_type, ProductType):
        problems.append(f"product_type must be one of {[p.value for p in ProductType]}")
    if (
        isinstance(trade.confidence, bool)
        or not isinstance(trade.confidence, int)
        or not CONFIDENCE_MIN <= trade.confidence <= CONFIDENCE_MAX
    ):
        problems.append(f"confidence must be an integer in [{CONFIDENCE_MIN}, {CONFIDENCE_MAX}]")
    if not isinstance(trade.strategy, str) or not trade.strategy.strip():
        problems.append("strategy must be non-empty")
    if not isinstance(trade.notes, str):
        problems.append("notes must be a string")
    if problems:
        raise ValidationError(f"Invalid trade {trade.id!r}: " + "; ".join(problems))
    return trade


def new_manual_trade(
    *,
    symbol: str,
    broker: Broker | str,
    entry_price: Any,
    exit_price: Any,
    quantity: Any,
    segment: Segment | str = Segment.EQUITY,
    product_type: ProductType | str | None = None,
    confidence: int = DEFAULT_CONFIDENCE,
    strategy: str = DEFAULT_STRATEGY,
    notes: str = "",
    mistake: str | None = None,
    date: datetime | None = None,
    trade_id: str | None = None,
) -> Trade:
    """Build and validate a journal entry typed in by the user (one Trade per submission)."""
    qty_dec = to_decimal(quantity, "quantity")
    if qty_dec != qty_dec.to_integral_value():
        raise ValidationError(f"quantity must be a whole number, got {quantity!r}")
    trade = Trade(
        id=trade_id or uuid.uuid4().hex,
        date=date or datetime.now(timezone.utc),
        symbol=normalize_symbol(symbol).upper(),
        broker=coerce_broker(broker),
        entry_price=to_decimal(entry_price, "entry_price"),
        exit_price=to_decimal(exit_price, "exit_price"),
        quantity=int(qty_dec),
        segment=coerce_segment(segment),
        product_type=coerce_product_type(product_type),
        confidence=confidence,
        strategy=strategy.strip() if isinstance(strategy, str) else strategy,
        notes=notes,
        mistake=mistake,
    )
    return validate_trade(trade)
