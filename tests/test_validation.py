"""Tests for trade validation and manual trade entry."""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from tradebook_core.contracts import Broker, ProductType, Segment
from tradebook_core.errors import ValidationError
from tradebook_core.validation import (
    coerce_broker,
    coerce_product_type,
    new_manual_trade,
    to_decimal,
    validate_trade,
)


def test_valid_trade_passes(make_trade, ts) -> None:
    trade = make_trade("a", ts(2024, 3, 4))
    assert validate_trade(trade) is trade


@pytest.mark.parametrize(
    "changes, message",
    [
        ({"id": " "}, "id"),
        ({"symbol": ""}, "symbol"),
        ({"entry_price": Decimal("0")}, "entry_price"),
        ({"exit_price": Decimal("-1")}, "exit_price"),
        ({"quantity": 0}, "quantity"),
        ({"quantity": True}, "quantity"),
        ({"confidence": 11}, "confidence"),
        ({"strategy": "  "}, "strategy"),
        ({"broker": "Zerodha"}, "broker"),
        ({"date": datetime(2024, 3, 4)}, "timezone-aware"),
    ],
)
def test_invalid_fields_rejected(make_trade, ts, changes, message) -> None:
    trade = replace(make_trade("a", ts(2024, 3, 4)), **changes)
    with pytest.raises(ValidationError, match=message):
        validate_trade(trade)


def test_all_problems_reported_together(make_trade, ts) -> None:
    trade = replace(make_trade("a", ts(2024, 3, 4)), quantity=-1, confidence=0)
    with pytest.raises(ValidationError) as exc_info:
        validate_trade(trade)
    assert "quantity" in str(exc_info.value)
    assert "confidence" in str(exc_info.value)


class TestCoercion:
    def test_broker_by_value_or_name(self) -> None:
        assert coerce_broker("zerodha") is Broker.ZERODHA
        assert coerce_broker("ANGEL_ONE") is Broker.ANGEL_ONE
        assert coerce_broker(Broker.DHAN) is Broker.DHAN

    def test_unknown_broker(self) -> None:
        with pytest.raises(ValidationError):
            coerce_broker("Upstox")

    def test_blank_product_type_is_none(self) -> None:
        assert coerce_product_type("") is None
        assert coerce_product_type("intraday") is ProductType.INTRADAY

    def test_to_decimal_keeps_float_repr(self) -> None:
        assert to_decimal(110.1, "price") == Decimal("110.1")

    def test_to_decimal_rejects_nan_and_bool(self) -> None:
        with pytest.raises(ValidationError):
            to_decimal("NaN", "price")
        with pytest.raises(ValidationError):
            to_decimal(True, "price")


class TestManualTrade:
    def test_builds_validated_trade(self) -> None:
        when = datetime(2024, 3, 4, 5, 0, tzinfo=timezone.utc)
        trade = new_manual_trade(
            symbol="nse:reliance-eq",
            broker="Fyers",
            entry_price="2900.5",
            exit_price=2950,
            quantity="4",
            segment="Equity",
            product_type="Delivery",
            confidence=7,
            strategy=" Breakout ",
            notes="Followed plan",
            date=when,
        )
        assert trade.symbol == "RELIANCE"
        assert trade.broker is Broker.FYERS
        assert trade.quantity == 4
        assert trade.pnl == Decimal("198.0")
        assert trade.segment is Segment.EQUITY
        assert trade.strategy == "Breakout"
        assert trade.date == when
        assert len(trade.id) == 32

    def test_fractional_quantity_rejected(self) -> None:
        with pytest.raises(ValidationError, match="whole number"):
            new_manual_trade(symbol="INFY", broker="Zerodha", entry_price=1, exit_price=2, quantity="1.5")

    def test_defaults(self) -> None:
        trade = new_manual_trade(symbol="INFY", broker="Dhan", entry_price=1, exit_price=2, quantity=1)
        assert trade.confidence == 5
        assert trade.strategy == "Manual"
        assert trade.date.tzinfo is not None
