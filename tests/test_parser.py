"""Tests for tradebook parsing: header location, aliases, cell parsing, symbol normalization."""

from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from tradebook_core.contracts import DEFAULT_TZ, ProductType, Segment, Side
from tradebook_core.errors import ParseError
from tradebook_core.parser import (
    decode_bytes,
    parse_decimal,
    parse_timestamp,
    parse_tradebook,
    resolve_header,
)
from tradebook_core.symbols import infer_segment, normalize_symbol


class TestNormalizeSymbol:
    def test_strips_exchange_prefix_and_series_suffix(self) -> None:
        assert normalize_symbol("NSE:SOUTHBANK-EQ") == "SOUTHBANK"

    def test_bse_prefix(self) -> None:
        assert normalize_symbol("BSE:RELIANCE") == "RELIANCE"

    def test_case_insensitive_patterns(self) -> None:
        assert normalize_symbol("nse:infy-eq") == "infy"

    def test_plain_symbol_untouched(self) -> None:
        assert normalize_symbol("  TCS ") == "TCS"

    def test_other_hyphens_kept(self) -> None:
        assert normalize_symbol("BAJAJ-AUTO") == "BAJAJ-AUTO"

    def test_infer_segment(self) -> None:
        assert infer_segment("NIFTY24MAR22000CE") is Segment.FNO
        assert infer_segment("BANKNIFTY24MARFUT") is Segment.FNO
        assert infer_segment("INFY") is None


class TestCells:
    def test_parse_decimal_strips_grouping_and_currency(self) -> None:
        assert parse_decimal("₹1,234.50") == Decimal("1234.50")

    def test_parse_decimal_accounting_negative(self) -> None:
        assert parse_decimal("(12.5)") == Decimal("-12.5")

    def test_parse_decimal_rejects_text(self) -> None:
        assert parse_decimal("n/a") is None
        assert parse_decimal("") is None

    def test_naive_timestamp_gets_journal_tz(self) -> None:
        ts = parse_timestamp("2024-03-04 09:15:00")
        assert ts == datetime(2024, 3, 4, 9, 15, tzinfo=DEFAULT_TZ)

    def test_offset_timestamp_kept(self) -> None:
        ts = parse_timestamp("2024-03-04T03:45:00+00:00")
        assert ts.utcoffset().total_seconds() == 0

    def test_day_first_format(self) -> None:
        ts = parse_timestamp("04-03-2024 09:15:00", ZoneInfo("UTC"))
        assert (ts.year, ts.month, ts.day) == (2024, 3, 4)

    def test_date_combined_with_time_column(self) -> None:
        ts = parse_timestamp("2024-03-04", DEFAULT_TZ, "14:05:30")
        assert (ts.hour, ts.minute, ts.second) == (14, 5, 30)

    def test_unparseable_timestamp(self) -> None:
        assert parse_timestamp("yesterday") is None

    def test_decode_bytes_with_bom(self) -> None:
        assert decode_bytes("\ufeffsymbol".encode("utf-8")) == "symbol"


class TestResolveHeader:
    def test_zerodha_header(self) -> None:
        row = "symbol,isin,trade_date,exchange,segment,series,trade_type,auction,quantity,price,trade_id,order_id,order_execution_time".split(",")
        pos = resolve_header(row)
        assert pos is not None
        assert pos["side"] == 6
        assert pos["datetime"] == 12  # execution time beats trade_date
        assert pos["segment"] == 4

    def test_spaced_aliases(self) -> None:
        pos = resolve_header(["Scrip Name", "Buy/Sell", "Trade Price", "Qty", "Trade Time"])
        assert pos == {"symbol": 0, "side": 1, "price": 2, "quantity": 3, "datetime": 4}

    def test_metadata_row_is_not_a_header(self) -> None:
        assert resolve_header(["Client ID", "AB1234"]) is None

    def test_split_date_and_time_columns(self) -> None:
        pos = resolve_header(["Symbol", "Buy/Sell", "Price", "Qty", "Trade Date", "Trade Time"])
        assert pos is not None
        assert pos["date"] == 4
        assert pos["datetime"] == 5
        assert "time" not in pos

    def test_broker_trade_id_column(self) -> None:
        row = "symbol,trade_type,quantity,price,trade_id,order_id,order_execution_time".split(",")
        assert resolve_header(row)["ref"] == 4


class TestParseTradebook:
    def test_skips_metadata_and_parses_rows(self, zerodha_export: str) -> None:
        orders = parse_tradebook(zerodha_export)
        assert len(orders) == 5
        first = orders[0]
        assert first.symbol == "SOUTHBANK"
        assert first.side is Side.BUY
        assert first.price == Decimal("30.50")
        assert first.quantity == 10
        assert first.segment is Segment.EQUITY
        assert first.timestamp == datetime(2024, 3, 4, 9, 20, tzinfo=DEFAULT_TZ)

    def test_row_numbers_are_source_lines(self, zerodha_export: str) -> None:
        orders = parse_tradebook(zerodha_export)
        assert orders[0].row_number == 5

    def test_bytes_input(self, zerodha_export: str) -> None:
        assert len(parse_tradebook(zerodha_export.encode("utf-8"))) == 5

    def test_footer_and_blank_rows_skipped(self) -> None:
        text = (
            "Symbol,Side,Price,Quantity,Date,Product\n"
            "INFY,BUY,1500,5,2024-03-04 10:00:00,MIS\n"
            "\n"
            "Total,,,,,\n"
            "INFY,SELL,1510,5,2024-03-04 11:00:00,MIS\n"
        )
        orders = parse_tradebook(text)
        assert [o.side for o in orders] == [Side.BUY, Side.SELL]
        assert all(o.product_type is ProductType.INTRADAY for o in orders)

    def test_semicolon_delimited(self) -> None:
        text = "Symbol;Type;Rate;Qty;Timestamp\nTCS;Sell;3500.5;2;2024-03-04 10:00\nTCS;Buy;3490;2;2024-03-04 09:30\n"
        orders = parse_tradebook(text)
        assert orders[0].side is Side.SELL
        assert orders[0].price == Decimal("3500.5")
        assert len(orders) == 2

    def test_segment_inferred_from_contract_symbol(self) -> None:
        text = "Symbol,Side,Price,Quantity,Date\nNIFTY24MARFUT,Buy,22000,50,2024-03-04 10:00\n"
        assert parse_tradebook(text)[0].segment is Segment.FNO

    def test_no_header_raises(self) -> None:
        with pytest.raises(ParseError, match="No order table"):
            parse_tradebook("just,some\nrandom,text\n")

    def test_empty_raises(self) -> None:
        with pytest.raises(ParseError):
            parse_tradebook("   ")

    def test_header_without_rows_raises(self) -> None:
        with pytest.raises(ParseError, match="no recognizable order rows"):
            parse_tradebook("Symbol,Side,Price,Quantity,Date\nTotal,,,,\n")

    def test_trade_date_and_trade_time_columns_combined(self) -> None:
        text = (
            "Symbol,Buy/Sell,Price,Qty,Trade Date,Trade Time\n"
            "INFY,Buy,1500,5,2024-03-04,09:20:00\n"
            "INFY,Sell,1510,5,2024-03-04,14:05:00\n"
        )
        orders = parse_tradebook(text)
        assert [o.timestamp for o in orders] == [
            datetime(2024, 3, 4, 9, 20, tzinfo=DEFAULT_TZ),
            datetime(2024, 3, 4, 14, 5, tzinfo=DEFAULT_TZ),
        ]

    def test_date_and_plain_time_columns_combined(self) -> None:
        text = "Symbol,Side,Price,Quantity,Date,Time\nTCS,Buy,3500,1,04/03/2024,10:15\n"
        [order] = parse_tradebook(text)
        assert order.timestamp == datetime(2024, 3, 4, 10, 15, tzinfo=DEFAULT_TZ)

    def test_broker_trade_id_kept(self, zerodha_export: str) -> None:
        orders = parse_tradebook(zerodha_export)
        assert [o.broker_ref for o in orders] == ["1001", "1002", "1003", "1004", "1005"]
