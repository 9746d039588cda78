"""
Tradebook parser: raw broker export (CSV/text) -> RawOrder rows.

Broker exports carry metadata noise above the real table (report title, client
id, date range). The header is the first row in which every required column
resolves through the alias table; rows below it that do not parse as an order
(totals, footers, blank lines) are skipped.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime, time, tzinfo
from decimal import Decimal, InvalidOperation

from tradebook_core.contracts import DEFAULT_TZ, ProductType, RawOrder, Segment, Side
from tradebook_core.errors import ParseError
from tradebook_core.symbols import infer_segment, normalize_symbol

logger = logging.getLogger("tradebook.parser")

_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")
_DELIMITERS = ",;\t|"

_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d-%b-%Y %H:%M:%S",
    "%d %b %Y %H:%M:%S",
    "%d-%m-%Y %I:%M:%S %p",
    "%d/%m/%Y %I:%M:%S %p",
    "%Y-%m-%d %I:%M:%S %p",
    "%d %b %Y, %I:%M %p",
)
_DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%d-%b-%Y", "%d %b %Y")
_TIME_FORMATS = ("%H:%M:%S", "%H:%M", "%I:%M:%S %p", "%I:%M %p")

# Canonical column -> header aliases, highest priority first.
_ALIASES: dict[str, tuple[str, ...]] = {
    "symbol": ("symbol", "tradingsymbol", "trading symbol", "symbol name", "scrip", "scrip name", "instrument", "ticker", "stock"),
    "side": ("trade_type", "transaction type", "side", "buy/sell", "buy sell", "action", "type"),
    "price": ("price", "trade price", "traded price", "fill price", "average price", "avg price", "rate"),
    "quantity": ("quantity", "qty", "traded qty", "filled qty", "trade qty", "shares"),
    "datetime": (
        "order_execution_time", "execution time", "trade time", "order time", "exchange time",
        "trade date time", "datetime", "date/time", "date time", "timestamp",
        "trade_date", "trade date", "date", "time",
    ),
    # Split layouts: a date-only column plus a time-only column.
    "date": ("trade_date", "trade date", "order date", "date"),
    "time": ("time", "trade time", "order time", "execution time", "exchange time"),
    "ref": ("trade_id", "trade id", "trade no", "trade number", "order_id", "order id", "order no", "order number"),
    "segment": ("segment", "exchange segment", "instrument type", "series"),
    "product": ("product", "product type", "product_type"),
}
_REQUIRED = frozenset({"symbol", "side", "price", "quantity", "datetime"})

_BUY_WORDS = frozenset({"buy", "b", "bot", "bought", "purchase"})
_SELL_WORDS = frozenset({"sell", "s", "sld", "sold"})

_SEGMENTS = {
    "eq": Segment.EQUITY, "equity": Segment.EQUITY, "cash": Segment.EQUITY,
    "fo": Segment.FNO, "nfo": Segment.FNO, "bfo": Segment.FNO, "fno": Segment.FNO,
    "derivatives": Segment.FNO, "futures": Segment.FNO, "options": Segment.FNO,
}
_PRODUCTS = {
    "mis": ProductType.INTRADAY, "intraday": ProductType.INTRADAY, "bo": ProductType.INTRADAY, "co": ProductType.INTRADAY,
    "cnc": ProductType.DELIVERY, "delivery": ProductType.DELIVERY, "nrml": ProductType.DELIVERY, "margin": ProductType.DELIVERY,
}


def _norm_header(name: str) -> str:
    """Lowercase and drop punctuation so "Trade Type", "trade_type", "TRADETYPE" all match."""
    return re.sub(r"[^a-z0-9]+", "", (name or "").strip().lower())


_ALIAS_NORM = {canon: tuple(_norm_header(a) for a in aliases) for canon, aliases in _ALIASES.items()}


# ---------------------------------------------------------------------------
# Cell parsers
# ---------------------------------------------------------------------------


def decode_bytes(data: bytes) -> str:
    for enc in _ENCODINGS:
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def parse_decimal(raw: str) -> Decimal | None:
    s = (raw or "").strip()
    if not s:
        return None
    negative = s.startswith("(") and s.endswith(")")
    s = s.strip("()")
    s = s.replace(",", "").replace("₹", "").replace("INR", "").replace("Rs.", "").strip()
    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return -value if negative else value


def _parse_quantity(raw: str) -> int | None:
    value = parse_decimal(raw)
    if value is None or value == 0 or value != value.to_integral_value():
        return None
    return abs(int(value))


def _parse_side(raw: str) -> Side | None:
    word = (raw or "").strip().lower()
    if word in _BUY_WORDS:
        return Side.BUY
    if word in _SELL_WORDS:
        return Side.SELL
    return None


def _parse_time(raw: str) -> time | None:
    s = (raw or "").strip()
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    return None


def parse_timestamp(raw: str, tz: tzinfo = DEFAULT_TZ, time_raw: str | None = None) -> datetime | None:
    """Parse a broker timestamp. Naive values are local to *tz*.

    A date-only value is combined with *time_raw* when one is given.
    """
    s = (raw or "").strip()
    if not s:
        return None
    dt: datetime | None = None
    date_only = False
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        date_only = len(s) <= 10
    except ValueError:
        for fmt in _DATETIME_FORMATS:
            try:
                dt = datetime.strptime(s, fmt)
                break
            except ValueError:
                continue
        if dt is None:
            for fmt in _DATE_FORMATS:
                try:
                    dt = datetime.strptime(s, fmt)
                    date_only = True
                    break
                except ValueError:
                    continue
    if dt is None:
        return None
    if date_only and time_raw:
        t = _parse_time(time_raw)
        if t is not None:
            dt = datetime.combine(dt.date(), t)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def _parse_segment(raw: str) -> Segment | None:
    return _SEGMENTS.get(_norm_header(raw))


def _parse_product(raw: str) -> ProductType | None:
    return _PRODUCTS.get(_norm_header(raw))


# ---------------------------------------------------------------------------
# Table location
# ---------------------------------------------------------------------------


def _sniff_delimiter(text: str) -> str:
    sample = text[:8192]
    try:
        return csv.Sniffer().sniff(sample, delimiters=_DELIMITERS).delimiter
    except csv.Error:
        counts = {d: sample.count(d) for d in _DELIMITERS}
        return max(counts, key=counts.get)


def resolve_header(row: list[str]) -> dict[str, int] | None:
    """Map canonical column -> index, or None if *row* is not an order-table header."""
    names = [_norm_header(c) for c in row]
    positions: dict[str, int] = {}
    for canon, aliases in _ALIAS_NORM.items():
        for alias in aliases:
            if alias in names:
                positions[canon] = names.index(alias)
                break
    if not _REQUIRED <= positions.keys():
        return None
    for extra in ("date", "time"):
        if positions.get(extra) == positions["datetime"]:
            positions.pop(extra)
    return positions


def _cell(row: list[str], positions: dict[str, int], name: str) -> str:
    idx = positions.get(name)
    if idx is None or idx >= len(row):
        return ""
    return row[idx]


def _row_to_order(row: list[str], positions: dict[str, int], row_number: int, tz: tzinfo) -> RawOrder | None:
    symbol = normalize_symbol(_cell(row, positions, "symbol"))
    side = _parse_side(_cell(row, positions, "side"))
    price = parse_decimal(_cell(row, positions, "price"))
    quantity = _parse_quantity(_cell(row, positions, "quantity"))
    time_raw = _cell(row, positions, "time") or None
    ts = parse_timestamp(_cell(row, positions, "datetime"), tz, time_raw)
    if ts is None and "date" in positions:
        # "datetime" picked a time-only column; pair it with the date column.
        ts = parse_timestamp(_cell(row, positions, "date"), tz, time_raw or _cell(row, positions, "datetime"))
    if not symbol or side is None or price is None or price <= 0 or quantity is None or ts is None:
        return None
    segment = _parse_segment(_cell(row, positions, "segment")) if "segment" in positions else None
    if segment is None:
        segment = infer_segment(symbol)
    product = _parse_product(_cell(row, positions, "product")) if "product" in positions else None
    return RawOrder(
        symbol=symbol,
        side=side,
        price=price,
        quantity=quantity,
        timestamp=ts,
        row_number=row_number,
        segment=segment,
        product_type=product,
        broker_ref=_cell(row, positions, "ref").strip(),
    )


def parse_tradebook(data: str | bytes, *, tz: tzinfo = DEFAULT_TZ) -> list[RawOrder]:
    """Locate the order table in a broker export and parse its rows.

    Raises
    ------
    ParseError
        No header row was found, or the header has no usable order rows under it.
    """
    text = decode_bytes(data) if isinstance(data, bytes) else data
    if not text.strip():
        raise ParseError("Tradebook is empty")

    delimiter = _sniff_delimiter(text)
    rows = list(csv.reader(io.StringIO(text), delimiter=delimiter))

    header_at: int | None = None
    positions: dict[str, int] | None = None
    for i, row in enumerate(rows):
        positions = resolve_header(row)
        if positions is not None:
            header_at = i
            break
    if header_at is None or positions is None:
        raise ParseError(
            "No order table found: expected a header with Symbol, Side, Price, Quantity and Date/Time columns"
        )

    orders: list[RawOrder] = []
    skipped = 0
    for i, row in enumerate(rows[header_at + 1:], start=header_at + 2):
        if not any(c.strip() for c in row):
            continue
        order = _row_to_order(row, positions, i, tz)
        if order is None:
            skipped += 1
            logger.debug("Skipping unparseable row %d: %r", i, row)
            continue
        orders.append(order)

    if not orders:
        raise ParseError(f"Order table at line {header_at + 1} has no recognizable order rows")

    logger.info("Parsed %d order rows (header at line %d, %d skipped)", len(orders), header_at + 1, skipped)
    return orders
