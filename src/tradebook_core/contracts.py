"""
Data contracts for tradebook-core: RawOrder, Trade, GroupedTrade, Metrics.

RawOrder is the matcher's input (one per export row), Trade is the persisted
closed round trip, everything else is a derived view. No I/O; plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from zoneinfo import ZoneInfo

DEFAULT_TZ = ZoneInfo("Asia/Kolkata")

IMPORT_NOTE = "Imported via Tradebook CSV"
IMPORT_ID_PREFIX = "imported-"
IMPORT_ANALYSIS = "Trade imported from broker records."
DEFAULT_STRATEGY = "Manual"
DEFAULT_CONFIDENCE = 5
DEFAULT_STRATEGIES = ("Manual", "Trend-Following", "Mean-Reversion", "Breakout")
NO_BROKER = "N/A"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Side(str, Enum):
    """Order side of a raw export row."""

    BUY = "Buy"
    SELL = "Sell"

    @property
    def opposite(self) -> Side:
        return Side.SELL if self is Side.BUY else Side.BUY


class Broker(str, Enum):
    """Supported broker identities. Declaration order is the canonical order."""

    ZERODHA = "Zerodha"
    FYERS = "Fyers"
    DHAN = "Dhan"
    ANGEL_ONE = "Angel One"


class Segment(str, Enum):
    EQUITY = "Equity"
    FNO = "F&O"


class ProductType(str, Enum):
    INTRADAY = "Intraday"
    DELIVERY = "Delivery"


class SortField(str, Enum):
    """Sortable GroupedTrade fields. Values match the serialized key names."""

    DATE = "date"
    SYMBOL = "symbol"
    BROKER = "broker"
    TOTAL_PNL = "totalPnL"
    TOTAL_QTY = "totalQty"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @property
    def reversed(self) -> SortDirection:
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawOrder:
    """One order row from a broker export. Ephemeral; never persisted."""

    symbol: str
    side: Side
    price: Decimal
    quantity: int
    timestamp: datetime
    row_number: int = 0
    segment: Segment | None = None
    product_type: ProductType | None = None
    broker_ref: str = ""  # exchange trade id (or order id) when the export carries one


@dataclass(frozen=True)
class Trade:
    """Closed round trip. pnl is always derived from prices and quantity."""

    id: str
    date: datetime
    symbol: str
    broker: Broker
    entry_price: Decimal
    exit_price: Decimal
    quantity: int
    segment: Segment = Segment.EQUITY
    confidence: int = DEFAULT_CONFIDENCE
    strategy: str = DEFAULT_STRATEGY
    notes: str = ""
    product_type: ProductType | None = None
    mistake: str | None = None
    ai_analysis: str | None = None

    @property
    def pnl(self) -> Decimal:
        return (self.exit_price - self.entry_price) * self.quantity

    @property
    def effective_product_type(self) -> ProductType:
        return self.product_type or ProductType.DELIVERY

    @property
    def is_win(self) -> bool:
        return self.pnl > 0

    @property
    def is_imported(self) -> bool:
        return self.id.startswith(IMPORT_ID_PREFIX) or IMPORT_NOTE in self.notes or not self.notes.strip()


@dataclass(frozen=True)
class GroupedTrade:
    """Executions sharing (calendar day, symbol, broker). View-level only."""

    id: str
    day: date
    date: datetime
    symbol: str
    broker: Broker
    total_pnl: Decimal
    total_qty: int
    trades: tuple[Trade, ...]


@dataclass(frozen=True)
class BrokerStatus:
    """Per-broker connection flag. Owned by broker management; core reads name/last_sync."""

    name: Broker
    is_connected: bool = False
    last_sync: datetime | None = None
    api_config: dict[str, str] | None = None


@dataclass(frozen=True)
class AppSettings:
    sheet_webhook_url: str | None = None


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Metrics:
    """Portfolio summary. best_broker is a Broker or "N/A" when there are no trades."""

    total_pnl: Decimal
    win_rate: float
    avg_trade_value: Decimal
    total_trades: int
    trades_today: int
    best_broker: Broker | str


@dataclass(frozen=True)
class PnLPoint:
    """One point of the cumulative PnL series (one per trade)."""

    date: datetime
    cumulative_pnl: Decimal
    trade_pnl: Decimal
    symbol: str
    broker: Broker
    strategy: str
    confidence: int


@dataclass(frozen=True)
class DailyStat:
    day: date
    pnl: Decimal
    trade_count: int


@dataclass(frozen=True)
class BucketStats:
    """Per-strategy or per-symbol statistics. win_rate kept unrounded."""

    key: str
    total: int
    wins: int
    total_pnl: Decimal
    total_confidence: int

    @property
    def win_rate(self) -> float:
        return self.wins / self.total * 100 if self.total else 0.0

    @property
    def display_win_rate(self) -> int:
        return round(self.win_rate)

    @property
    def avg_confidence(self) -> float:
        return self.total_confidence / self.total if self.total else 0.0


@dataclass(frozen=True)
class TradeFilter:
    """Exact-match filters; None means "All"."""

    broker: Broker | None = None
    segment: Segment | None = None
    strategy: str | None = None
    product_type: ProductType | None = None

    def matches(self, trade: Trade) -> bool:
        if self.broker is not None and trade.broker != self.broker:
            return False
        if self.segment is not None and trade.segment != self.segment:
            return False
        if self.strategy is not None and trade.strategy != self.strategy:
            return False
        if self.product_type is not None and trade.effective_product_type != self.product_type:
            return False
        return True

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.broker, self.segment, self.strategy, self.product_type))


@dataclass(frozen=True)
class MatchResult:
    """Matcher output: closed trades plus the open remainder that was dropped."""

    trades: list[Trade] = field(default_factory=list)
    open_orders: list[RawOrder] = field(default_factory=list)

    @property
    def open_quantity(self) -> int:
        return sum(o.quantity for o in self.open_orders)
