"""
tradebook-core: deterministic tradebook reconciliation and trade aggregation.

No I/O, no network, no side effects. The matcher turns a raw broker export into
closed Trades; the aggregation functions derive metrics, grouped history and
per-bucket statistics from a Trade collection.
"""

from tradebook_core.contracts import (
    AppSettings,
    Broker,
    BrokerStatus,
    BucketStats,
    DailyStat,
    GroupedTrade,
    MatchResult,
    Metrics,
    PnLPoint,
    ProductType,
    RawOrder,
    Segment,
    Side,
    SortDirection,
    SortField,
    Trade,
    TradeFilter,
)
from tradebook_core.errors import (
    ExternalServiceError,
    ParseError,
    StoreError,
    TradebookError,
    ValidationError,
)
from tradebook_core.grouping import (
    SortState,
    build_history,
    filter_groups,
    filter_trades,
    group_by_day_symbol_broker,
    sort_groups,
)
from tradebook_core.matcher import import_tradebook, match, match_orders
from tradebook_core.metrics import compute_metrics, cumulative_pnl_series, daily_pnl
from tradebook_core.parser import parse_tradebook
from tradebook_core.stats import per_strategy_stats, per_symbol_stats
from tradebook_core.symbols import normalize_symbol
from tradebook_core.validation import new_manual_trade, validate_trade

__all__ = [
    # Contracts
    "AppSettings",
    "Broker",
    "BrokerStatus",
    "BucketStats",
    "DailyStat",
    "GroupedTrade",
    "MatchResult",
    "Metrics",
    "PnLPoint",
    "ProductType",
    "RawOrder",
    "Segment",
    "Side",
    "SortDirection",
    "SortField",
    "Trade",
    "TradeFilter",
    # Errors
    "ExternalServiceError",
    "ParseError",
    "StoreError",
    "TradebookError",
    "ValidationError",
    # Matcher
    "import_tradebook",
    "match",
    "match_orders",
    "normalize_symbol",
    "parse_tradebook",
    # Aggregation
    "SortState",
    "build_history",
    "compute_metrics",
    "cumulative_pnl_series",
    "daily_pnl",
    "filter_groups",
    "filter_trades",
    "group_by_day_symbol_broker",
    "per_strategy_stats",
    "per_symbol_stats",
    "sort_groups",
    # Validation
    "new_manual_trade",
    "validate_trade",
]
