"""
Journal persistence: JSON document mapping, SQLite store, and the state-owning repository.

Depends on tradebook_core for contracts; no dependency from tradebook_core back to data.
"""

from data.repository import TradeRepository
from data.serialization import trade_from_dict, trade_to_dict, trades_to_json
from data.trade_store import TradeStore

__all__ = [
    "TradeRepository",
    "TradeStore",
    "trade_from_dict",
    "trade_to_dict",
    "trades_to_json",
]
