"""
Structured JSON event logger for journal operations.

Emits one JSON object per line to stderr so imports and edits can be
followed by log aggregators. Each method returns the record it emitted.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("tradebook.events")


class StructuredEventLogger:
    """Emit structured JSON events to a stream (stderr by default)."""

    def __init__(
        self,
        store: str,
        *,
        enabled: bool = True,
        stream: Any = None,
    ) -> None:
        self._store = store
        self._enabled = enabled
        self._stream = stream or sys.stderr

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "store": self._store,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record, default=str) + "\n")
            self._stream.flush()
        return record

    def import_started(self, broker: str, source: str, ticket: int) -> dict:
        return self._emit("import_started", broker=broker, source=source, ticket=ticket)

    def import_completed(
        self,
        broker: str,
        parsed_orders: int,
        closed_trades: int,
        new_trades: int,
        open_quantity: int,
    ) -> dict:
        return self._emit(
            "import_completed",
            broker=broker,
            orders=parsed_orders,
            closed=closed_trades,
            new=new_trades,
            open_qty=open_quantity,
        )

    def import_ignored(self, ticket: int, reason: str) -> dict:
        return self._emit("import_ignored", ticket=ticket, reason=reason)

    def trade_saved(self, trade_id: str, symbol: str, broker: str, pnl: str) -> dict:
        return self._emit("trade_saved", trade_id=trade_id, symbol=symbol, broker=broker, pnl=pnl)

    def trades_updated(self, trade_ids: list[str], fields: list[str]) -> dict:
        return self._emit("trades_updated", count=len(trade_ids), trade_ids=trade_ids, fields=fields)

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)
