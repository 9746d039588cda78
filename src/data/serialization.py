"""
Trade <-> JSON document mapping. Keys stay camelCase for compatibility with
existing journal exports and the sheet webhook.

Documents are validated against schema/trade.schema.json (jsonschema) on write
and on read. Read documents are also checked against the Trade invariants; a
stored pnl that disagrees with (exitPrice - entryPrice) * quantity is rejected.
"""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema

from tradebook_core.contracts import AppSettings, Broker, BrokerStatus, Trade
from tradebook_core.errors import ValidationError
from tradebook_core.validation import (
    coerce_broker,
    coerce_product_type,
    coerce_segment,
    to_decimal,
    validate_trade,
)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema" / "trade.schema.json"


@lru_cache(maxsize=1)
def _trade_schema() -> dict[str, Any]:
    with open(SCHEMA_PATH) as f:
        return json.load(f)


def _fmt_decimal(value: Decimal) -> str:
    return format(value, "f")


def _parse_instant(raw: str, field_name: str) -> datetime:
    try:
        ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field_name} is not an ISO timestamp: {raw!r}") from None
    if ts.tzinfo is None:
        raise ValidationError(f"{field_name} has no UTC offset: {raw!r}")
    return ts


def trade_to_dict(trade: Trade) -> dict[str, Any]:
    return {
        "id": trade.id,
        "date": trade.date.isoformat(),
        "symbol": trade.symbol,
        "broker": trade.broker.value,
        "entryPrice": _fmt_decimal(trade.entry_price),
        "exitPrice": _fmt_decimal(trade.exit_price),
        "quantity": trade.quantity,
        "pnl": _fmt_decimal(trade.pnl),
        "segment": trade.segment.value,
        "productType": trade.product_type.value if trade.product_type else None,
        "confidence": trade.confidence,
        "strategy": trade.strategy,
        "notes": trade.notes,
        "mistake": trade.mistake,
        "aiAnalysis": trade.ai_analysis,
    }


def check_trade_document(doc: dict[str, Any]) -> dict[str, Any]:
    """Validate *doc* against the trade JSON Schema. Raises ValidationError."""
    try:
        jsonschema.validate(instance=doc, schema=_trade_schema())
    except jsonschema.ValidationError as exc:
        where = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ValidationError(f"Trade document invalid at {where}: {exc.message}") from exc
    return doc


def trade_from_dict(doc: dict[str, Any]) -> Trade:
    """Validate a JSON document and build the Trade. Raises ValidationError."""
    check_trade_document(doc)

    trade = Trade(
        id=doc["id"],
        date=_parse_instant(doc["date"], "date"),
        symbol=doc["symbol"],
        broker=coerce_broker(doc["broker"]),
        entry_price=to_decimal(doc["entryPrice"], "entryPrice"),
        exit_price=to_decimal(doc["exitPrice"], "exitPrice"),
        quantity=doc["quantity"],
        segment=coerce_segment(doc["segment"]),
        product_type=coerce_product_type(doc.get("productType")),
        confidence=doc["confidence"],
        strategy=doc["strategy"],
        notes=doc.get("notes", ""),
        mistake=doc.get("mistake"),
        ai_analysis=doc.get("aiAnalysis"),
    )
    validate_trade(trade)

    if doc.get("pnl") is not None:
        stored = to_decimal(doc["pnl"], "pnl")
        if stored != trade.pnl:
            raise ValidationError(
                f"Trade {trade.id!r}: stored pnl {stored} != (exit - entry) * qty = {trade.pnl}"
            )
    return trade


def trades_to_json(trades: list[Trade]) -> str:
    return json.dumps([trade_to_dict(t) for t in trades])


def broker_to_dict(status: BrokerStatus) -> dict[str, Any]:
    return {
        "name": status.name.value,
        "isConnected": status.is_connected,
        "lastSync": status.last_sync.isoformat() if status.last_sync else None,
        "apiConfig": dict(status.api_config) if status.api_config else None,
    }


def broker_from_dict(doc: dict[str, Any]) -> BrokerStatus:
    last_sync = doc.get("lastSync")
    return BrokerStatus(
        name=coerce_broker(doc["name"]),
        is_connected=bool(doc.get("isConnected", False)),
        last_sync=_parse_instant(last_sync, "lastSync") if last_sync else None,
        api_config=doc.get("apiConfig") or None,
    )


def settings_to_dict(settings: AppSettings) -> dict[str, Any]:
    return {"googleSheetUrl": settings.sheet_webhook_url}


def settings_from_dict(doc: dict[str, Any]) -> AppSettings:
    return AppSettings(sheet_webhook_url=doc.get("googleSheetUrl") or None)


def default_brokers() -> list[BrokerStatus]:
    return [BrokerStatus(name=b) for b in Broker]
