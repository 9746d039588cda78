"""
Ticker normalization: strip broker/exchange decorations, keep the instrument name.

"NSE:SOUTHBANK-EQ" -> "SOUTHBANK". Pattern matching is case-insensitive,
the remaining text keeps its original case.
"""

import re

from tradebook_core.contracts import Segment

_EXCHANGE_PREFIX = re.compile(r"^(?:NSE|BSE|NFO|BFO|MCX|CDS)\s*:\s*", re.IGNORECASE)

# NSE series codes that brokers append to cash-segment symbols.
_SERIES_SUFFIX = re.compile(r"-(?:EQ|BE|BZ|BL|IL|SM|ST)$", re.IGNORECASE)

_DERIVATIVE = re.compile(r"(?:\d[A-Z]{0,3}FUT|\d(?:CE|PE))$", re.IGNORECASE)


def normalize_symbol(raw: str) -> str:
    """Strip exchange prefix and series suffix from a broker symbol."""
    s = (raw or "").strip()
    s = _EXCHANGE_PREFIX.sub("", s)
    s = _SERIES_SUFFIX.sub("", s)
    return s.strip()


def infer_segment(symbol: str) -> Segment | None:
    """F&O when the symbol looks like a future/option contract, else unknown."""
    if _DERIVATIVE.search(symbol.strip()):
        return Segment.FNO
    return None
