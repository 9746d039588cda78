"""
Push newly created trades to a spreadsheet webhook (e.g. a Google Apps Script URL).

Fire-and-forget: one POST of a JSON array, no retries. Failures are logged at
WARNING and never raised into the journal flow.
"""

from __future__ import annotations

import logging
import urllib.request
from typing import Sequence

from tradebook_core.contracts import Trade

from data.serialization import trades_to_json

logger = logging.getLogger("tradebook.sync")


class SheetSync:
    """POST serialized trades to a webhook URL."""

    def __init__(self, default_url: str = "", *, timeout: float = 5.0) -> None:
        self._default_url = (default_url or "").strip()
        self._timeout = timeout

    def push(self, trades: Sequence[Trade], url: str | None = None) -> bool:
        """Returns True when the POST went through. No URL or no trades is a no-op."""
        target = (url or self._default_url or "").strip()
        if not target or not trades:
            return False
        try:
            req = urllib.request.Request(
                target,
                data=trades_to_json(list(trades)).encode("utf-8"),
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            with urllib.request.urlopen(req, timeout=self._timeout):
                pass
        except Exception as exc:
            logger.warning("Webhook sync of %d trades failed: %s", len(trades), exc)
            return False
        logger.info("Synced %d trades to webhook", len(trades))
        return True

