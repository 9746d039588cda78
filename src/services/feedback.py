"""
AI trade coaching via the OpenAI chat completions API.

Optional collaborator: without an API key every call returns a labelled
placeholder, and any client failure degrades to an error placeholder. Nothing
here raises into the journal flow.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from openai import OpenAI

from tradebook_core.contracts import BucketStats, Trade
from tradebook_core.errors import ExternalServiceError

logger = logging.getLogger("tradebook.feedback")

DEFAULT_MODEL = "gpt-4o-mini"

UNAVAILABLE_TRADE = (
    "AI Analysis Unavailable: Please configure your API Key to get real-time feedback. "
    "Good job logging the trade!"
)
UNAVAILABLE_PORTFOLIO = "AI Analysis Unavailable: Please configure your API Key."
ERROR_PLACEHOLDER = "Error generating analysis. Please try again later."


def _trade_prompt(trade: Trade) -> str:
    if trade.is_imported:
        context = (
            "NOTE: This trade was imported from a broker tradebook and lacks user notes.\n"
            f"Infer potential reasons for this trade from the price action "
            f"(Entry: {trade.entry_price}, Exit: {trade.exit_price}, "
            f"Direction: {'Win' if trade.is_win else 'Loss'}).\n"
            "- What kind of market move usually corresponds to this outcome?\n"
            "- Comment on the risk/reward purely based on the numbers."
        )
    else:
        context = (
            f'User Notes: "{trade.notes}"\n'
            f'Mistake: "{trade.mistake or "None"}"\n'
            "Analyze alignment of confidence vs result and strategy execution."
        )
    return (
        "Act as a professional senior trading psychology coach and risk manager.\n"
        "Analyze this trade execution:\n\n"
        f"Symbol: {trade.symbol}\n"
        f"Broker: {trade.broker.value}\n"
        f"Strategy: {trade.strategy}\n"
        f"Entry: {trade.entry_price}\n"
        f"Exit: {trade.exit_price}\n"
        f"Quantity: {trade.quantity}\n"
        f"PnL: {trade.pnl}\n"
        f"Confidence: {trade.confidence}/10\n"
        f"Date: {trade.date.isoformat()}\n\n"
        f"{context}\n\n"
        "Provide 2-3 sentences of concise, actionable feedback. Be direct and helpful."
    )


def _portfolio_prompt(stats: Sequence[BucketStats]) -> str:
    summary = "\n".join(
        f"{s.key}: PnL {s.total_pnl}, Win Rate {s.display_win_rate}% ({s.wins}/{s.total})" for s in stats
    )
    return (
        "Act as a hedge fund portfolio manager. Review these trading statistics by asset (symbol):\n\n"
        f"{summary}\n\n"
        "Provide a strategic assessment in bullet points:\n"
        "1. Best Performers: which assets are generating alpha?\n"
        "2. Problem Areas: which assets are dragging down the portfolio?\n"
        "3. Actionable Advice: what to trade more of and what to avoid or review.\n\n"
        "Keep it professional, encouraging, and under 150 words."
    )


class TradeCoach:
    """Per-trade and per-portfolio feedback. Pass client= to inject a fake in tests."""

    def __init__(self, api_key: str = "", *, model: str = DEFAULT_MODEL, client: Any = None) -> None:
        self._model = model or DEFAULT_MODEL
        self._client = client
        if self._client is None and api_key:
            self._client = OpenAI(api_key=api_key)

    @property
    def available(self) -> bool:
        return self._client is not None

    def _complete(self, prompt: str) -> str:
        try:
            resp = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.3,
            )
        except Exception as exc:
            raise ExternalServiceError(f"OpenAI request failed: {exc}") from exc
        text = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        return text

    def analyze_trade(self, trade: Trade) -> str:
        if not self.available:
            logger.warning("OPENAI_API_KEY not set; returning placeholder analysis")
            return UNAVAILABLE_TRADE
        try:
            return self._complete(_trade_prompt(trade)) or "Could not generate analysis."
        except ExternalServiceError as exc:
            logger.error("Trade analysis for %s failed: %s", trade.id, exc)
            return ERROR_PLACEHOLDER

    def analyze_portfolio(self, symbol_stats: Sequence[BucketStats]) -> str:
        if not self.available:
            return UNAVAILABLE_PORTFOLIO
        try:
            return self._complete(_portfolio_prompt(symbol_stats)) or "Could not generate portfolio analysis."
        except ExternalServiceError as exc:
            logger.error("Portfolio analysis failed: %s", exc)
            return ERROR_PLACEHOLDER
