"""
Error taxonomy for the tradebook core.

The matcher and aggregation engine raise only ValidationError / ParseError.
StoreError and ExternalServiceError belong to the adapters around the core.
"""


class TradebookError(Exception):
    """Base class for all tradebook errors."""


class ValidationError(TradebookError):
    """A Trade (or trade input) has malformed fields. Rejected before persistence."""


class ParseError(TradebookError):
    """Import text contains no recognizable order table."""


class StoreError(TradebookError):
    """Persistence layer failure. In-memory state must not move ahead of the store."""


class ExternalServiceError(TradebookError):
    """AI feedback or webhook failure. Never fatal to the core flow."""
