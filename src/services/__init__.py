"""
Optional outbound collaborators: spreadsheet webhook sync and AI feedback.

Neither is required for importing or aggregating trades; both degrade to a
logged warning or a placeholder string when unconfigured or unreachable.
"""

from services.feedback import TradeCoach
from services.sheet_sync import SheetSync

__all__ = [
    "SheetSync",
    "TradeCoach",
]
