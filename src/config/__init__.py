"""
Configuration loader.

App config: reads config.yaml, resolves env vars for secrets.
"""

from config.loader import (
    AppConfig,
    FeedbackConfig,
    ImportConfig,
    JournalConfig,
    LoggingConfig,
    SyncConfig,
    load_config,
)

__all__ = [
    "AppConfig",
    "FeedbackConfig",
    "ImportConfig",
    "JournalConfig",
    "LoggingConfig",
    "SyncConfig",
    "load_config",
]
