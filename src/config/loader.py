"""
Config loader: YAML file -> frozen dataclass tree.

Secrets are resolved from environment variables (OPENAI_API_KEY). The webhook URL
may come from the file or from TRADEBOOK_WEBHOOK_URL, which wins when set.
Config file holds only non-secret values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from tradebook_core.contracts import IMPORT_NOTE, Broker, Segment

logger = logging.getLogger("tradebook.config")


@dataclass(frozen=True)
class JournalConfig:
    store_path: str = "data/tradebook.db"
    timezone: str = "Asia/Kolkata"
    default_broker: Broker = Broker.ZERODHA

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class ImportConfig:
    default_segment: Segment = Segment.EQUITY
    note: str = IMPORT_NOTE


@dataclass(frozen=True)
class SyncConfig:
    webhook_url: str = ""
    timeout_seconds: float = 5.0


@dataclass(frozen=True)
class FeedbackConfig:
    model: str = "gpt-4o-mini"
    api_key: str = ""


@dataclass(frozen=True)
class LoggingConfig:
    structured_logs: bool = True


@dataclass(frozen=True)
class AppConfig:
    journal: JournalConfig = field(default_factory=JournalConfig)
    imports: ImportConfig = field(default_factory=ImportConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    feedback: FeedbackConfig = field(default_factory=FeedbackConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _enum_value(enum_cls, raw, key: str):
    for member in enum_cls:
        if str(raw).strip().lower() in (member.value.lower(), member.name.lower()):
            return member
    raise ValueError(f"{key}: unknown value {raw!r}. Supported: {[m.value for m in enum_cls]}")


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a mapping, got {type(value).__name__}")
    return value


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    Environment variables:
      - OPENAI_API_KEY         (AI feedback; optional)
      - TRADEBOOK_WEBHOOK_URL  (overrides sync.webhook_url)
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    j_raw = _section(raw, "journal")
    tz_name = str(j_raw.get("timezone", "Asia/Kolkata"))
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"journal.timezone: unknown timezone {tz_name!r}") from None
    j_cfg = JournalConfig(
        store_path=str(j_raw.get("store_path", "data/tradebook.db")),
        timezone=tz_name,
        default_broker=_enum_value(Broker, j_raw.get("default_broker", Broker.ZERODHA.value), "journal.default_broker"),
    )

    i_raw = _section(raw, "import")
    i_cfg = ImportConfig(
        default_segment=_enum_value(Segment, i_raw.get("default_segment", Segment.EQUITY.value), "import.default_segment"),
        note=str(i_raw.get("note", IMPORT_NOTE)),
    )

    s_raw = _section(raw, "sync")
    webhook_url = os.environ.get("TRADEBOOK_WEBHOOK_URL") or str(s_raw.get("webhook_url") or "")
    s_cfg = SyncConfig(
        webhook_url=webhook_url.strip(),
        timeout_seconds=float(s_raw.get("timeout_seconds", 5.0)),
    )

    f_raw = _section(raw, "feedback")
    f_cfg = FeedbackConfig(
        model=str(f_raw.get("model", "gpt-4o-mini")),
        api_key=os.environ.get("OPENAI_API_KEY", ""),
    )

    l_raw = _section(raw, "logging")
    l_cfg = LoggingConfig(structured_logs=bool(l_raw.get("structured_logs", True)))

    logger.debug("Loaded config from %s (store=%s, tz=%s)", config_path, j_cfg.store_path, j_cfg.timezone)
    return AppConfig(journal=j_cfg, imports=i_cfg, sync=s_cfg, feedback=f_cfg, logging=l_cfg)
