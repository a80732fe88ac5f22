from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Optional


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line; fields given as extra={"extra": {...}} land under "extra":
      { "t": 169..., "lvl": "WARNING", "name": "grid_builder.sources",
        "msg": "Skipping record", "extra": {"path": "..."} }
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):  # type: ignore[attr-defined]
            payload["extra"] = record.extra  # type: ignore[attr-defined]
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable variant for terminals; appends structured fields as k=v."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().format(record)
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict) and extra:
            line += " " + " ".join(f"{k}={v}" for k, v in extra.items())
        return line


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None, *, force: bool = False) -> None:
    """
    Install a single stdout handler on the root logger.

    `level` falls back to $LOG_LEVEL and then INFO; unknown names mean INFO.
    `fmt` is "json" or "text" and falls back to $LOG_FORMAT and then json.
    Later calls are no-ops unless `force` is set, so CLI entry points can
    override whatever a library import configured first.
    """
    root = logging.getLogger()
    if getattr(root, "_grid_configured", False) and not force:
        return

    lvl_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    lvl = logging.getLevelName(lvl_name)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    fmt_name = (fmt or os.environ.get("LOG_FORMAT") or "json").lower()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(TextFormatter() if fmt_name == "text" else JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(lvl)
    root._grid_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Logger for `name`, configuring the root handler on first use."""
    setup_logging()
    return logging.getLogger(name)
