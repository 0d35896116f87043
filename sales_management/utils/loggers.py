"""
utils/loggers.py

- get_logger(name) -> logging.Logger     plain text lines for the app
- get_event_logger() -> logging.Logger   JSON lines for domain events
- log_event(logger, op, phase, message, extra)
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from ..config import LOG_LEVEL

__all__ = ["get_logger", "get_event_logger", "log_event"]

_EVENT_LOGGER_NAME = "sales_management.events"


def get_logger(name="sales_management"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(LOG_LEVEL)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(ch)
    return logger


class _JsonLineFormatter(logging.Formatter):
    """
    {"ts":"2025-09-16T12:00:01.123Z","level":"INFO","name":"sales_management.events","msg":"...","extra":{...}}
    """
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra_payload") and isinstance(record.extra_payload, dict):
            payload["extra"] = record.extra_payload
        return json.dumps(payload, ensure_ascii=False, default=str)


def get_event_logger(level: Optional[int] = None) -> logging.Logger:
    """Reuses the same logger (no duplicate handlers) across calls."""
    logger = logging.getLogger(_EVENT_LOGGER_NAME)
    logger.setLevel(level if level is not None else LOG_LEVEL)
    logger.propagate = False

    if logger.handlers:
        return logger

    sh = logging.StreamHandler()
    sh.setFormatter(_JsonLineFormatter())
    logger.addHandler(sh)
    return logger


def log_event(
    logger: logging.Logger,
    op: str,
    phase: str,
    message: str,
    extra: Dict[str, object] | None = None,
    level: int = logging.INFO,
) -> None:
    """
    Log a structured event line.

    Args:
        op: Operation name, e.g. "convert", "allocate_code", "add_payment".
        phase: Phase within the operation, e.g. "start", "done", "rejected", "flagged".
        extra: Optional key/values (organization, document ids, amounts).
    """
    extra_payload = {"op": op, "phase": phase}
    if extra:
        for k, v in extra.items():
            if k not in extra_payload:
                extra_payload[k] = v

    logger.log(level, message, extra={"extra_payload": extra_payload})
