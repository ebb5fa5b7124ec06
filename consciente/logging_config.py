"""
JSON logging for the Consciente API.

Every record is one JSON object per line. Pipeline identifiers (stage, chat,
gateway message id, contact, conversation) are lifted out of ``context`` to
top-level keys so one inbound message can be followed across log lines with
a single filter.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

PIPELINE_FIELDS = ("stage", "chat_id", "external_id", "contact_id", "conversation_id")

QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = dict(getattr(record, "context", None) or {})
        for key in PIPELINE_FIELDS:
            if context.get(key) is not None:
                log_data[key] = context.pop(key)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Send JSON lines to stdout and quiet the HTTP client loggers."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"consciente.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter whose bound fields and per-call ``context=`` end up in one context dict."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        if context or self.extra:
            kwargs["extra"] = {"context": {**self.extra, **(context or {})}}
        return msg, kwargs

    def bind(self, **fields: Any) -> "LoggerAdapter":
        return LoggerAdapter(self.logger, {**self.extra, **fields})


def pipeline_logger(logger: logging.Logger, chat_id: str, external_id: Optional[str]) -> LoggerAdapter:
    """Adapter for one inbound message; bind contact and conversation ids as they resolve."""
    return LoggerAdapter(logger, {"chat_id": chat_id, "external_id": external_id})
