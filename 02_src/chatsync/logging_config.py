"""Structured logging configuration for chatsync."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Third-party loggers that log every request or frame at INFO/DEBUG.
NOISY_LOGGERS = ("httpx", "httpcore", "websockets", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, tagged with the client role."""

    def __init__(self, role: str | None = None):
        super().__init__()
        self.role = role or os.getenv("CHAT_ROLE", "agent")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "role": self.role,
            "message": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # extra={"context": {"room_id": ..., "generation": ...}}
        context = getattr(record, "context", None)
        if context:
            entry.update({k: v for k, v in context.items() if k not in entry})

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    role: str | None = None,
) -> None:
    """
    Setup structured logging for the client process.

    Args:
        log_level: Level for chatsync loggers. Defaults to LOG_LEVEL env var or INFO.
        log_file: Rotating log file. Defaults to 04_logs/chatsync.log.
        role: Role tag written on every record. Defaults to CHAT_ROLE.
    """
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_path = Path(log_file or DEFAULT_LOG_PATH)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers = ["file"]
    if os.getenv("LOG_CONSOLE", "1").lower() not in ("0", "false", "no"):
        handlers.append("console")

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "chatsync.logging_config.JSONFormatter",
                "role": role,
            },
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": str(log_path),
                "maxBytes": 5 * 1024 * 1024,
                "backupCount": 3,
                "formatter": "json",
                "encoding": "utf-8",
            },
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "chatsync": {"level": log_level},
            **{name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        },
        "root": {
            "level": "INFO",
            "handlers": handlers,
        },
    })


def get_logger(name: str) -> logging.Logger:
    """Get a module logger; use __name__ so records fall under "chatsync"."""
    return logging.getLogger(name)
