"""Logging bootstrap for the verifier terminal."""
from __future__ import annotations

import logging
import re
from logging.config import dictConfig
from pathlib import Path
from typing import Optional

# <base64url payload>.<signature> session tokens and bearer credentials
_SESSION_TOKEN = re.compile(r"\b([A-Za-z0-9_-]{12})[A-Za-z0-9_-]{4,}\.[A-Za-z0-9_-]{8,}")
_BEARER = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)


def redact_tokens(message: str) -> str:
    """Cut session tokens down to a short prefix and hide bearer credentials."""
    message = _SESSION_TOKEN.sub(r"\1...", message)
    return _BEARER.sub(r"\1[redacted]", message)


class TokenRedactingFilter(logging.Filter):
    """Keeps full session tokens out of every handler's output."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_tokens(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def configure_logging(level: str = "INFO", log_dir: Optional[Path] = None, retention_days: int = 14) -> None:
    """Console plus a daily rotating UTC file, both passed through token redaction."""

    if log_dir is None:
        log_dir = Path(__file__).resolve().parents[1] / "logs"
    log_dir = Path(log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    level = level.upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "redact_tokens": {"()": TokenRedactingFilter},
            },
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["redact_tokens"],
                    "level": level,
                },
                "terminal_file": {
                    "class": "logging.handlers.TimedRotatingFileHandler",
                    "formatter": "default",
                    "filters": ["redact_tokens"],
                    "level": level,
                    "filename": str(log_dir / "verifier-terminal.log"),
                    "when": "midnight",
                    "backupCount": max(int(retention_days), 1),
                    "utc": True,
                    "delay": True,
                    "encoding": "utf-8",
                },
            },
            "loggers": {
                # httpx logs every request line at INFO, including query strings
                "httpx": {"level": "WARNING"},
                "uvicorn.access": {"level": "WARNING"},
            },
            "root": {"level": level, "handlers": ["console", "terminal_file"]},
        }
    )
    logging.getLogger(__name__).debug("Logging configured (level=%s, dir=%s)", level, log_dir)


__all__ = ["configure_logging", "redact_tokens", "TokenRedactingFilter"]
