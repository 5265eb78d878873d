# src/llmchat/logging_config.py
from __future__ import annotations
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

DEFAULT_LOG_MAX_BYTES = 1_000_000
DEFAULT_LOG_BACKUP_COUNT = 3


class _ConsoleFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\x1b[36m",
        "INFO": "\x1b[32m",
        "WARNING": "\x1b[33m",
        "ERROR": "\x1b[31m",
        "CRITICAL": "\x1b[41m",
    }
    RESET = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        base = f"{datetime.fromtimestamp(record.created).isoformat(timespec='seconds')} | {record.levelname:<8} | {record.name} | {record.getMessage()}"
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        color = self.COLORS.get(record.levelname, "")
        if color and sys.stderr.isatty():
            return f"{color}{base}{self.RESET}"
        return base


def init_logging(level: str = "WARNING", log_file: Optional[Path] = None) -> None:
    """
    Console logs go to stderr; stdout is reserved for the streamed answer.
    Safe to call more than once (handlers are replaced).
    """
    lvl = getattr(logging, level.upper(), logging.WARNING)
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(lvl)

    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(_ConsoleFormatter())
    ch.setLevel(lvl)
    root.addHandler(ch)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            str(log_file), maxBytes=DEFAULT_LOG_MAX_BYTES, backupCount=DEFAULT_LOG_BACKUP_COUNT,
            encoding="utf-8", delay=True,
        )
        fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s", "%Y-%m-%d %H:%M:%S"))
        fh.setLevel(lvl)
        root.addHandler(fh)

    # Reduce noise from the HTTP stack
    for noisy in ("httpx", "httpcore", "PIL"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
