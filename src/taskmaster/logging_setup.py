# src/taskmaster/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Minimum console level per logger prefix; first match wins.
_CONSOLE_THRESHOLDS: tuple[tuple[str, int], ...] = (
    ("taskmaster.store.", logging.WARNING),
    ("taskmaster.", logging.NOTSET),
)


class _ConsoleNoiseFilter(logging.Filter):
    """Keep the REPL readable: store listeners and third-party libraries only speak up on problems."""

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, threshold in _CONSOLE_THRESHOLDS:
            if record.name.startswith(prefix):
                return record.levelno >= threshold
        return record.levelno >= logging.ERROR


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskmaster",
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route all logs to stderr (filtered) and to `<log_dir>/taskmaster.log` (everything).

    Replaces any handlers already on the root logger. Returns the log file path.
    """
    log_file = Path(log_dir) / "taskmaster.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    console = _handler(logging.StreamHandler(sys.stderr), console_level, formatter)
    console.addFilter(_ConsoleNoiseFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    root.addHandler(console)
    root.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), file_level, formatter))

    logging.captureWarnings(True)

    # Request logs carry the id token in the query string.
    for name in ("httpx", "httpcore", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_file
