# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for bpfperf.

Every log entry is a single JSON line with a timestamp, level, source module
and message, plus whatever structured context the caller attaches through
`extra`.

How this works:
  - We use Python's standard `logging` module under the hood, but replace the
    default formatter with JsonFormatter, which serializes every log record
    into a single JSON line.
  - Each logger writes to stdout or stderr, and optionally to a file.
  - The factory function `get_logger` is the only way to create loggers.

Stdout is shared with the CSV report. The CLI defaults to WARNING, so a
healthy run prints only the report there. Warnings, such as a CPU layout
that no longer matches the header, land between the rows they concern.

The JSON structure looks like:
  {"ts": "2026-...", "level": "WARNING", "module": "bpfperf.execution.engine", "msg": "..."}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, TextIO

ROOT_LOGGER_NAME = "bpfperf"


# Attributes every LogRecord carries. Anything else on a record came in
# through `extra` and belongs in the JSON entry.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Mandatory fields:
      ts     - ISO 8601 UTC time the record was created
      level  - log level name
      module - the logger name (usually the Python module path)
      msg    - the formatted message string

    Records emitted from a benchmark worker also carry `thread`, the worker's
    name, so per-CPU messages can be told apart. `extra` fields are merged in
    as-is and an exception, if any, lands in `exception`.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }

        if record.threadName and record.threadName.startswith(f"{ROOT_LOGGER_NAME}-"):
            entry["thread"] = record.threadName

        entry.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """
    Stream handler bound to sys.stdout or sys.stderr by name.

    The stream is looked up on every emit rather than captured once, so
    loggers created at import time follow later redirections of sys.stdout
    (pytest's capsys, contextlib.redirect_stdout).
    """

    def __init__(self, stream_name: str) -> None:
        if stream_name not in ("stdout", "stderr"):
            raise ValueError(f"Unknown console stream '{stream_name}'")
        self._stream_name = stream_name
        super().__init__()

    @property
    def stream(self) -> TextIO:  # type: ignore[override]
        return getattr(sys, self._stream_name)

    @stream.setter
    def stream(self, value: TextIO) -> None:
        pass


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_default_level = "INFO"


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


def get_logger(
    name: str,
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    stream: str = "stdout",
) -> logging.Logger:
    """
    Create a structured JSON logger.

    Every module calls this once at the top and uses the returned logger.

    Args:
        name: Logger name, typically __name__ of the calling module.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL. Defaults to
                   the level last applied with set_log_level.
        log_file: Optional path to a log file. If provided, logs go to both
                  the console stream and the file.
        stream: "stdout" or "stderr".

    Returns:
        A configured logging.Logger that outputs structured JSON.
    """
    logger = logging.getLogger(name)
    level = _resolve_log_level(log_level or _default_level)
    logger.setLevel(level)

    # Avoid stacking handlers if get_logger is called multiple times for the
    # same name (happens in tests).
    if logger.handlers:
        return logger

    formatter = JsonFormatter()

    console_handler = ConsoleHandler(stream)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Output is handled here, never by the root logger.
    logger.propagate = False

    return logger


def set_log_level(level_name: str) -> None:
    """
    Apply a level to every bpfperf logger, existing and future.

    Module loggers are created at import time, before the CLI has parsed
    --log-level, so the CLI calls this once after parsing.
    """
    global _default_level

    level = _resolve_log_level(level_name)
    _default_level = level_name.upper()

    for name in list(logging.Logger.manager.loggerDict):
        if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
            logging.getLogger(name).setLevel(level)
