"""
Logging configuration — central setup for the CLI entrypoint.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  AUTOSETUP_LOG_LEVEL env var  >  INFO (default)

Two destinations:
    - console (stdout, colored only when attached to a terminal)
    - the run transcript (LogSink), always plain and full detail
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import click

from autosetup.core.observability.log_sink import LogSink

# ── Format strings ──────────────────────────────────────────────

_FMT_CONSOLE = "[%(asctime)s] %(message)s"
_DATEFMT_CONSOLE = "%Y-%m-%d %H:%M:%S"

# DEBUG level — full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# Transcript — always full detail
_FMT_FILE = "[%(asctime)s] %(levelname)-7s %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_LEVEL_COLORS = {
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class _ConsoleFormatter(logging.Formatter):
    """Colors records by level when the stream is a terminal."""

    def __init__(self, fmt: str, datefmt: str | None, color: bool):
        super().__init__(fmt, datefmt=datefmt)
        self._color = color

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if not self._color:
            return text
        fg = _LEVEL_COLORS.get(record.levelno)
        if fg:
            return click.style(text, fg=fg, bold=record.levelno >= logging.ERROR)
        return text


class SinkHandler(logging.Handler):
    """Writes formatted records into the run transcript."""

    def __init__(self, sink: LogSink, level: int = logging.DEBUG):
        super().__init__(level)
        self.sink = sink

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sink.write_block(self.format(record))
        except Exception:
            self.handleError(record)


def setup_logging(
    level: str = "INFO",
    sink: LogSink | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Console log level name (DEBUG, INFO, WARNING, ERROR).
        sink: Optional run transcript; receives every record at DEBUG.
        stream: Console stream (default: stdout).
    """
    numeric_level = _parse_level(level)
    stream = stream if stream is not None else sys.stdout

    # ── Console handler ─────────────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    else:
        fmt, datefmt = _FMT_CONSOLE, _DATEFMT_CONSOLE

    try:
        color = stream.isatty()
    except (AttributeError, ValueError):
        color = False

    console = logging.StreamHandler(stream)
    console.setLevel(numeric_level)
    console.setFormatter(_ConsoleFormatter(fmt, datefmt, color))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.addHandler(console)

    effective_level = numeric_level

    # ── Transcript handler (optional) ───────────────────────────
    if sink is not None:
        sh = SinkHandler(sink)
        sh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(sh)
        effective_level = logging.DEBUG

    root.setLevel(effective_level)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.INFO
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.INFO
    return numeric
