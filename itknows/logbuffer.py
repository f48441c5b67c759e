"""
itknows/logbuffer.py — logging setup + in-memory session log
=============================================================
All modules log under the ``itknows`` namespace. `configure_logging` puts a
colour console handler on that namespace once; `LogBuffer` is a second
handler that keeps every event as a plain text line so a session can be
reviewed or saved after the workout.

Log lines look like::

    2026-10-18T09:12:44.120391 | TEST_START | dir=up hrBefore=150.0
"""

from __future__ import annotations
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

ROOT_LOGGER = "itknows"

_COLOURS = {
    logging.DEBUG:    "\033[36m",
    logging.INFO:     "\033[32m",
    logging.WARNING:  "\033[33m",
    logging.ERROR:    "\033[31m",
    logging.CRITICAL: "\033[35m",
}
_RESET = "\033[0m"

_BASE_FMT = "%(asctime)s  %(levelname)s  %(name)-20s  %(message)s"
_DATE_FMT = "%H:%M:%S"


class _ColourFormatter(logging.Formatter):
    """Inject ANSI colour around the log-level tag."""

    def format(self, record: logging.LogRecord) -> str:
        colour = _COLOURS.get(record.levelno, _RESET)
        levelname = record.levelname
        record.levelname = f"{colour}{levelname:<8}{_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


_console: Optional[logging.Handler] = None


def get_logger(name: str) -> logging.Logger:
    """Return the ``itknows.<name>`` logger."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Install the console handler on the ``itknows`` logger (once).
    The logger itself stays at DEBUG so buffer handlers see tick events;
    `level` only filters what reaches the terminal.
    """
    global _console
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG)
    root.propagate = False
    if _console is None:
        _console = logging.StreamHandler(sys.stdout)
        _console.setFormatter(_ColourFormatter(fmt=_BASE_FMT, datefmt=_DATE_FMT))
        root.addHandler(_console)
    _console.setLevel(level)
    return root


class LogBuffer(logging.Handler):
    """In-memory list of ``ts | EVENT | details`` lines."""

    def __init__(self, level: int = logging.DEBUG):
        super().__init__(level)
        self._lines: List[str] = []

    # ---------- logging.Handler ----------
    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = getattr(record, "event", None) or record.levelname
            ts = datetime.fromtimestamp(record.created).isoformat()
            self._append(f"{ts} | {event} | {record.getMessage()}")
        except Exception:
            self.handleError(record)

    def _append(self, line: str) -> None:
        self.acquire()
        try:
            self._lines.append(line)
        finally:
            self.release()

    # ---------- public API ----------
    def add(self, event: str, details: str) -> None:
        ts = datetime.now().isoformat()
        self._append(f"{ts} | {event} | {details}")

    @property
    def lines(self) -> List[str]:
        self.acquire()
        try:
            return list(self._lines)
        finally:
            self.release()

    @property
    def text(self) -> str:
        lines = self.lines
        return "\n".join(lines) if lines else "No logs yet."

    def clear(self) -> None:
        self.acquire()
        try:
            self._lines.clear()
        finally:
            self.release()

    def save(self, directory) -> Optional[Path]:
        """Write the buffer to ``itknows_log_<epoch-ms>.txt``; None when empty."""
        lines = self.lines
        if not lines:
            return None
        d = Path(directory)
        d.mkdir(parents=True, exist_ok=True)
        out = d / f"itknows_log_{int(time.time() * 1000)}.txt"
        out.write_text("\n".join(lines), encoding="utf-8")
        return out

    def attach(self, logger_name: str = ROOT_LOGGER) -> "LogBuffer":
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.DEBUG)
        if self not in logger.handlers:
            logger.addHandler(self)
        return self

    def detach(self, logger_name: str = ROOT_LOGGER) -> None:
        logging.getLogger(logger_name).removeHandler(self)
