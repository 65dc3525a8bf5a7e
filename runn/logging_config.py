"""Logging for runn: a console stream plus, for ``serve``, a rotating log file.

``setup_logging()`` may be called more than once (the CLI reconfigures after
reading the config file); each call replaces the previous handlers.
"""

from __future__ import annotations

import atexit
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

from runn.log_context import ContextFilter

LOG_FILE_NAME = "runn.log"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(ctx)s%(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(ctx)s%(message)s"

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("aiohttp.access", "asyncio")

logger = logging.getLogger(__name__)


class _ColorFormatter(logging.Formatter):
    """Pads level names to a fixed width, colored when *use_color* is set."""

    _COLORS = {
        logging.DEBUG: 36,
        logging.INFO: 32,
        logging.WARNING: 33,
        logging.ERROR: 31,
        logging.CRITICAL: 35,
    }

    def __init__(self, fmt: str, datefmt: str | None = None, use_color: bool = True) -> None:
        super().__init__(fmt, datefmt)
        self._use_color = use_color

    def _label(self, record: logging.LogRecord) -> str:
        label = record.levelname.ljust(8)
        code = self._COLORS.get(record.levelno)
        if not self._use_color or code is None:
            return label
        return f"\x1b[{code}m{label}\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        record.levelname = self._label(record)
        try:
            return super().format(record)
        finally:
            record.levelname = original


class _FileSink:
    """Hands records to a background thread that writes the rotating file."""

    def __init__(self) -> None:
        self._listener: QueueListener | None = None
        atexit.register(self.close)

    def open(self, log_dir: Path) -> QueueHandler:
        self.close()
        log_dir.mkdir(parents=True, exist_ok=True)
        writer = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        writer.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

        records: queue.Queue[logging.LogRecord] = queue.Queue()
        self._listener = QueueListener(records, writer)
        self._listener.start()
        return QueueHandler(records)

    def close(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None


_file_sink = _FileSink()


def level_from_name(name: str) -> int:
    """Map a config level name (``"debug"``, ``"INFO"``...) to a logging level."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    level: int = logging.INFO,
    verbose: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Install the console handler and, when *log_dir* is given, the file sink.

    The console honours *level* (DEBUG when *verbose*); the file always
    receives DEBUG and above.
    """
    if verbose:
        level = logging.DEBUG
    context = ContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.addFilter(context)
    console.setFormatter(
        _ColorFormatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S", use_color=sys.stderr.isatty())
    )
    handlers: list[logging.Handler] = [console]

    if log_dir is None:
        _file_sink.close()
    else:
        to_file = _file_sink.open(log_dir)
        to_file.addFilter(context)
        handlers.append(to_file)

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(logging.DEBUG if log_dir is not None else level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging initialized (level=%s)", logging.getLevelName(level))
