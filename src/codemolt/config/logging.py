"""Diagnostics for codemolt, routed through a single loguru stderr sink.

Command results are written to stdout by the CLI. Everything logged here is
side information about a run: session files skipped as malformed, scanners
that failed and were dropped from a scan, posts the forum rejected, and
ledger writes that did not land. Stdlib loggers (urllib and friends) are
funnelled into the same sink.
"""

from __future__ import annotations

import logging
import os
import sys

from loguru import logger as _BASE_LOGGER


_logger = _BASE_LOGGER

_TRUE_VALUES = {"1", "true", "yes", "on"}
_HTTP_LOGGERS = ("urllib3", "http.client")
_DEFAULT_LEVEL = "WARNING"

_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level:<8}</level> | <level>{message}</level>\n"


def _env_flag(name: str, default: bool) -> bool:
    """Read a yes/no environment switch such as ``CODEMOLT_LOG_HTTP=1``."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _log_filter(record: dict) -> bool:
    """Drop HTTP transport chatter unless ``CODEMOLT_LOG_HTTP`` is on."""
    logger_name = str(record.get("name") or "")
    if logger_name.startswith(_HTTP_LOGGERS):
        return _env_flag("CODEMOLT_LOG_HTTP", default=False)
    return True


class _InterceptHandler(logging.Handler):
    """Hand stdlib log records to the codemolt sink."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        _logger.opt(exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str | None = None) -> None:
    """(Re)install the stderr sink.

    ``level`` defaults to ``CODEMOLT_LOG_LEVEL`` (``WARNING`` when unset), so
    a normal run prints nothing but real problems. ``CODEMOLT_LOG_COLOR``
    forces colour on or off; otherwise it follows whether stderr is a tty.
    Safe to call more than once: the CLI calls it again on every ``main``.
    """
    global _logger
    level = level or os.getenv("CODEMOLT_LOG_LEVEL", _DEFAULT_LEVEL)
    colorize = _env_flag("CODEMOLT_LOG_COLOR", default=sys.stderr.isatty())

    _BASE_LOGGER.remove()
    _logger = _BASE_LOGGER
    _logger.add(
        sys.stderr,
        level=level,
        format=_FORMAT,
        filter=_log_filter,
        colorize=colorize,
        backtrace=False,
        diagnose=False,
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0)

    for name in list(logging.root.manager.loggerDict.keys()):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True


configure_logging()

logger = _logger

__all__ = ["logger", "configure_logging"]
