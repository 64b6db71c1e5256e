"""Application logging utilities.

Goals:
- Single, shared app logger used everywhere
- Logs written to per-module files under ./logs/ (or STEAM_CATALOG_LOG_DIR)
- UTC timestamp at start of each log line
- Daily log rotation

Implementation notes:
- Uses `TimedRotatingFileHandler` with `when='midnight'`, `utc=True` and `delay=True`.
- Also attaches a console handler (stderr) so scheduled runs show up in CI logs.
- Call `get_logger(__name__)` from any module to get a child logger.
"""

from __future__ import annotations

import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler

from settings import LOG_LEVEL as _DEFAULT_LOG_LEVEL


class _UTCFormatter(logging.Formatter):
    """Formatter that forces UTC timestamps."""

    converter = staticmethod(time.gmtime)


_APP_LOGGER_NAME = "steam_catalog"

_LOG_FORMAT = "%(asctime)sZ %(levelname)s pid=%(process)d %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def logs_dir() -> str:
    configured = os.getenv("STEAM_CATALOG_LOG_DIR")
    if configured and configured.strip():
        return configured.strip()
    # project_root/logs
    return os.path.join(os.path.dirname(__file__), "logs")


def _sanitize_filename(name: str) -> str:
    # Convert e.g. "jobs.update_games" -> "jobs_update_games"
    name = (name or "app").strip() or "app"
    return "".join(ch if (ch.isalnum() or ch in {"-", "_"}) else "_" for ch in name)


def _file_handler(path: str, level: int) -> TimedRotatingFileHandler:
    fh = TimedRotatingFileHandler(
        path,
        when="midnight",
        interval=1,
        backupCount=14,
        utc=True,
        encoding="utf-8",
        # Open on first record, not when a module calls get_logger().
        delay=True,
    )
    fh.setLevel(level)
    fh.setFormatter(_UTCFormatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
    return fh


def _resolve_level(level_name: str | None) -> int:
    return getattr(logging, (level_name or "INFO").upper(), logging.INFO)


def configure_app_logging(level_name: str = "INFO") -> logging.Logger:
    """Configure and return the root application logger.

    Safe to call multiple times; later calls only adjust the level.
    """

    level = _resolve_level(level_name)
    app_logger = logging.getLogger(_APP_LOGGER_NAME)
    app_logger.setLevel(level)

    if getattr(app_logger, "_configured", False):
        for h in app_logger.handlers:
            h.setLevel(level)
        return app_logger

    os.makedirs(logs_dir(), exist_ok=True)

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(_UTCFormatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))

    app_logger.addHandler(sh)
    app_logger.addHandler(_file_handler(os.path.join(logs_dir(), "app.log"), level))

    # Do not propagate to the global root logger (prevents double logging).
    app_logger.propagate = False

    app_logger._configured = True  # type: ignore[attr-defined]
    return app_logger


def set_log_level(level_name: str) -> None:
    """Apply a new level to the app logger and every child created so far."""

    level = _resolve_level(level_name)
    base = configure_app_logging(level_name)
    prefix = base.name + "."
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.startswith(prefix):
            logger.setLevel(level)
            for h in logger.handlers:
                h.setLevel(level)


def get_logger(module_name: str | None = None) -> logging.Logger:
    """Get a module-specific logger.

    Records go to the module's own log file and, through propagation to the
    app logger, to the console and `app.log`.

    Example:
        logger = get_logger(__name__)
    """

    base = configure_app_logging(os.getenv("LOG_LEVEL", str(_DEFAULT_LOG_LEVEL)))

    child_name = module_name or "app"
    logger = logging.getLogger(f"{_APP_LOGGER_NAME}.{child_name}")

    if not getattr(logger, "_file_configured", False):
        logger.setLevel(base.level)

        file_name = _sanitize_filename(child_name) + ".log"
        logger.addHandler(_file_handler(os.path.join(logs_dir(), file_name), base.level))
        logger._file_configured = True  # type: ignore[attr-defined]

    return logger
