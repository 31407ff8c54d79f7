"""
Logging for Prospect CRM.

Everything goes to the single 'prospectcrm' logger: engine modules log through
logging.getLogger(__name__) and every CLI command is wrapped in @log_call, so
one file holds the trace of a whole field-sales session.

  File     : logs/prospectcrm.log, rotated at 5 MB, 3 backups kept
  Level    : LOG_LEVEL (DEBUG shows the CALL lines with arguments), INFO otherwise
  Secrets  : a `password` keyword argument is written as ***

    from prospectcrm.logging_config import configure_logging, log_call

    configure_logging()

    @log_call
    def establishments_archive(establishment_id):
        ...

Lines look like:
    2026-10-19 09:12:44 | DEBUG    | CALL auth_login | args=(email='lea.martin@example.fr', password=***)
    2026-10-19 09:12:44 | INFO     | OK   auth_login | 41ms
    2026-10-19 09:12:45 | ERROR    | FAIL actions_quick | OperationalError: timeout | 3001ms
"""

import functools
import logging
import logging.handlers
import os
import time
from pathlib import Path

_LOG_DIR = Path(__file__).parent.parent / "logs"
_LOG_FILE = _LOG_DIR / "prospectcrm.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3
# Keyword arguments never written to the log
_SECRET_ARGS = {"password"}


def configure_logging() -> logging.Logger:
    """
    Set up the prospectcrm logger. Idempotent, called on every CLI entry.
    Returns the configured logger.
    """
    _LOG_DIR.mkdir(exist_ok=True)

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger("prospectcrm")

    # Guard: don't add duplicate handlers if already configured
    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)

    return logger


def _render_args(args, kwargs) -> str:
    parts = [repr(a) for a in args]
    parts += [f"{k}=***" if k in _SECRET_ARGS else f"{k}={v!r}" for k, v in kwargs.items()]
    return ", ".join(parts) if parts else "-"


def log_call(func):
    """
    Trace a call: CALL with its arguments at DEBUG, OK with the duration at
    INFO, FAIL with the exception at ERROR. The exception is re-raised.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger("prospectcrm")
        name = func.__name__
        start = time.perf_counter()

        logger.debug(f"CALL {name} | args=({_render_args(args, kwargs)})")

        try:
            result = func(*args, **kwargs)
            ms = int((time.perf_counter() - start) * 1000)
            logger.info(f"OK   {name} | {ms}ms")
            return result
        except Exception as exc:
            ms = int((time.perf_counter() - start) * 1000)
            logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {ms}ms")
            raise

    return wrapper
