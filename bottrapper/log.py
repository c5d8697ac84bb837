from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, cast

from bottrapper import constants


try:
    from rich.logging import RichHandler
except ImportError:
    RichHandler = None

TRACE = 5

LOG_FILE = Path("logs/bottrapper.log")
LOG_FORMAT = logging.Formatter("%(asctime)s | %(name)s | %(levelname)s | %(message)s")

# third party loggers that are too chatty at our level
QUIET_LOGGERS = {
    "discord": logging.WARNING,
    "discord.gateway": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.INFO,
    "aiosqlite": logging.INFO,
    "cachingutils": logging.INFO,
}


def get_logger(name: str) -> BotTrapperLogger:
    """Stub method for logging.getLogger."""
    return cast("BotTrapperLogger", logging.getLogger(name))


class BotTrapperLogger(logging.Logger):
    """Logger with an extra level below debug, used for per-decision and per-cache-entry messages."""

    def trace(self, msg: object, *args: object, **kwargs: Any) -> None:
        """Log 'msg % args' with severity 'TRACE'."""
        if self.isEnabledFor(TRACE):
            self._log(TRACE, msg, args, **kwargs)


def _file_handler() -> logging.Handler:
    LOG_FILE.parent.mkdir(exist_ok=True)
    if constants.Monitoring.log_mode == "daily":
        # one file per day, two weeks kept
        return logging.handlers.TimedRotatingFileHandler(
            LOG_FILE, "midnight", utc=True, backupCount=14, encoding="utf-8"
        )
    return logging.handlers.RotatingFileHandler(LOG_FILE, maxBytes=5 * (2**20), backupCount=10, encoding="utf-8")


def _console_handler() -> logging.Handler:
    if RichHandler is not None:
        return RichHandler(rich_tracebacks=True)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(LOG_FORMAT)
    return handler


def setup() -> None:
    """Set up the root logger with a file and a console handler."""
    logging.addLevelName(TRACE, "TRACE")
    logging.setLoggerClass(BotTrapperLogger)

    root_logger = logging.getLogger()
    file_handler = _file_handler()
    file_handler.setFormatter(LOG_FORMAT)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(_console_handler())
    root_logger.setLevel(logging.DEBUG if constants.Monitoring.debug_logging else logging.INFO)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    # BOT_TRACE_LOGGERS is a comma separated list of logger names, such as "bottrapper.access"
    if constants.Monitoring.trace_loggers:
        for name in constants.Monitoring.trace_loggers.split(","):
            if name.strip():
                logging.getLogger(name.strip()).setLevel(TRACE)

    root_logger.info("Logging initialization complete")
