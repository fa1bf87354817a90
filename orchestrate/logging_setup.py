"""Run logging: console handler plus an optional dated file handler."""

import logging
import sys
from datetime import datetime
from pathlib import Path

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOG_DATE_FORMAT = "%H:%M:%S"

# Loggers the run configures; third-party chatter stays at WARNING
_PACKAGES = ("harvest", "orchestrate")


def setup_logging(level: int = logging.INFO, log_dir: Path | None = None) -> Path | None:
    """
    Configure the harvest/orchestrate loggers.

    Args:
        level: Logging level for both handlers
        log_dir: When given, also log to <log_dir>/channel_harvest_YYYYMMDD.log

    Returns:
        Path of the log file, or None when logging to console only.
    """
    formatter = logging.Formatter(_LOG_FORMAT, _LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = []
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    handlers.append(console)

    log_file = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"channel_harvest_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for name in _PACKAGES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers.clear()
        logger.propagate = False
        for handler in handlers:
            handler.setLevel(level)
            logger.addHandler(handler)

    return log_file
