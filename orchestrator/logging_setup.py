# orchestrator/logging_setup.py
import logging
import logging.handlers
import os
import sys
from pathlib import Path

LOGGER_NAME = "ngxdash"
LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s %(message)s"


def configure_root_logger(level=None, log_dir="logs", log_file="ngxdash.log", console=True):
    """
    One "ngxdash" logger: rotating file + optional console. Idempotent.

    Level precedence: argument, NGXDASH_LOG_LEVEL, INFO.
    """
    level = level or os.environ.get("NGXDASH_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger = logging.getLogger(LOGGER_NAME)

    if logger.handlers:
        return logger        # Already set up

    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    # File handler
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    fh = logging.handlers.RotatingFileHandler(
        filename=str(log_path / log_file),
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8"
    )
    fh.setFormatter(formatter)
    fh.setLevel(level)
    logger.addHandler(fh)

    # Console handler (stderr, so command output stays clean)
    if console:
        ch = logging.StreamHandler(stream=sys.stderr)
        ch.setFormatter(formatter)
        ch.setLevel(level)
        logger.addHandler(ch)

    logger.propagate = False
    return logger
