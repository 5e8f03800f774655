"""Logging configuration for applications using dbhandle.

    from dbhandle import setup_logging
    setup_logging()                      # INFO, or DBHANDLE_LOG_LEVEL
    setup_logging("DEBUG", log_dir=None) # console only
"""

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Loggers that get their own file handler
FILE_LOGGERS = ["dbhandle"]

LOG_LEVEL_ENV = "DBHANDLE_LOG_LEVEL"


def resolve_level(level=None) -> int:
    """Explicit level, else DBHANDLE_LOG_LEVEL, else INFO."""
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {level}")
    return resolved


def setup_logging(level=None, log_dir="logs", file_loggers=FILE_LOGGERS):
    """Configure logging.

    - Root logger: console handler at `level`
    - Unless `log_dir` is None, one RotatingFileHandler per name in
      `file_loggers` (5 MB max, 3 backups) written to `log_dir/`

    Does nothing if the root logger already has handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    level = resolve_level(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir is None:
        return

    os.makedirs(log_dir, exist_ok=True)
    for name in file_loggers:
        handler = RotatingFileHandler(
            os.path.join(log_dir, f"{name.replace('.', '_')}.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logging.getLogger(name).addHandler(handler)
