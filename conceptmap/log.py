"""Logger setup shared by the conceptmap modules.

Everything goes to stderr. When running as an MCP server stdout carries the
protocol, so nothing may print there.
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Return a named logger with a stderr handler attached once."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger


def set_level(level: str | int) -> None:
    """Apply a level to every conceptmap logger created so far."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    for name in list(logging.root.manager.loggerDict):
        if name == "conceptmap" or name.startswith("conceptmap."):
            logging.getLogger(name).setLevel(level)
