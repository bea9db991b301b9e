"""
Logging utilities.

WHAT: Centralized logging configuration
WHY: Consistent log format and easy logger access
HOW: Python logging with file and console handlers
"""

import logging
import sys
from pathlib import Path

from ..core.config import settings


def setup_logging():
    """
    Configure application logging.

    WHAT: Set up root logger with file and console handlers
    WHY: Tool runs, sweeps and webhook decisions must be traceable after the fact
    HOW: Create handlers with formatters, set levels from config
    """
    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(console_handler)

    # File handler
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(file_handler)

    # httpx logs every request at INFO, which drowns out webhook traffic
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized (level={settings.LOG_LEVEL}, file={log_file})")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
