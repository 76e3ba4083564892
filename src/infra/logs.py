#!/usr/bin/env python3
"""
Logging setup for the page-load benchmarking tool.

All modules log through children of the "pageload" logger; this module
attaches the console (and optional file) handlers once.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "pageload"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure the project logger.

    Calling this more than once replaces the handlers instead of stacking
    them.

    Args:
        level: Log level for the project logger
        log_file: Optional file receiving the same records as the console

    Returns:
        The configured "pageload" logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
