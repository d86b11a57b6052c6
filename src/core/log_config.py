"""
Logging setup.

All modules log through the shared loguru ``logger``; this only decides
where the records go.
"""

from __future__ import annotations

import sys

from loguru import logger

CONSOLE_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"


def configure_logging(level: str = "WARNING", log_file: str | None = None) -> None:
    """
    Replace the default loguru sink.

    Args:
        level: Minimum level for the stderr sink
        log_file: Optional path for a rotating file sink (always DEBUG)
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT)

    if log_file:
        logger.add(
            log_file,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation="10 MB",
            retention=3,
            encoding="utf-8",
        )
        logger.debug(f"File logging enabled at {log_file}")
