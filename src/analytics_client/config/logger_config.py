"""Logger configuration for applications embedding the analytics client."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger


def setup_logging(
    level: str = "INFO",
    log_to_console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Configure loguru logger for console and optional file output.

    Sets up structured logging with:
    - Console output with colored output
    - File output with rotation and retention when ``log_file`` is given

    The client never calls this itself; it only logs through ``loguru.logger``.
    """

    # Remove default loguru handler
    logger.remove()

    if log_to_console:
        logger.add(
            sink=sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level=level,
            colorize=True,
        )

    if log_file:
        logger.add(
            sink=str(log_file),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=level,
            rotation=rotation,
            retention=retention,
            compression="gz",  # Compress rotated logs
            enqueue=True,  # Thread-safe logging
        )

        logger.info(f"File logging enabled: {log_file}")
