"""
Logging for the map pipeline and CLI.

loguru writes to stderr and, when LOG_FILE or log_file is set, to a
rotating file. DISABLE_LOGGING=1 silences the pipeline entirely (tests).
"""

import logging
import os
import sys
from pathlib import Path

from loguru import logger

from pipeline.config import settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

# httpx logs every request at INFO; Wikidata and Commons calls are logged here instead
NOISY_LOGGERS = ("httpx", "httpcore")


def logging_disabled() -> bool:
    return os.environ.get("DISABLE_LOGGING") == "1"


def setup_logging(
    level: str | None = None,
    log_file: Path | str | None = None,
    rotation: str = "10 MB",
    retention: str = "1 week",
) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Log level; defaults to settings.pipeline.log_level
        log_file: File sink path; defaults to settings.pipeline.log_file
        rotation: Rotation for the file sink (e.g. "10 MB", "1 day")
        retention: Retention for the file sink (e.g. "1 week", "10 files")
    """
    logger.remove()
    if logging_disabled():
        return

    level = (level or settings.pipeline.log_level).upper()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    log_file = log_file or settings.pipeline.log_file
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            format=FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            compression="gz",
        )

    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging configured: level={level}, file={log_file or '-'}")


setup_logging()
