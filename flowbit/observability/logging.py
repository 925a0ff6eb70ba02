"""
Logging setup

Console output at the configured level, plus a rotating file that keeps
everything down to DEBUG.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_NAME = "flowbit.log"

# Libraries that log every request or connection at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def setup_logging(level: str = "INFO", log_dir: Optional[str] = "logs") -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: Console log level name
        log_dir: Directory of the rotating log file; None disables the file
    """
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    handlers = [console_handler]

    log_path = None
    if log_dir:
        logs_dir = Path(log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_path = logs_dir / LOG_FILE_NAME

        # 10 MB per file, 5 backups
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    if log_path is not None:
        logger.info(f"Logging initialized - level {level.upper()}, file {log_path.absolute()}")
    else:
        logger.info(f"Logging initialized - level {level.upper()}, console only")
