"""Logging configuration for stream-dictate."""

import logging
import sys
from pathlib import Path

# Logs live next to the other app data in the user's home
LOG_DIR = Path.home() / ".stream_dictate" / "logs"
LOG_FILE = LOG_DIR / "stream_dictate.log"


def setup_logging(level: int = logging.INFO, log_file: Path | None = LOG_FILE) -> logging.Logger:
    """
    Configure the ``stream_dictate`` logger.

    Args:
        level: Console logging level (default: INFO)
        log_file: DEBUG log file, or None to log to the console only

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("stream_dictate")
    logger.setLevel(logging.DEBUG if log_file else level)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logger.addHandler(console_handler)

    if log_file is None:
        return logger

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        # Unwritable home directory or disk errors
        logger.warning(f"Could not set up file logging: {e}")
        return logger

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(file_handler)
    return logger
