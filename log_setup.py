"""
Logging setup for the tracking tools.

Level priority:
1. Explicit argument
2. Environment variable HEADTILT_LOG_LEVEL
3. INFO
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_LEVEL_ENV_VAR = "HEADTILT_LOG_LEVEL"


def resolve_level(level=None) -> int:
    """Turn a level name, number or None into a logging level."""
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV_VAR, "INFO")
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logger(
    name: str = "headtilt",
    level=None,
    log_dir: Optional[str] = None,
    enable_console: bool = True,
    max_size_mb: int = 10,
) -> logging.Logger:
    """
    Configure a logger with a console handler and an optional rotating file.

    Args:
        name: Logger name; '' configures the root logger
        level: Level name or number (None reads HEADTILT_LOG_LEVEL)
        log_dir: Directory for '<name>.log'; no file logging when None
        enable_console: Whether to log to stderr
        max_size_mb: Rotation size of the log file

    Returns:
        logger: The configured logger
    """
    level = resolve_level(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Don't add handlers twice
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / f'{name or "headtilt"}.log',
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
