"""
Centralized Logging Configuration with Rotation

Provides log rotation and size limits for long-running worker processes.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Union

LOG_DIR = Path.home() / '.assured_jobs'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_rotating_logger(
    name: str,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB default
    backup_count: int = 5,
    level: int = logging.INFO,
    console_output: bool = True
) -> logging.Logger:
    """
    Set up a logger with a rotating file handler.

    Args:
        name: Logger name
        log_file: Path to log file (default: ~/.assured_jobs/{name}.log)
        max_bytes: Maximum size per log file before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)
        level: Logging level (default: INFO)
        console_output: Whether to also log to console (default: True)

    Returns:
        Configured logger with rotation
    """
    logger = logging.getLogger(name)

    # Clear any existing handlers to avoid duplicates
    logger.handlers.clear()
    logger.setLevel(level)

    if log_file is None:
        LOG_DIR.mkdir(exist_ok=True)
        log_file = LOG_DIR / f'{name}.log'
    else:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8'
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(level)
    logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

    return logger


def setup_logging(
    verbose: bool = False,
    console_output: bool = True,
    log_file: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """
    Configure logging for the whole assured_jobs package.

    Args:
        verbose: Log at DEBUG instead of INFO (heartbeats, tracking, lock contention)
        console_output: Whether to also log to console
        log_file: Override the default ~/.assured_jobs/assured_jobs.log
    """
    logger = setup_rotating_logger(
        name='assured_jobs',
        log_file=log_file,
        level=logging.DEBUG if verbose else logging.INFO,
        console_output=console_output
    )
    logger.propagate = False
    return logger
