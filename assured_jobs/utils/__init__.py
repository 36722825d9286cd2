"""Utility helpers"""

from .logging_config import setup_rotating_logger, setup_logging

__all__ = ["setup_rotating_logger", "setup_logging"]
