"""Command line interface for assured jobs"""

from .main import cli, main

__all__ = ["cli", "main"]
