"""
Storage module for the shared coordination store
"""

from .store import StateStore

__all__ = ["StateStore"]
