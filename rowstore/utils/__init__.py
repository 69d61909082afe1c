"""
Utilities package for rowstore.

Exports shared helpers for cross-cutting concerns. Keep this package free of
persistence logic.
"""

from rowstore.utils.logging import JsonFormatter, configure_logging, get_logger

__all__ = [
    "JsonFormatter",
    "configure_logging",
    "get_logger",
]
